"""
In-memory store, for local play and tests.

Holds one ``Series`` snapshot per id and swaps in updated copies under a
lock, so readers always see a consistent aggregate.
"""
import logging
import threading
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from survivor_pool.core.playoff import sort_games
from survivor_pool.core.settings import resolve_settings
from survivor_pool.core.types import (
    Invitation,
    Member,
    Pick,
    PlayoffBracketPick,
    PlayoffGame,
    PlayoffSeeding,
    PlayoffStage,
    Series,
    SeriesSettings,
    User,
)
from survivor_pool.storage.base import (
    InvitationClosed,
    InvitationNotFound,
    MemberNotFound,
    SeriesNotFound,
    SeriesStore,
    generate_id,
)

logger = logging.getLogger(__name__)


class MemoryStore(SeriesStore):
    def __init__(self):
        super().__init__()
        self._lock = threading.RLock()
        self._series: dict[str, Series] = {}
        self._users: dict[str, User] = {}

    # --- Users ---

    def upsert_user(self, email: str, name: str = "", picture: str = "") -> User:
        email = email.strip().lower()
        with self._lock:
            for user_id, user in self._users.items():
                if user.email == email:
                    updated = user.model_copy(update={"name": name or user.name, "picture": picture or user.picture})
                    self._users[user_id] = updated
                    return updated
            user = User(id=generate_id(), email=email, name=name, picture=picture)
            self._users[user.id] = user
            return user

    def get_user(self, user_id: str) -> Optional[User]:
        with self._lock:
            return self._users.get(user_id)

    # --- Series ---

    def read_series(self, series_id: str) -> Series:
        with self._lock:
            series = self._series.get(series_id)
        if series is None:
            raise SeriesNotFound(series_id)
        return series

    def _snapshot(self) -> list[Series]:
        with self._lock:
            return list(self._series.values())

    def _replace(self, series: Series) -> Series:
        self._series[series.id] = series
        self._notify(series.id)
        return series

    def _update(self, series_id: str, **changes) -> Series:
        with self._lock:
            return self._replace(self.read_series(series_id).model_copy(update=changes))

    def list_user_series(self, user_id: str) -> list[Series]:
        return [
            s for s in self._snapshot()
            if any(m.user_id == user_id for m in s.members)
        ]

    def create_series(
        self,
        creator: User,
        name: str,
        description: str = "",
        season: Optional[int] = None,
        settings: Optional[SeriesSettings] = None,
        sport: str = "nfl",
        competition: str = "nfl",
        series_type: str = "survivor",
        current_week: Optional[int] = None,
    ) -> Series:
        settings = resolve_settings(settings)
        now = datetime.now(timezone.utc)
        creator_member = Member(
            id=generate_id(),
            user_id=creator.id,
            user_name=creator.name,
            user_picture=creator.picture,
            lives_remaining=settings.lives_per_player,
            role="admin",
            joined_at=now,
        )
        series = Series(
            id=generate_id(),
            name=name,
            description=description,
            created_by=creator.id,
            created_at=now,
            current_week=current_week or settings.starting_week,
            current_week_started_at=now,
            season=season or now.year,
            settings=settings,
            sport=sport,
            competition=competition,
            series_type=series_type,
            members=[creator_member],
        )
        with self._lock:
            self._replace(series)
        logger.info("Created series %s (%s) for %s", series.id, series_type, creator.id)
        return series

    def delete_series(self, series_id: str) -> None:
        with self._lock:
            self.read_series(series_id)
            del self._series[series_id]
        self._notify(series_id)

    def update_settings(self, series_id: str, settings: SeriesSettings, extra: Optional[Mapping[str, Any]] = None) -> Series:
        changes = dict(extra or {})
        changes["settings"] = settings
        return self._update(series_id, **changes)

    def advance_week(self, series_id: str, week: int) -> Series:
        return self._update(series_id, current_week=week, current_week_started_at=datetime.now(timezone.utc))

    # --- Members ---

    def join_series(self, series_id: str, user: User, entry_number: int = 1, role: str = "member") -> Member:
        with self._lock:
            series = self.read_series(series_id)
            existing = series.member_for_user(user.id, entry_number)
            if existing is not None:
                return existing
            member = Member(
                id=generate_id(),
                user_id=user.id,
                user_name=user.name,
                user_picture=user.picture,
                entry_number=entry_number,
                lives_remaining=series.settings.lives_per_player,
                role=role,
            )
            self._replace(series.model_copy(update={"members": [*series.members, member]}))
            return member

    def leave_series(self, series_id: str, user_id: str) -> None:
        with self._lock:
            series = self.read_series(series_id)
            members = [m for m in series.members if m.user_id != user_id]
            self._replace(series.model_copy(update={"members": members}))

    def _update_member(self, series_id: str, member_id: str, **changes) -> Member:
        with self._lock:
            series = self.read_series(series_id)
            member = series.get_member(member_id)
            if member is None:
                raise MemberNotFound(member_id)
            updated = member.model_copy(update=changes)
            members = [updated if m.id == member_id else m for m in series.members]
            self._replace(series.model_copy(update={"members": members}))
            return updated

    def write_members(self, series_id: str, members: list[Member]) -> None:
        with self._lock:
            series = self.read_series(series_id)
            by_id = {m.id: m for m in members}
            merged = [by_id.get(m.id, m) for m in series.members]
            self._replace(series.model_copy(update={"members": merged}))

    # --- Picks ---

    def write_pick(self, series_id: str, member_id: str, pick: Pick) -> Pick:
        with self._lock:
            member = self.read_series(series_id).get_member(member_id)
            if member is None:
                raise MemberNotFound(member_id)
            picks = [p for p in member.picks if p.week != pick.week]
            picks.append(pick)
            picks.sort(key=lambda p: p.week)
            self._update_member(series_id, member_id, picks=picks)
        return pick

    def write_playoff_picks(self, series_id: str, member_id: str, picks: list[PlayoffBracketPick]) -> None:
        with self._lock:
            member = self.read_series(series_id).get_member(member_id)
            if member is None:
                raise MemberNotFound(member_id)
            by_game = {p.game_id: p for p in member.playoff_picks}
            by_game.update({p.game_id: p for p in picks})
            self._update_member(series_id, member_id, playoff_picks=list(by_game.values()))

    def write_playoff_games(self, series_id: str, games: list[PlayoffGame]) -> None:
        self._update(series_id, playoff_games=sort_games(games))

    def set_playoff_stage(self, series_id: str, stage: PlayoffStage) -> None:
        self._update(series_id, playoff_stage=stage)

    def set_playoff_seeding(self, series_id: str, seeding: PlayoffSeeding) -> None:
        self._update(series_id, playoff_seeding=seeding)

    # --- Invitations ---

    def create_invitation(self, series_id: str, email: str, invited_by: str) -> Invitation:
        email = email.strip().lower()
        with self._lock:
            series = self.read_series(series_id)
            existing = next((i for i in series.invitations if i.email == email), None)
            if existing is not None and existing.status == "pending":
                return existing
            if existing is None:
                invitation = Invitation(id=generate_id(), email=email, invited_by=invited_by)
            else:
                invitation = existing.model_copy(
                    update={"invited_by": invited_by, "invited_at": datetime.now(timezone.utc), "status": "pending"}
                )
            others = [i for i in series.invitations if i.email != email]
            self._replace(series.model_copy(update={"invitations": [*others, invitation]}))
            return invitation

    def list_pending_invitations(self, email: str) -> list[tuple[Series, Invitation]]:
        email = email.strip().lower()
        return [
            (series, invitation)
            for series in self._snapshot()
            for invitation in series.invitations
            if invitation.email == email and invitation.status == "pending"
        ]

    def _find_invitation(self, invitation_id: str) -> tuple[Series, Invitation]:
        for series in self._snapshot():
            for invitation in series.invitations:
                if invitation.id == invitation_id:
                    return series, invitation
        raise InvitationNotFound(invitation_id)

    def _set_invitation_status(self, series: Series, invitation_id: str, status: str) -> Series:
        invitations = [
            i.model_copy(update={"status": status}) if i.id == invitation_id else i
            for i in series.invitations
        ]
        return series.model_copy(update={"invitations": invitations})

    def accept_invitation(self, invitation_id: str, user: User) -> Series:
        with self._lock:
            series, invitation = self._find_invitation(invitation_id)
            if invitation.status != "pending":
                raise InvitationClosed(f"Invitation already {invitation.status}")
            if invitation.email != user.email:
                raise PermissionError("Invitation was sent to a different email")
            self._replace(self._set_invitation_status(series, invitation_id, "accepted"))
            self.join_series(series.id, user)
            return self.read_series(series.id)

    def decline_invitation(self, invitation_id: str) -> None:
        with self._lock:
            series, invitation = self._find_invitation(invitation_id)
            if invitation.status != "pending":
                raise InvitationClosed(f"Invitation already {invitation.status}")
            self._replace(self._set_invitation_status(series, invitation_id, "declined"))
