"""
SQLModel-backed store.

Rows live in the tables from ``survivor_pool.models``; every read assembles
a fresh ``Series`` snapshot. Picks are upserted on the
(series_id, member_id, week) unique constraint.
"""
import json
import logging
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

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
    TeamSource,
    User,
)
from survivor_pool.models import (
    InvitationRow,
    PickRow,
    PlayoffGameRow,
    PlayoffPickRow,
    SeriesMemberRow,
    SeriesRow,
    UserRow,
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


def _utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _source(raw: Optional[str]) -> Optional[TeamSource]:
    return TeamSource(**json.loads(raw)) if raw else None


def _source_json(source: Optional[TeamSource]) -> Optional[str]:
    return source.model_dump_json() if source else None


def _to_user(row: UserRow) -> User:
    return User(id=row.id, email=row.email, name=row.name, picture=row.picture)


def _to_pick(row: PickRow) -> Pick:
    return Pick(
        week=row.week,
        team_id=row.team_id,
        result=row.result,
        is_auto_pick=row.is_auto_pick,
        picked_at=_utc(row.picked_at),
    )


def _to_playoff_pick(row: PlayoffPickRow) -> PlayoffBracketPick:
    return PlayoffBracketPick(
        game_id=row.game_key,
        round=row.round,
        picked_winner_id=row.picked_winner_id,
        predicted_margin=row.predicted_margin,
        picked_at=_utc(row.picked_at),
    )


def _to_game(row: PlayoffGameRow) -> PlayoffGame:
    return PlayoffGame(
        id=row.game_key,
        round=row.round,
        conference=row.conference,
        game_number=row.game_number,
        away_team_id=row.away_team_id,
        home_team_id=row.home_team_id,
        away_source=_source(row.away_source_json),
        home_source=_source(row.home_source_json),
        game_time=_utc(row.game_time),
        is_complete=row.is_complete,
        away_score=row.away_score,
        home_score=row.home_score,
        winner_id=row.winner_id,
    )


def _to_invitation(row: InvitationRow) -> Invitation:
    return Invitation(
        id=row.id,
        email=row.email,
        invited_by=row.invited_by,
        invited_at=_utc(row.invited_at),
        status=row.status,
    )


class SqlStore(SeriesStore):
    def __init__(self, engine):
        super().__init__()
        self.engine = engine

    # --- Snapshot assembly ---

    def _build_series(self, session: Session, row: SeriesRow) -> Series:
        member_rows = session.exec(
            select(SeriesMemberRow)
            .where(SeriesMemberRow.series_id == row.id)
            .order_by(SeriesMemberRow.joined_at)
        ).all()
        pick_rows = session.exec(
            select(PickRow).where(PickRow.series_id == row.id).order_by(PickRow.week)
        ).all()
        playoff_pick_rows = session.exec(
            select(PlayoffPickRow).where(PlayoffPickRow.series_id == row.id)
        ).all()
        invitation_rows = session.exec(
            select(InvitationRow)
            .where(InvitationRow.series_id == row.id)
            .order_by(InvitationRow.invited_at)
        ).all()
        game_rows = session.exec(
            select(PlayoffGameRow).where(PlayoffGameRow.series_id == row.id)
        ).all()

        members = []
        for m in member_rows:
            members.append(
                Member(
                    id=m.id,
                    user_id=m.user_id,
                    user_name=m.user_name,
                    user_picture=m.user_picture,
                    entry_number=m.entry_number,
                    lives_remaining=m.lives_remaining,
                    is_eliminated=m.is_eliminated,
                    role=m.role,
                    joined_at=_utc(m.joined_at),
                    picks=[_to_pick(p) for p in pick_rows if p.member_id == m.id],
                    playoff_picks=[_to_playoff_pick(p) for p in playoff_pick_rows if p.member_id == m.id],
                )
            )

        settings = json.loads(row.settings_json) if row.settings_json else None
        seeding = PlayoffSeeding(**json.loads(row.playoff_seeding_json)) if row.playoff_seeding_json else None

        return Series(
            id=row.id,
            name=row.name,
            description=row.description,
            created_by=row.created_by,
            created_at=_utc(row.created_at),
            current_week=row.current_week,
            current_week_started_at=_utc(row.current_week_started_at),
            season=row.season,
            is_active=row.is_active,
            settings=resolve_settings(settings),
            sport=row.sport,
            competition=row.competition,
            series_type=row.series_type,
            prize_value=row.prize_value,
            show_prize_value=row.show_prize_value,
            members=members,
            invitations=[_to_invitation(i) for i in invitation_rows],
            playoff_stage=row.playoff_stage,
            playoff_seeding=seeding,
            playoff_games=sort_games(_to_game(g) for g in game_rows),
        )

    def _series_row(self, session: Session, series_id: str) -> SeriesRow:
        row = session.get(SeriesRow, series_id)
        if row is None:
            raise SeriesNotFound(series_id)
        return row

    def _member_row(self, session: Session, series_id: str, member_id: str) -> SeriesMemberRow:
        row = session.get(SeriesMemberRow, member_id)
        if row is None or row.series_id != series_id:
            raise MemberNotFound(member_id)
        return row

    # --- Users ---

    def upsert_user(self, email: str, name: str = "", picture: str = "") -> User:
        email = email.strip().lower()
        with Session(self.engine) as session:
            row = session.exec(select(UserRow).where(UserRow.email == email)).first()
            if row is None:
                row = UserRow(id=generate_id(), email=email, name=name, picture=picture)
            else:
                row.name = name or row.name
                row.picture = picture or row.picture
            session.add(row)
            session.commit()
            session.refresh(row)
            return _to_user(row)

    def get_user(self, user_id: str) -> Optional[User]:
        with Session(self.engine) as session:
            row = session.get(UserRow, user_id)
            return _to_user(row) if row else None

    # --- Series ---

    def read_series(self, series_id: str) -> Series:
        with Session(self.engine) as session:
            return self._build_series(session, self._series_row(session, series_id))

    def list_user_series(self, user_id: str) -> list[Series]:
        with Session(self.engine) as session:
            series_ids = session.exec(
                select(SeriesMemberRow.series_id)
                .where(SeriesMemberRow.user_id == user_id)
                .distinct()
            ).all()
            rows = session.exec(
                select(SeriesRow).where(SeriesRow.id.in_(series_ids)).order_by(SeriesRow.created_at)
            ).all()
            return [self._build_series(session, row) for row in rows]

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
        with Session(self.engine) as session:
            row = SeriesRow(
                id=generate_id(),
                name=name,
                description=description,
                created_by=creator.id,
                created_at=now,
                current_week=current_week or settings.starting_week,
                current_week_started_at=now,
                season=season or now.year,
                sport=sport,
                competition=competition,
                series_type=series_type,
                settings_json=settings.model_dump_json(),
            )
            session.add(row)
            session.flush()

            # Creator is the first member, with the admin role
            session.add(
                SeriesMemberRow(
                    id=generate_id(),
                    series_id=row.id,
                    user_id=creator.id,
                    user_name=creator.name,
                    user_picture=creator.picture,
                    lives_remaining=settings.lives_per_player,
                    role="admin",
                    joined_at=now,
                )
            )
            series_id = row.id
            session.commit()

        logger.info("Created series %s (%s) for %s", series_id, series_type, creator.id)
        self._notify(series_id)
        return self.read_series(series_id)

    def delete_series(self, series_id: str) -> None:
        with Session(self.engine) as session:
            row = self._series_row(session, series_id)
            # Delete dependent rows first
            for model in (PlayoffPickRow, PickRow, PlayoffGameRow, InvitationRow, SeriesMemberRow):
                for child in session.exec(select(model).where(model.series_id == series_id)).all():
                    session.delete(child)
            session.flush()
            session.delete(row)
            session.commit()
        self._notify(series_id)

    def update_settings(self, series_id: str, settings: SeriesSettings, extra: Optional[Mapping[str, Any]] = None) -> Series:
        with Session(self.engine) as session:
            row = self._series_row(session, series_id)
            row.settings_json = settings.model_dump_json()
            for key, value in (extra or {}).items():
                setattr(row, key, value)
            session.add(row)
            session.commit()
        self._notify(series_id)
        return self.read_series(series_id)

    def advance_week(self, series_id: str, week: int) -> Series:
        with Session(self.engine) as session:
            row = self._series_row(session, series_id)
            row.current_week = week
            row.current_week_started_at = datetime.now(timezone.utc)
            session.add(row)
            session.commit()
        self._notify(series_id)
        return self.read_series(series_id)

    # --- Members ---

    def join_series(self, series_id: str, user: User, entry_number: int = 1, role: str = "member") -> Member:
        with Session(self.engine) as session:
            series_row = self._series_row(session, series_id)
            existing = session.exec(
                select(SeriesMemberRow)
                .where(SeriesMemberRow.series_id == series_id)
                .where(SeriesMemberRow.user_id == user.id)
                .where(SeriesMemberRow.entry_number == entry_number)
            ).first()
            if existing is None:
                settings = resolve_settings(json.loads(series_row.settings_json) if series_row.settings_json else None)
                existing = SeriesMemberRow(
                    id=generate_id(),
                    series_id=series_id,
                    user_id=user.id,
                    user_name=user.name,
                    user_picture=user.picture,
                    entry_number=entry_number,
                    lives_remaining=settings.lives_per_player,
                    role=role,
                )
                session.add(existing)
                session.commit()
            member_id = existing.id

        self._notify(series_id)
        return self.read_series(series_id).get_member(member_id)

    def leave_series(self, series_id: str, user_id: str) -> None:
        with Session(self.engine) as session:
            self._series_row(session, series_id)
            rows = session.exec(
                select(SeriesMemberRow)
                .where(SeriesMemberRow.series_id == series_id)
                .where(SeriesMemberRow.user_id == user_id)
            ).all()
            member_ids = [r.id for r in rows]
            for model in (PickRow, PlayoffPickRow):
                for child in session.exec(select(model).where(model.member_id.in_(member_ids))).all():
                    session.delete(child)
            session.commit()
            for row in rows:
                session.delete(row)
            session.commit()
        self._notify(series_id)

    def write_members(self, series_id: str, members: list[Member]) -> None:
        with Session(self.engine) as session:
            for member in members:
                row = self._member_row(session, series_id, member.id)
                row.lives_remaining = member.lives_remaining
                row.is_eliminated = member.is_eliminated
                session.add(row)
                results = {p.week: p.result for p in member.picks}
                pick_rows = session.exec(
                    select(PickRow).where(PickRow.member_id == member.id)
                ).all()
                for pick_row in pick_rows:
                    if pick_row.week in results and pick_row.result != results[pick_row.week]:
                        pick_row.result = results[pick_row.week]
                        session.add(pick_row)
            session.commit()
        self._notify(series_id)

    # --- Picks ---

    def _upsert_pick(self, session: Session, series_id: str, member_id: str, pick: Pick) -> None:
        row = session.exec(
            select(PickRow)
            .where(PickRow.series_id == series_id)
            .where(PickRow.member_id == member_id)
            .where(PickRow.week == pick.week)
        ).first()
        if row is None:
            row = PickRow(series_id=series_id, member_id=member_id, week=pick.week, team_id=pick.team_id)
        row.team_id = pick.team_id
        row.result = pick.result
        row.is_auto_pick = pick.is_auto_pick
        row.picked_at = pick.picked_at
        session.add(row)
        session.commit()

    def write_pick(self, series_id: str, member_id: str, pick: Pick) -> Pick:
        with Session(self.engine) as session:
            self._member_row(session, series_id, member_id)
            try:
                self._upsert_pick(session, series_id, member_id, pick)
            except IntegrityError:
                # Another writer inserted the same (series, member, week) first
                session.rollback()
                logger.warning("Pick conflict for member %s week %s, updating", member_id, pick.week)
                self._upsert_pick(session, series_id, member_id, pick)
        self._notify(series_id)
        return pick

    def write_playoff_picks(self, series_id: str, member_id: str, picks: list[PlayoffBracketPick]) -> None:
        with Session(self.engine) as session:
            self._member_row(session, series_id, member_id)
            existing = {
                r.game_key: r
                for r in session.exec(
                    select(PlayoffPickRow)
                    .where(PlayoffPickRow.series_id == series_id)
                    .where(PlayoffPickRow.member_id == member_id)
                ).all()
            }
            for pick in picks:
                row = existing.get(pick.game_id) or PlayoffPickRow(
                    series_id=series_id,
                    member_id=member_id,
                    game_key=pick.game_id,
                    round=pick.round,
                    picked_winner_id=pick.picked_winner_id,
                    predicted_margin=pick.predicted_margin,
                )
                row.picked_winner_id = pick.picked_winner_id
                row.predicted_margin = pick.predicted_margin
                row.picked_at = pick.picked_at
                session.add(row)
            session.commit()
        self._notify(series_id)

    def write_playoff_games(self, series_id: str, games: list[PlayoffGame]) -> None:
        with Session(self.engine) as session:
            self._series_row(session, series_id)
            existing = {
                r.game_key: r
                for r in session.exec(select(PlayoffGameRow).where(PlayoffGameRow.series_id == series_id)).all()
            }
            for game in games:
                row = existing.get(game.id) or PlayoffGameRow(
                    series_id=series_id,
                    game_key=game.id,
                    round=game.round,
                    conference=game.conference,
                    game_number=game.game_number,
                )
                row.away_team_id = game.away_team_id
                row.home_team_id = game.home_team_id
                row.away_source_json = _source_json(game.away_source)
                row.home_source_json = _source_json(game.home_source)
                row.game_time = game.game_time
                row.is_complete = game.is_complete
                row.away_score = game.away_score
                row.home_score = game.home_score
                row.winner_id = game.winner_id
                session.add(row)
            session.commit()
        self._notify(series_id)

    def set_playoff_stage(self, series_id: str, stage: PlayoffStage) -> None:
        with Session(self.engine) as session:
            row = self._series_row(session, series_id)
            row.playoff_stage = stage
            session.add(row)
            session.commit()
        self._notify(series_id)

    def set_playoff_seeding(self, series_id: str, seeding: PlayoffSeeding) -> None:
        with Session(self.engine) as session:
            row = self._series_row(session, series_id)
            row.playoff_seeding_json = seeding.model_dump_json()
            session.add(row)
            session.commit()
        self._notify(series_id)

    # --- Invitations ---

    def create_invitation(self, series_id: str, email: str, invited_by: str) -> Invitation:
        email = email.strip().lower()
        with Session(self.engine) as session:
            self._series_row(session, series_id)
            row = session.exec(
                select(InvitationRow)
                .where(InvitationRow.series_id == series_id)
                .where(InvitationRow.email == email)
            ).first()
            if row is not None and row.status == "pending":
                return _to_invitation(row)
            if row is None:
                row = InvitationRow(id=generate_id(), series_id=series_id, email=email, invited_by=invited_by)
            else:
                row.invited_by = invited_by
                row.invited_at = datetime.now(timezone.utc)
                row.status = "pending"
            session.add(row)
            session.commit()
            session.refresh(row)
            invitation = _to_invitation(row)
        self._notify(series_id)
        return invitation

    def list_pending_invitations(self, email: str) -> list[tuple[Series, Invitation]]:
        email = email.strip().lower()
        with Session(self.engine) as session:
            rows = session.exec(
                select(InvitationRow)
                .where(InvitationRow.email == email)
                .where(InvitationRow.status == "pending")
                .order_by(InvitationRow.invited_at)
            ).all()
            return [
                (self._build_series(session, self._series_row(session, r.series_id)), _to_invitation(r))
                for r in rows
            ]

    def _invitation_row(self, session: Session, invitation_id: str) -> InvitationRow:
        row = session.get(InvitationRow, invitation_id)
        if row is None:
            raise InvitationNotFound(invitation_id)
        if row.status != "pending":
            raise InvitationClosed(f"Invitation already {row.status}")
        return row

    def accept_invitation(self, invitation_id: str, user: User) -> Series:
        with Session(self.engine) as session:
            row = self._invitation_row(session, invitation_id)
            if row.email != user.email:
                raise PermissionError("Invitation was sent to a different email")
            row.status = "accepted"
            session.add(row)
            session.commit()
            series_id = row.series_id

        self.join_series(series_id, user)
        return self.read_series(series_id)

    def decline_invitation(self, invitation_id: str) -> None:
        with Session(self.engine) as session:
            row = self._invitation_row(session, invitation_id)
            row.status = "declined"
            session.add(row)
            session.commit()
            series_id = row.series_id
        self._notify(series_id)
