"""
Persistence interface shared by the in-memory and SQL adapters.

Adapters hand out ``Series`` snapshots and accept the objects the rule
engines return. Writes of a pick are upserts keyed on (series, member, week),
so replaying one is harmless.
"""
import logging
import threading
import uuid
from abc import ABC, abstractmethod
from collections import defaultdict
from typing import Any, Callable, Mapping, Optional

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

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[str], None]


class SeriesNotFound(LookupError):
    pass


class MemberNotFound(LookupError):
    pass


class InvitationNotFound(LookupError):
    pass


class InvitationClosed(ValueError):
    """The invitation was already accepted or declined."""


def generate_id() -> str:
    return uuid.uuid4().hex[:12]


class SeriesStore(ABC):
    """Read/write access to series aggregates plus change subscriptions."""

    def __init__(self):
        self._subscribers: dict[str, list[ChangeCallback]] = defaultdict(list)
        self._subscribers_lock = threading.Lock()

    # --- Change feed ---

    def notify_on_change(self, series_id: str, callback: ChangeCallback) -> Callable[[], None]:
        """Register ``callback(series_id)``; returns a function that unsubscribes it."""
        with self._subscribers_lock:
            self._subscribers[series_id].append(callback)

        def unsubscribe():
            with self._subscribers_lock:
                if callback in self._subscribers[series_id]:
                    self._subscribers[series_id].remove(callback)

        return unsubscribe

    def _notify(self, series_id: str) -> None:
        with self._subscribers_lock:
            callbacks = list(self._subscribers.get(series_id, []))
        for callback in callbacks:
            try:
                callback(series_id)
            except Exception:
                logger.exception("Change subscriber failed for series %s", series_id)

    # --- Users ---

    @abstractmethod
    def upsert_user(self, email: str, name: str = "", picture: str = "") -> User: ...

    @abstractmethod
    def get_user(self, user_id: str) -> Optional[User]: ...

    # --- Series ---

    @abstractmethod
    def read_series(self, series_id: str) -> Series:
        """Full aggregate; raises ``SeriesNotFound``."""

    @abstractmethod
    def list_user_series(self, user_id: str) -> list[Series]: ...

    @abstractmethod
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
    ) -> Series: ...

    @abstractmethod
    def delete_series(self, series_id: str) -> None: ...

    @abstractmethod
    def update_settings(self, series_id: str, settings: SeriesSettings, extra: Optional[Mapping[str, Any]] = None) -> Series:
        """``extra`` carries non-rule fields such as ``prize_value``."""

    @abstractmethod
    def advance_week(self, series_id: str, week: int) -> Series: ...

    # --- Members ---

    @abstractmethod
    def join_series(self, series_id: str, user: User, entry_number: int = 1, role: str = "member") -> Member: ...

    @abstractmethod
    def leave_series(self, series_id: str, user_id: str) -> None: ...

    @abstractmethod
    def write_members(self, series_id: str, members: list[Member]) -> None:
        """Persist lives, elimination and pick results for the given members."""

    # --- Picks ---

    @abstractmethod
    def write_pick(self, series_id: str, member_id: str, pick: Pick) -> Pick: ...

    @abstractmethod
    def write_playoff_picks(self, series_id: str, member_id: str, picks: list[PlayoffBracketPick]) -> None: ...

    @abstractmethod
    def write_playoff_games(self, series_id: str, games: list[PlayoffGame]) -> None: ...

    @abstractmethod
    def set_playoff_stage(self, series_id: str, stage: PlayoffStage) -> None: ...

    @abstractmethod
    def set_playoff_seeding(self, series_id: str, seeding: PlayoffSeeding) -> None: ...

    # --- Invitations ---

    @abstractmethod
    def create_invitation(self, series_id: str, email: str, invited_by: str) -> Invitation: ...

    @abstractmethod
    def list_pending_invitations(self, email: str) -> list[tuple[Series, Invitation]]: ...

    @abstractmethod
    def accept_invitation(self, invitation_id: str, user: User) -> Series: ...

    @abstractmethod
    def decline_invitation(self, invitation_id: str) -> None: ...
