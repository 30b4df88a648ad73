"""
Immutable snapshots of a series and everything it owns.

The rule functions in this package only ever read these objects and return
new copies (``model_copy(update=...)``); the storage adapters build them from
their own rows.
"""
from datetime import datetime, timezone
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

Sport = Literal["nfl", "soccer"]
Competition = Literal["nfl", "premier_league", "world_cup_2026"]
SeriesType = Literal["survivor", "playoff_pool", "last_man_standing"]
PickResult = Literal["pending", "win", "loss"]
GameOutcome = Literal["win", "loss", "tie"]
MemberRole = Literal["admin", "member"]
InvitationStatus = Literal["pending", "accepted", "declined"]
PlayoffRound = Literal["wild_card", "divisional", "conference", "super_bowl"]
PlayoffStage = Literal["stage_1", "stage_2"]
Conference = Literal["AFC", "NFC", "SUPER_BOWL"]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Snapshot(BaseModel):
    model_config = ConfigDict(frozen=True)


class SeriesSettings(Snapshot):
    starting_week: int = Field(default=1, ge=1)
    lives_per_player: int = Field(default=2, ge=1)
    max_team_uses: int = Field(default=1, ge=1)
    tie_counts_as_win: bool = True
    allow_multiple_entries: bool = False
    max_entries_per_player: int = Field(default=1, ge=1)


class Pick(Snapshot):
    week: int
    team_id: str
    result: PickResult = "pending"
    is_auto_pick: bool = False
    picked_at: datetime = Field(default_factory=utcnow)


class TeamSource(Snapshot):
    """Points at the winner (or loser) of an earlier bracket game."""

    round: PlayoffRound
    game_number: int
    is_winner: bool = True


class PlayoffGame(Snapshot):
    id: str
    round: PlayoffRound
    conference: Conference
    game_number: int
    away_team_id: Optional[str] = None
    home_team_id: Optional[str] = None
    away_source: Optional[TeamSource] = None
    home_source: Optional[TeamSource] = None
    game_time: Optional[datetime] = None
    is_complete: bool = False
    away_score: Optional[int] = None
    home_score: Optional[int] = None
    winner_id: Optional[str] = None

    @property
    def margin(self) -> Optional[int]:
        if self.away_score is None or self.home_score is None:
            return None
        return abs(self.home_score - self.away_score)


class PlayoffSeeding(Snapshot):
    """Seven team ids per conference, index 0 is the #1 seed."""

    afc: list[str] = Field(min_length=7, max_length=7)
    nfc: list[str] = Field(min_length=7, max_length=7)

    def seed_of(self, team_id: str) -> int:
        for seeds in (self.afc, self.nfc):
            if team_id in seeds:
                return seeds.index(team_id) + 1
        return 8


class PlayoffBracketPick(Snapshot):
    game_id: str
    round: PlayoffRound
    picked_winner_id: str
    predicted_margin: int
    picked_at: datetime = Field(default_factory=utcnow)

    @property
    def is_complete(self) -> bool:
        return bool(self.picked_winner_id) and self.predicted_margin > 0


class PlayoffBracketResult(Snapshot):
    game_id: str
    picked_winner_id: str
    predicted_margin: int
    actual_winner_id: Optional[str] = None
    actual_margin: Optional[int] = None
    winner_points: int = 0
    margin_points: int = 0
    total_points: int = 0


class Member(Snapshot):
    id: str
    user_id: str
    user_name: str = ""
    user_picture: str = ""
    entry_number: int = 1
    lives_remaining: int
    is_eliminated: bool = False
    role: MemberRole = "member"
    joined_at: datetime = Field(default_factory=utcnow)
    picks: list[Pick] = Field(default_factory=list)
    playoff_picks: list[PlayoffBracketPick] = Field(default_factory=list)

    def pick_for_week(self, week: int) -> Optional[Pick]:
        for pick in self.picks:
            if pick.week == week:
                return pick
        return None


class Invitation(Snapshot):
    id: str
    email: str
    invited_by: str
    invited_at: datetime = Field(default_factory=utcnow)
    status: InvitationStatus = "pending"


class Series(Snapshot):
    id: str
    name: str
    description: str = ""
    created_by: str
    created_at: datetime = Field(default_factory=utcnow)
    current_week: int = 1
    current_week_started_at: datetime = Field(default_factory=utcnow)
    season: int
    is_active: bool = True
    settings: SeriesSettings = Field(default_factory=SeriesSettings)
    sport: Sport = "nfl"
    competition: Competition = "nfl"
    series_type: SeriesType = "survivor"
    prize_value: Optional[float] = None
    show_prize_value: bool = False
    members: list[Member] = Field(default_factory=list)
    invitations: list[Invitation] = Field(default_factory=list)
    playoff_stage: PlayoffStage = "stage_1"
    playoff_seeding: Optional[PlayoffSeeding] = None
    playoff_games: list[PlayoffGame] = Field(default_factory=list)

    def member_for_user(self, user_id: str, entry_number: int = 1) -> Optional[Member]:
        for member in self.members:
            if member.user_id == user_id and member.entry_number == entry_number:
                return member
        return None

    def get_member(self, member_id: str) -> Optional[Member]:
        for member in self.members:
            if member.id == member_id:
                return member
        return None

    def is_admin(self, user_id: str) -> bool:
        if user_id == self.created_by:
            return True
        return any(m.user_id == user_id and m.role == "admin" for m in self.members)


class User(Snapshot):
    id: str
    email: str
    name: str = ""
    picture: str = ""
