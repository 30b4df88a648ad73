"""
Playoff Picks - a member's predicted winner and margin for one bracket game.
"""
from datetime import datetime, timezone
from typing import Optional

from sqlmodel import Field, SQLModel, UniqueConstraint


class PlayoffPickRow(SQLModel, table=True):
    __tablename__ = "playoff_picks"
    __table_args__ = (
        UniqueConstraint("series_id", "member_id", "game_key", name="uq_playoff_pick_member_game"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    series_id: str = Field(foreign_key="series.id", index=True)
    member_id: str = Field(foreign_key="series_members.id", index=True)
    game_key: str = Field(max_length=20)
    round: str
    picked_winner_id: str
    predicted_margin: int
    picked_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
