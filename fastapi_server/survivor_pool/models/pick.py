"""
Picks - one team per member per week.
"""
from datetime import datetime, timezone
from typing import Optional

from sqlmodel import Field, SQLModel, UniqueConstraint


class PickRow(SQLModel, table=True):
    __tablename__ = "picks"
    __table_args__ = (
        UniqueConstraint("series_id", "member_id", "week", name="uq_pick_series_member_week"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    series_id: str = Field(foreign_key="series.id", index=True)
    member_id: str = Field(foreign_key="series_members.id", index=True)
    week: int
    team_id: str = Field(max_length=10)
    result: str = Field(default="pending")  # "pending" | "win" | "loss"
    is_auto_pick: bool = Field(default=False)
    picked_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
