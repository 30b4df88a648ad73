"""
Series - one survivor or playoff pool, with its configurable rules.
"""
from datetime import datetime, timezone
from typing import Optional

from sqlmodel import Field, SQLModel


class SeriesRow(SQLModel, table=True):
    __tablename__ = "series"

    id: str = Field(primary_key=True, max_length=32)
    name: str = Field(max_length=100)
    description: str = Field(default="")
    created_by: str = Field(foreign_key="users.id", index=True)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    current_week: int = Field(default=1)
    current_week_started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    season: int
    is_active: bool = Field(default=True)
    sport: str = Field(default="nfl")  # "nfl" | "soccer"
    competition: str = Field(default="nfl")
    series_type: str = Field(default="survivor")  # "survivor" | "playoff_pool" | "last_man_standing"
    # JSON object; NULL for series created before settings existed
    settings_json: Optional[str] = None
    prize_value: Optional[float] = None
    show_prize_value: bool = Field(default=False)
    playoff_stage: str = Field(default="stage_1")
    playoff_seeding_json: Optional[str] = None
