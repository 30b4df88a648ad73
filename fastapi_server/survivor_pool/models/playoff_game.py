"""
Playoff Games - bracket matchups for a playoff pool series.
"""
from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel, UniqueConstraint


class PlayoffGameRow(SQLModel, table=True):
    __tablename__ = "playoff_games"
    __table_args__ = (
        UniqueConstraint("series_id", "game_key", name="uq_playoff_game_series_key"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    series_id: str = Field(foreign_key="series.id", index=True)
    game_key: str = Field(max_length=20)  # e.g., "wc-afc-1", "super-bowl"
    round: str  # "wild_card" | "divisional" | "conference" | "super_bowl"
    conference: str  # "AFC" | "NFC" | "SUPER_BOWL"
    game_number: int
    away_team_id: Optional[str] = None
    home_team_id: Optional[str] = None
    # JSON {"round", "game_number", "is_winner"} while the team is undetermined
    away_source_json: Optional[str] = None
    home_source_json: Optional[str] = None
    game_time: Optional[datetime] = None
    is_complete: bool = Field(default=False)
    away_score: Optional[int] = None
    home_score: Optional[int] = None
    winner_id: Optional[str] = None
