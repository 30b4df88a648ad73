"""
Series Members - a participant's standing (lives, elimination) in one series.
"""
from datetime import datetime, timezone

from sqlmodel import Field, SQLModel, UniqueConstraint


class SeriesMemberRow(SQLModel, table=True):
    __tablename__ = "series_members"
    __table_args__ = (
        UniqueConstraint("series_id", "user_id", "entry_number", name="uq_series_user_entry"),
    )

    id: str = Field(primary_key=True, max_length=32)
    series_id: str = Field(foreign_key="series.id", index=True)
    user_id: str = Field(foreign_key="users.id", index=True)
    user_name: str = Field(default="", max_length=100)  # Denormalized from users
    user_picture: str = Field(default="")
    entry_number: int = Field(default=1)
    lives_remaining: int
    is_eliminated: bool = Field(default=False)
    role: str = Field(default="member")  # "admin" | "member"
    joined_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
