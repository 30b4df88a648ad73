"""
Users - people who sign in and take part in series.
"""
from datetime import datetime, timezone

from sqlmodel import Field, SQLModel


class UserRow(SQLModel, table=True):
    __tablename__ = "users"

    id: str = Field(primary_key=True, max_length=32)
    email: str = Field(index=True, unique=True)
    name: str = Field(default="", max_length=100)
    picture: str = Field(default="")
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
