"""
Invitations - email-addressed offers to join a series.
"""
from datetime import datetime, timezone

from sqlmodel import Field, SQLModel, UniqueConstraint


class InvitationRow(SQLModel, table=True):
    __tablename__ = "invitations"
    __table_args__ = (
        UniqueConstraint("series_id", "email", name="uq_invitation_series_email"),
    )

    id: str = Field(primary_key=True, max_length=32)
    series_id: str = Field(foreign_key="series.id", index=True)
    email: str = Field(index=True)
    invited_by: str
    invited_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    status: str = Field(default="pending")  # "pending" | "accepted" | "declined"
