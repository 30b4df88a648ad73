"""
Invitations router - invite by email, then accept or decline.

An invitation is only a stored record; delivering it is left to the client.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from survivor_pool.core.types import Invitation, Series
from survivor_pool.routers.common import current_user_id, get_series_or_404, get_user_or_404, require_admin
from survivor_pool.storage import get_store
from survivor_pool.storage.base import SeriesStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["invitations"])


class InviteRequest(BaseModel):
    email: str = Field(min_length=3, max_length=254, pattern=r"^[^@\s]+@[^@\s]+$")


class PendingInvitation(BaseModel):
    invitation: Invitation
    series_id: str
    series_name: str
    series_type: str


@router.post("/series/{series_id}/invitations", response_model=Invitation)
def create_invitation(
    series_id: str,
    request: InviteRequest,
    user_id: str = Depends(current_user_id),
    store: SeriesStore = Depends(get_store),
):
    """Invite an email to the series. Inviting a pending email again returns the same invitation."""
    series = get_series_or_404(store, series_id)
    require_admin(series, user_id)

    invitation = store.create_invitation(series_id, request.email, invited_by=user_id)
    logger.info("Invitation %s to series %s", invitation.id, series_id)
    return invitation


@router.get("/invitations", response_model=list[PendingInvitation])
def list_invitations(
    user_id: str = Depends(current_user_id),
    store: SeriesStore = Depends(get_store),
):
    """Pending invitations for the acting user's email."""
    user = get_user_or_404(store, user_id)
    return [
        PendingInvitation(
            invitation=invitation,
            series_id=series.id,
            series_name=series.name,
            series_type=series.series_type,
        )
        for series, invitation in store.list_pending_invitations(user.email)
    ]


@router.post("/invitations/{invitation_id}/accept", response_model=Series)
def accept_invitation(
    invitation_id: str,
    user_id: str = Depends(current_user_id),
    store: SeriesStore = Depends(get_store),
):
    """Accept an invitation and join its series."""
    user = get_user_or_404(store, user_id)
    series = store.accept_invitation(invitation_id, user)
    logger.info("User %s accepted invitation %s", user_id, invitation_id)
    return series


@router.post("/invitations/{invitation_id}/decline")
def decline_invitation(
    invitation_id: str,
    user_id: str = Depends(current_user_id),
    store: SeriesStore = Depends(get_store),
):
    user = get_user_or_404(store, user_id)
    pending = {i.id for _, i in store.list_pending_invitations(user.email)}
    if invitation_id not in pending:
        raise HTTPException(status_code=404, detail="Invitation not found")

    store.decline_invitation(invitation_id)
    return {"message": "Invitation declined"}
