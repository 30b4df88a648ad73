"""
Series router - create, join, configure and advance pools.

Series ids are unguessable, so anyone holding one may view the series and
join it. Settings and week changes are for the series admins, deletion only
for the creator.
"""
import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from survivor_pool.core import survivor
from survivor_pool.core.settings import merge_settings, resolve_settings
from survivor_pool.core.survivor import SeriesStatus
from survivor_pool.core.types import Competition, Member, Series, SeriesType, Sport
from survivor_pool.routers.common import (
    check,
    current_user_id,
    get_series_or_404,
    get_user_or_404,
    require_admin,
)
from survivor_pool.storage import get_store
from survivor_pool.storage.base import SeriesStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/series", tags=["series"])

COMPETITIONS_BY_SPORT = {
    "nfl": ("nfl",),
    "soccer": ("premier_league", "world_cup_2026"),
}


# --- Request/Response Models ---

class CreateSeriesRequest(BaseModel):
    name: str = Field(min_length=1, max_length=60, description="Series name")
    description: str = Field(default="", max_length=500)
    season: Optional[int] = Field(default=None, ge=2000, le=2100)
    sport: Sport = "nfl"
    competition: Optional[Competition] = None
    series_type: SeriesType = "survivor"
    settings: dict[str, Any] = Field(default_factory=dict, description="Partial rule settings")


class SeriesSummary(BaseModel):
    id: str
    name: str
    series_type: SeriesType
    sport: Sport
    competition: Competition
    season: int
    current_week: int
    member_count: int
    is_admin: bool


class JoinSeriesRequest(BaseModel):
    new_entry: bool = Field(default=False, description="Add another entry instead of returning the existing one")


class UpdateSettingsRequest(BaseModel):
    settings: dict[str, Any] = Field(default_factory=dict)
    name: Optional[str] = Field(default=None, min_length=1, max_length=60)
    description: Optional[str] = Field(default=None, max_length=500)
    prize_value: Optional[float] = Field(default=None, ge=0)
    show_prize_value: Optional[bool] = None
    is_active: Optional[bool] = None


class AdvanceWeekRequest(BaseModel):
    week: Optional[int] = Field(default=None, ge=1, le=38, description="Defaults to the next week")


def _summary(series: Series, user_id: str) -> SeriesSummary:
    return SeriesSummary(
        id=series.id,
        name=series.name,
        series_type=series.series_type,
        sport=series.sport,
        competition=series.competition,
        season=series.season,
        current_week=series.current_week,
        member_count=len(series.members),
        is_admin=series.is_admin(user_id),
    )


# --- Endpoints ---

@router.post("", response_model=Series)
def create_series(
    request: CreateSeriesRequest,
    user_id: str = Depends(current_user_id),
    store: SeriesStore = Depends(get_store),
):
    """
    Create a series. The creator joins it as its first member and admin.
    """
    user = get_user_or_404(store, user_id)

    competition = request.competition or COMPETITIONS_BY_SPORT[request.sport][0]
    if competition not in COMPETITIONS_BY_SPORT[request.sport]:
        raise HTTPException(status_code=422, detail=f"{competition} is not a {request.sport} competition")
    if request.series_type == "playoff_pool" and request.sport != "nfl":
        raise HTTPException(status_code=422, detail="Playoff pools are NFL only")

    try:
        settings = resolve_settings(request.settings)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    return store.create_series(
        user,
        name=request.name.strip(),
        description=request.description.strip(),
        season=request.season,
        settings=settings,
        sport=request.sport,
        competition=competition,
        series_type=request.series_type,
    )


@router.get("", response_model=list[SeriesSummary])
def list_series(
    user_id: str = Depends(current_user_id),
    store: SeriesStore = Depends(get_store),
):
    """Series the acting user has an entry in."""
    return [_summary(s, user_id) for s in store.list_user_series(user_id)]


@router.get("/{series_id}", response_model=Series)
def get_series(
    series_id: str,
    user_id: str = Depends(current_user_id),
    store: SeriesStore = Depends(get_store),
):
    return get_series_or_404(store, series_id)


@router.post("/{series_id}/join", response_model=Member)
def join_series(
    series_id: str,
    request: Optional[JoinSeriesRequest] = None,
    user_id: str = Depends(current_user_id),
    store: SeriesStore = Depends(get_store),
):
    """
    Join a series. Joining again returns the existing first entry unless
    ``new_entry`` is set and the series allows multiple entries.
    """
    user = get_user_or_404(store, user_id)
    series = get_series_or_404(store, series_id)

    existing = series.member_for_user(user_id)
    if existing is not None and not (request and request.new_entry):
        return existing

    entry_number = check(survivor.next_entry_number(series, user_id))
    member = store.join_series(series_id, user, entry_number=entry_number)
    logger.info("User %s joined series %s (entry %s)", user_id, series_id, entry_number)
    return member


@router.delete("/{series_id}/members/me")
def leave_series(
    series_id: str,
    user_id: str = Depends(current_user_id),
    store: SeriesStore = Depends(get_store),
):
    """Remove every entry the acting user has in the series."""
    series = get_series_or_404(store, series_id)
    if series.created_by == user_id:
        raise HTTPException(status_code=409, detail="The creator cannot leave; delete the series instead")
    if not any(m.user_id == user_id for m in series.members):
        raise HTTPException(status_code=404, detail="Member not found")

    store.leave_series(series_id, user_id)
    return {"message": "Successfully left the series"}


@router.delete("/{series_id}")
def delete_series(
    series_id: str,
    user_id: str = Depends(current_user_id),
    store: SeriesStore = Depends(get_store),
):
    """
    Delete a series with all of its members, picks and invitations.

    Only the creator may do this.
    """
    series = get_series_or_404(store, series_id)
    if series.created_by != user_id:
        raise HTTPException(status_code=403, detail="Only the creator can delete a series")

    store.delete_series(series_id)
    logger.info("Deleted series %s", series_id)
    return {"message": "Series deleted successfully"}


@router.patch("/{series_id}/settings", response_model=Series)
def update_settings(
    series_id: str,
    request: UpdateSettingsRequest,
    user_id: str = Depends(current_user_id),
    store: SeriesStore = Depends(get_store),
):
    series = get_series_or_404(store, series_id)
    require_admin(series, user_id)

    try:
        settings = merge_settings(series.settings, request.settings)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    extra = request.model_dump(exclude={"settings"}, exclude_none=True)
    return store.update_settings(series_id, settings, extra)


@router.post("/{series_id}/advance-week", response_model=Series)
def advance_week(
    series_id: str,
    request: Optional[AdvanceWeekRequest] = None,
    user_id: str = Depends(current_user_id),
    store: SeriesStore = Depends(get_store),
):
    """Open the next week for picks; its deadline counts from now."""
    series = get_series_or_404(store, series_id)
    require_admin(series, user_id)

    week = (request.week if request and request.week else None) or series.current_week + 1
    if week <= series.current_week:
        raise HTTPException(status_code=422, detail=f"Week {week} is not after week {series.current_week}")

    logger.info("Series %s advancing from week %s to %s", series_id, series.current_week, week)
    return store.advance_week(series_id, week)


@router.get("/{series_id}/status", response_model=SeriesStatus)
def get_status(
    series_id: str,
    entry_number: int = Query(default=1, ge=1),
    user_id: str = Depends(current_user_id),
    store: SeriesStore = Depends(get_store),
):
    """The acting user's lives, used teams and pick state for the current week."""
    series = get_series_or_404(store, series_id)
    return survivor.get_user_series_status(series, user_id, entry_number)
