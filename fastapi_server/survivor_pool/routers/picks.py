"""
Picks router - weekly survivor picks, auto-picks at the deadline and results.
"""
import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from survivor_pool.core import survivor
from survivor_pool.core.errors import EliminatedError, NoEligibleAutoPickError, WeekNotOpenError
from survivor_pool.core.types import GameOutcome, Member, Pick
from survivor_pool.routers.common import (
    check,
    current_user_id,
    get_series_or_404,
    require_admin,
    require_member,
    require_series_type,
)
from survivor_pool.storage import get_store
from survivor_pool.storage.base import SeriesStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/series/{series_id}", tags=["picks"])

SURVIVOR_TYPES = ("survivor", "last_man_standing")


# --- Request/Response Models ---

class MakePickRequest(BaseModel):
    week: int = Field(ge=1)
    team_id: str = Field(min_length=2, max_length=8)
    entry_number: int = Field(default=1, ge=1)


class AdminPickRequest(BaseModel):
    week: int = Field(ge=1)
    team_id: str = Field(min_length=2, max_length=8)


class AutoPicksRequest(BaseModel):
    week: Optional[int] = Field(default=None, ge=1, description="Defaults to the current week")


class AutoPickEntry(BaseModel):
    member_id: str
    user_name: str
    team_id: str


class AutoPickFailure(BaseModel):
    member_id: str
    user_name: str
    code: str
    detail: str


class AutoPicksResponse(BaseModel):
    week: int
    auto_picks: list[AutoPickEntry]
    failures: list[AutoPickFailure]


class PostResultsRequest(BaseModel):
    week: int = Field(ge=1)
    outcomes: dict[str, GameOutcome] = Field(description="Outcome by team id: win, loss or tie")


class DeadlineResponse(BaseModel):
    week: int
    deadline: datetime
    deadline_passed: bool


def _require_survivor(series):
    if series.series_type not in SURVIVOR_TYPES:
        require_series_type(series, "survivor")


# --- Endpoints ---

@router.post("/picks", response_model=Pick)
def make_pick(
    series_id: str,
    request: MakePickRequest,
    user_id: str = Depends(current_user_id),
    store: SeriesStore = Depends(get_store),
):
    """
    Make or replace the acting user's pick for a week.

    Refusals come back as ``{"code", "detail"}`` with the rule's status.
    """
    series = get_series_or_404(store, series_id)
    _require_survivor(series)
    member = require_member(series, user_id, request.entry_number)

    pick = check(survivor.validate_pick(series, member, request.week, request.team_id))
    store.write_pick(series_id, member.id, pick)
    logger.info("Member %s picked %s for week %s in %s", member.id, pick.team_id, pick.week, series_id)
    return pick


@router.put("/members/{member_id}/picks", response_model=Pick)
def admin_pick(
    series_id: str,
    member_id: str,
    request: AdminPickRequest,
    user_id: str = Depends(current_user_id),
    store: SeriesStore = Depends(get_store),
):
    """Set a member's pick on their behalf, also after the deadline."""
    series = get_series_or_404(store, series_id)
    _require_survivor(series)
    require_admin(series, user_id)

    member = series.get_member(member_id)
    if member is None:
        raise HTTPException(status_code=404, detail="Member not found")

    pick = check(survivor.validate_admin_pick(series, member, request.week, request.team_id))
    store.write_pick(series_id, member.id, pick)
    logger.info("Admin %s set pick %s for member %s week %s", user_id, pick.team_id, member_id, pick.week)
    return pick


@router.get("/picks/available", response_model=list[str])
def get_available_teams(
    series_id: str,
    week: Optional[int] = Query(default=None, ge=1),
    entry_number: int = Query(default=1, ge=1),
    user_id: str = Depends(current_user_id),
    store: SeriesStore = Depends(get_store),
):
    """Teams the acting user can still pick for a week (defaults to the current one)."""
    series = get_series_or_404(store, series_id)
    member = require_member(series, user_id, entry_number)
    return survivor.available_teams(series, member, week or series.current_week)


@router.post("/auto-picks", response_model=AutoPicksResponse)
def run_auto_picks(
    series_id: str,
    request: Optional[AutoPicksRequest] = None,
    user_id: str = Depends(current_user_id),
    store: SeriesStore = Depends(get_store),
):
    """
    Fill in a pick for every active member who missed the deadline.

    Members with a pick keep it, so running this twice changes nothing.
    """
    series = get_series_or_404(store, series_id)
    _require_survivor(series)
    require_admin(series, user_id)

    week = (request.week if request and request.week else None) or series.current_week
    if not survivor.is_week_open(series, week):
        raise WeekNotOpenError(f"Week {week} is not open for picks", week=week)
    if not survivor.is_deadline_passed(series, week):
        raise HTTPException(status_code=409, detail=f"The deadline for week {week} has not passed yet")

    picks, failures = [], []
    for member in series.members:
        outcome = survivor.apply_auto_pick(series, member, week)
        if isinstance(outcome, EliminatedError):
            continue
        if isinstance(outcome, NoEligibleAutoPickError):
            logger.error("Auto-pick failed for member %s in series %s: %s", member.id, series_id, outcome.message)
            failures.append(
                AutoPickFailure(member_id=member.id, user_name=member.user_name, code=outcome.code, detail=outcome.message)
            )
            continue
        if outcome == member.pick_for_week(week):
            # already picked
            continue

        store.write_pick(series_id, member.id, outcome)
        picks.append(AutoPickEntry(member_id=member.id, user_name=member.user_name, team_id=outcome.team_id))

    logger.info("Auto-picked %s member(s) for week %s in %s", len(picks), week, series_id)
    return AutoPicksResponse(week=week, auto_picks=picks, failures=failures)


@router.post("/results", response_model=list[Member])
def post_results(
    series_id: str,
    request: PostResultsRequest,
    user_id: str = Depends(current_user_id),
    store: SeriesStore = Depends(get_store),
):
    """
    Resolve the week's pending picks from game outcomes.

    Already-resolved picks are left alone, so posting the same results again
    does not take a second life.
    """
    series = get_series_or_404(store, series_id)
    _require_survivor(series)
    require_admin(series, user_id)

    members = survivor.apply_week_result(series, request.week, request.outcomes)
    store.write_members(series_id, members)

    eliminated = [m.id for m in members if m.is_eliminated and not series.get_member(m.id).is_eliminated]
    if eliminated:
        logger.info("Week %s eliminated %s member(s) in %s", request.week, len(eliminated), series_id)
    return members


@router.get("/deadline", response_model=DeadlineResponse)
def get_deadline(
    series_id: str,
    store: SeriesStore = Depends(get_store),
):
    series = get_series_or_404(store, series_id)
    return DeadlineResponse(
        week=series.current_week,
        deadline=survivor.week_deadline(series),
        deadline_passed=survivor.is_deadline_passed(series, series.current_week),
    )
