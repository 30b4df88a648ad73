"""
Playoff router - bracket seeding, game results, bracket picks and standings.

Picks are submitted per stage: stage 1 is the wild card round, stage 2 is the
divisional round through the Super Bowl, filled out in one go from the
participant's own predicted winners.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from survivor_pool.core import playoff, schedule
from survivor_pool.core.types import (
    PlayoffBracketPick,
    PlayoffBracketResult,
    PlayoffGame,
    PlayoffSeeding,
    PlayoffStage,
    Series,
)
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

router = APIRouter(prefix="/api/series/{series_id}/playoff", tags=["playoff"])


# --- Request/Response Models ---

class SeedingRequest(BaseModel):
    afc: list[str] = Field(min_length=7, max_length=7, description="AFC team ids, #1 seed first")
    nfc: list[str] = Field(min_length=7, max_length=7, description="NFC team ids, #1 seed first")


class GameResultRequest(BaseModel):
    away_score: int = Field(ge=0)
    home_score: int = Field(ge=0)


class StageRequest(BaseModel):
    stage: PlayoffStage


class BracketPickEntry(BaseModel):
    game_id: str
    picked_winner_id: str = Field(min_length=2, max_length=8)
    predicted_margin: int


class SubmitPicksRequest(BaseModel):
    entry_number: int = Field(default=1, ge=1)
    picks: list[BracketPickEntry] = Field(min_length=1)


class SubmitPicksResponse(BaseModel):
    picks: list[PlayoffBracketPick]
    stage_submitted: bool


class GameView(BaseModel):
    game: PlayoffGame
    round_name: str
    away_team_id: Optional[str] = None  # resolved with the viewer's own predictions
    home_team_id: Optional[str] = None


# --- Helpers ---

def _playoff_series(store: SeriesStore, series_id: str) -> Series:
    series = get_series_or_404(store, series_id)
    require_series_type(series, "playoff_pool")
    return series


def _validate_seeding(request: SeedingRequest) -> PlayoffSeeding:
    afc = [t.lower() for t in request.afc]
    nfc = [t.lower() for t in request.nfc]
    if len(set(afc + nfc)) != 14:
        raise HTTPException(status_code=422, detail="A team can only be seeded once")

    for conference, teams in (("AFC", afc), ("NFC", nfc)):
        for team_id in teams:
            team = schedule.get_team(team_id)
            if team is None or team.get("conference") != conference:
                raise HTTPException(status_code=422, detail=f"{team_id.upper()} is not an {conference} team")
    return PlayoffSeeding(afc=afc, nfc=nfc)


def _find_game_or_404(series: Series, game_id: str) -> PlayoffGame:
    for game in series.playoff_games:
        if game.id == game_id:
            return game
    raise HTTPException(status_code=404, detail=f"Game {game_id} not found")


# --- Endpoints ---

@router.put("/seeding", response_model=list[PlayoffGame])
def set_seeding(
    series_id: str,
    request: SeedingRequest,
    user_id: str = Depends(current_user_id),
    store: SeriesStore = Depends(get_store),
):
    """
    Seed the bracket and generate the wild card games.

    Seeding can be changed until the first game is complete.
    """
    series = _playoff_series(store, series_id)
    require_admin(series, user_id)
    if any(g.is_complete for g in series.playoff_games):
        raise HTTPException(status_code=409, detail="Seeding is locked once a playoff game is complete")

    seeding = _validate_seeding(request)
    games = playoff.advance_bracket([], seeding)

    store.set_playoff_seeding(series_id, seeding)
    store.write_playoff_games(series_id, games)
    logger.info("Seeded playoff bracket for series %s", series_id)
    return games


@router.get("/games", response_model=list[GameView])
def get_games(
    series_id: str,
    entry_number: int = Query(default=1, ge=1),
    user_id: str = Depends(current_user_id),
    store: SeriesStore = Depends(get_store),
):
    """Bracket games in order, with placeholder teams filled from the viewer's picks."""
    series = _playoff_series(store, series_id)
    member = series.member_for_user(user_id, entry_number)
    predicted = {p.game_id: p.picked_winner_id for p in member.playoff_picks} if member else {}

    views = []
    for game in playoff.sort_games(series.playoff_games):
        matchup = playoff.resolve_matchup(game, series.playoff_games, series.playoff_seeding, predicted)
        away, home = matchup if matchup else (game.away_team_id, game.home_team_id)
        views.append(
            GameView(
                game=game,
                round_name=playoff.ROUND_DISPLAY_NAMES[game.round],
                away_team_id=away,
                home_team_id=home,
            )
        )
    return views


@router.post("/games/{game_id}/result", response_model=list[PlayoffGame])
def post_game_result(
    series_id: str,
    game_id: str,
    request: GameResultRequest,
    user_id: str = Depends(current_user_id),
    store: SeriesStore = Depends(get_store),
):
    """Record a final score and advance the bracket."""
    series = _playoff_series(store, series_id)
    require_admin(series, user_id)
    game = _find_game_or_404(series, game_id)

    try:
        completed = playoff.record_game_result(game, request.away_score, request.home_score)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    games = [completed if g.id == game_id else g for g in series.playoff_games]
    games = playoff.advance_bracket(games, series.playoff_seeding)
    store.write_playoff_games(series_id, games)
    logger.info("Recorded %s: %s won %s-%s", game_id, completed.winner_id, request.away_score, request.home_score)
    return games


@router.put("/stage", response_model=Series)
def set_stage(
    series_id: str,
    request: StageRequest,
    user_id: str = Depends(current_user_id),
    store: SeriesStore = Depends(get_store),
):
    """Open a stage for picks."""
    series = _playoff_series(store, series_id)
    require_admin(series, user_id)
    if request.stage == "stage_2" and not playoff.get_games_by_round(series.playoff_games, "divisional"):
        raise HTTPException(status_code=409, detail="Stage 2 opens once the divisional games are set")

    store.set_playoff_stage(series_id, request.stage)
    return store.read_series(series_id)


@router.post("/picks", response_model=SubmitPicksResponse)
def submit_picks(
    series_id: str,
    request: SubmitPicksRequest,
    user_id: str = Depends(current_user_id),
    store: SeriesStore = Depends(get_store),
):
    """
    Save bracket picks for the open stage.

    A partial set is kept as a draft; the stage counts as submitted once
    every game in it has a winner and a margin.
    """
    series = _playoff_series(store, series_id)
    member = require_member(series, user_id, request.entry_number)
    entries = [(e.game_id, e.picked_winner_id, e.predicted_margin) for e in request.picks]
    picks = check(playoff.validate_playoff_submission(series, member, entries))
    store.write_playoff_picks(series_id, member.id, picks)

    return SubmitPicksResponse(
        picks=picks,
        stage_submitted=playoff.has_completed_stage_picks(picks, series.playoff_stage, series.playoff_games),
    )


@router.get("/results", response_model=list[PlayoffBracketResult])
def get_results(
    series_id: str,
    entry_number: int = Query(default=1, ge=1),
    user_id: str = Depends(current_user_id),
    store: SeriesStore = Depends(get_store),
):
    """Scored picks for completed games."""
    series = _playoff_series(store, series_id)
    member = require_member(series, user_id, entry_number)
    return playoff.score_member(member, series.playoff_games)


@router.get("/standings", response_model=list[playoff.StandingEntry])
def get_standings(
    series_id: str,
    store: SeriesStore = Depends(get_store),
):
    series = _playoff_series(store, series_id)
    return playoff.standings(series.members, series.playoff_games)


@router.get("/status", response_model=playoff.PlayoffPoolStatus)
def get_status(
    series_id: str,
    entry_number: int = Query(default=1, ge=1),
    user_id: str = Depends(current_user_id),
    store: SeriesStore = Depends(get_store),
):
    series = _playoff_series(store, series_id)
    return playoff.get_playoff_pool_status(series, user_id, entry_number)
