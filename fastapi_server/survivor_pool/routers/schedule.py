"""
Schedule router - read-only matchups, lines and team directories.
"""
from typing import Optional

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel

from survivor_pool.core import schedule
from survivor_pool.core.schedule import MatchupInfo, OddsFormat, WeekSchedule
from survivor_pool.core.types import Competition, Sport

router = APIRouter(prefix="/api/schedule", tags=["schedule"])


class FormattedLine(BaseModel):
    team_id: str
    opponent: str
    is_home: bool
    spread: Optional[str] = None
    moneyline: Optional[str] = None
    win_probability: Optional[float] = None


class FavoriteResponse(BaseModel):
    week: int
    team_id: Optional[str] = None


@router.get("/teams")
def get_teams(sport: Sport = "nfl", competition: Optional[Competition] = None):
    return schedule.get_teams(sport, competition)


@router.get("/{sport}/current-week")
def get_current_week(sport: Sport):
    return {"sport": sport, "week": schedule.get_current_week(sport=sport)}


@router.get("/{sport}/weeks/{week}", response_model=WeekSchedule)
def get_week(sport: Sport, week: int):
    return schedule.get_week_schedule(week, sport)


@router.get("/{sport}/weeks/{week}/favorite", response_model=FavoriteResponse)
def get_favorite(
    sport: Sport,
    week: int,
    exclude: str = Query(default="", description="Comma-separated team ids to skip"),
):
    """Largest favorite by spread, skipping excluded teams."""
    excluded = [t for t in exclude.split(",") if t]
    return FavoriteResponse(week=week, team_id=schedule.get_vegas_favorite(week, excluded, sport))


@router.get("/{sport}/weeks/{week}/teams/{team_id}", response_model=MatchupInfo)
def get_matchup(sport: Sport, week: int, team_id: str):
    info = schedule.get_matchup_info(team_id, week, sport)
    if info is None:
        raise HTTPException(status_code=404, detail=f"{team_id.upper()} has no game in week {week}")
    return info


@router.get("/{sport}/weeks/{week}/lines", response_model=list[FormattedLine])
def get_lines(sport: Sport, week: int, odds_format: OddsFormat = "american"):
    """Every team's line for the week, formatted for display."""
    lines = []
    for team_id, info in schedule.get_all_matchups(week, sport).items():
        lines.append(
            FormattedLine(
                team_id=team_id,
                opponent=info.opponent,
                is_home=info.is_home,
                spread=schedule.format_spread(info.spread) if info.spread is not None else None,
                moneyline=schedule.format_odds(info.moneyline, odds_format) if info.moneyline is not None else None,
                win_probability=(
                    round(schedule.moneyline_to_win_probability(info.moneyline), 3)
                    if info.moneyline is not None else None
                ),
            )
        )
    return lines
