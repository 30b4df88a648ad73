"""
Schedule and odds lookup.

Matchups, bye weeks and Vegas lines come from the static tables in
``survivor_pool/data``. NFL weeks without their own entry reuse the template
week; soccer matchweeks without fixtures fall back to placeholder pairings
that alternate home and away.
"""
import json
from datetime import date, datetime
from functools import lru_cache
from math import gcd
from pathlib import Path
from typing import Iterator, Literal, Optional

from pydantic import BaseModel, ConfigDict

from survivor_pool.core.types import Sport

DATA_DIR = Path(__file__).resolve().parent.parent / "data"

OddsFormat = Literal["american", "decimal", "fractional"]


class GameMatchup(BaseModel):
    model_config = ConfigDict(frozen=True)

    home_team: str
    away_team: str
    game_time: Optional[datetime] = None
    home_spread: Optional[float] = None  # negative means the home team is favored
    over_under: Optional[float] = None
    home_moneyline: Optional[int] = None
    away_moneyline: Optional[int] = None
    is_complete: bool = False
    home_score: Optional[int] = None
    away_score: Optional[int] = None

    def involves(self, team_id: str) -> bool:
        return team_id in (self.home_team, self.away_team)


class WeekSchedule(BaseModel):
    model_config = ConfigDict(frozen=True)

    week: int
    season: str
    games: list[GameMatchup]
    bye_teams: list[str] = []


class MatchupInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    opponent: str
    is_home: bool
    spread: Optional[float] = None
    moneyline: Optional[int] = None


def load_json(filename: str):
    with open(DATA_DIR / filename, encoding="utf-8") as f:
        return json.load(f)


@lru_cache(maxsize=None)
def _nfl_data() -> dict:
    return load_json("nfl_schedule.json")


@lru_cache(maxsize=None)
def _soccer_data() -> dict:
    return load_json("soccer_schedule.json")


@lru_cache(maxsize=None)
def _teams_data() -> dict:
    return load_json("teams.json")


def _to_matchup(raw: dict) -> GameMatchup:
    home_score = raw.get("home_score")
    away_score = raw.get("away_score")
    return GameMatchup(
        home_team=raw["home"],
        away_team=raw["away"],
        game_time=raw.get("game_time"),
        home_spread=raw.get("home_spread"),
        over_under=raw.get("over_under"),
        home_moneyline=raw.get("home_moneyline"),
        away_moneyline=raw.get("away_moneyline"),
        is_complete=home_score is not None and away_score is not None,
        home_score=home_score,
        away_score=away_score,
    )


@lru_cache(maxsize=64)
def _nfl_week(week: int) -> WeekSchedule:
    data = _nfl_data()
    bye_teams = list(data["bye_weeks"].get(str(week), []))
    raw_games = data["weeks"].get(str(week)) or data["weeks"][str(data["template_week"])]
    # A team on bye has no game, even when the template lists one for it
    games = [
        _to_matchup(g) for g in raw_games
        if g["home"] not in bye_teams and g["away"] not in bye_teams
    ]
    return WeekSchedule(week=week, season=str(data["season"]), games=games, bye_teams=bye_teams)


@lru_cache(maxsize=64)
def _soccer_week(week: int) -> WeekSchedule:
    data = _soccer_data()
    raw_games = data["weeks"].get(str(week))
    if raw_games is None:
        raw_games = []
        for team1, team2 in data["placeholder_pairings"]:
            home, away = (team1, team2) if week % 2 == 0 else (team2, team1)
            raw_games.append({"home": home, "away": away})
    return WeekSchedule(week=week, season=data["season"], games=[_to_matchup(g) for g in raw_games])


def get_week_schedule(week: int, sport: Sport = "nfl") -> WeekSchedule:
    if sport == "soccer":
        return _soccer_week(week)
    return _nfl_week(week)


def get_current_week(today: Optional[date] = None, sport: Sport = "nfl") -> int:
    """Approximate current week from the calendar."""
    today = today or date.today()
    if sport == "soccer":
        data = _soccer_data()
        for window in data["matchweek_dates"]:
            if date.fromisoformat(window["start"]) <= today <= date.fromisoformat(window["end"]):
                return window["week"]
        return data["default_matchweek"]

    season_start = date.fromisoformat(_nfl_data()["season_start"])
    days_since_start = (today - season_start).days
    return min(18, max(1, (days_since_start + 7) // 7))


def get_team_matchup(team_id: str, week: int, sport: Sport = "nfl") -> Optional[GameMatchup]:
    team_id = team_id.lower()
    for game in get_week_schedule(week, sport).games:
        if game.involves(team_id):
            return game
    return None


def is_on_bye(team_id: str, week: int, sport: Sport = "nfl") -> bool:
    if sport != "nfl":
        return False
    return team_id.lower() in get_week_schedule(week, sport).bye_teams


def get_matchup_info(team_id: str, week: int, sport: Sport = "nfl") -> Optional[MatchupInfo]:
    """Opponent, venue and line for one team; ``None`` when it has no game that week."""
    team_id = team_id.lower()
    game = get_team_matchup(team_id, week, sport)
    if game is None:
        return None

    if game.home_team == team_id:
        return MatchupInfo(
            opponent=game.away_team,
            is_home=True,
            spread=game.home_spread,
            moneyline=game.home_moneyline,
        )
    # The away spread is the inverse of the home spread
    return MatchupInfo(
        opponent=game.home_team,
        is_home=False,
        spread=-game.home_spread if game.home_spread is not None else None,
        moneyline=game.away_moneyline,
    )


def get_all_matchups(week: int, sport: Sport = "nfl") -> dict[str, MatchupInfo]:
    matchups = {}
    for team_id in iter_week_teams(week, sport):
        matchups[team_id] = get_matchup_info(team_id, week, sport)
    return matchups


def iter_week_teams(week: int, sport: Sport = "nfl") -> Iterator[str]:
    """Every team playing in ``week``, in schedule order: home before away per game."""
    for game in get_week_schedule(week, sport).games:
        yield game.home_team
        yield game.away_team


def get_vegas_favorite(week: int, exclude_teams: Optional[list[str]] = None, sport: Sport = "nfl") -> Optional[str]:
    """Most favored team by spread that is not excluded; earliest listed wins ties."""
    excluded = {t.lower() for t in (exclude_teams or [])}
    schedule = get_week_schedule(week, sport)
    best_team = None
    best_spread = float("inf")

    for team_id in iter_week_teams(week, sport):
        if team_id in excluded or team_id in schedule.bye_teams:
            continue
        info = get_matchup_info(team_id, week, sport)
        if info is None or info.spread is None:
            continue
        if info.spread < best_spread:
            best_spread = info.spread
            best_team = team_id

    return best_team


def get_teams(sport: Sport = "nfl", competition: Optional[str] = None) -> list[dict]:
    data = _teams_data()
    if sport == "nfl":
        return data["nfl"]
    return data.get(competition or "premier_league", [])


def get_team(team_id: str) -> Optional[dict]:
    team_id = team_id.lower()
    for teams in _teams_data().values():
        for team in teams:
            if team["id"] == team_id:
                return team
    return None


# --- Odds helpers ---

def moneyline_to_win_probability(moneyline: int) -> float:
    if moneyline < 0:
        return abs(moneyline) / (abs(moneyline) + 100)
    return 100 / (moneyline + 100)


def american_to_decimal(moneyline: int) -> float:
    if moneyline < 0:
        return 1 + (100 / abs(moneyline))
    return 1 + (moneyline / 100)


def american_to_fractional(moneyline: int) -> str:
    if moneyline < 0:
        numerator, denominator = 100, abs(moneyline)
    else:
        numerator, denominator = moneyline, 100
    divisor = gcd(numerator, denominator)
    return f"{numerator // divisor}/{denominator // divisor}"


def format_odds(moneyline: int, odds_format: OddsFormat = "american") -> str:
    if odds_format == "decimal":
        return f"{american_to_decimal(moneyline):.2f}"
    if odds_format == "fractional":
        return american_to_fractional(moneyline)
    return f"+{moneyline}" if moneyline > 0 else str(moneyline)


def format_spread(spread: float) -> str:
    if spread == 0:
        return "EVEN"
    text = f"{spread:g}"
    return f"+{text}" if spread > 0 else text
