"""
Survivor rules: pick validation, auto-picks, weekly results and deadlines.

Every function here is pure. A refused action comes back as a
``RuleViolation`` value instead of being raised, so the caller decides how
to render it.
"""
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict

from survivor_pool.core import schedule
from survivor_pool.core.errors import (
    DeadlinePassedError,
    EliminatedError,
    MaxEntriesReachedError,
    NoEligibleAutoPickError,
    RuleViolation,
    TeamAlreadyUsedError,
    TeamOnByeError,
    UnknownTeamError,
    WeekNotOpenError,
)
from survivor_pool.core.types import GameOutcome, Member, Pick, PickResult, Series, SeriesSettings

# Picks lock Saturday 1:00 PM Eastern Standard Time, DST is ignored on purpose
DEADLINE_TZ = timezone(timedelta(hours=-5), "EST")
DEADLINE_WEEKDAY = 5  # Saturday
DEADLINE_HOUR = 13

PickOutcome = Union[Pick, RuleViolation]


class SeriesStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    member: Optional[Member] = None
    used_teams: list[str] = []
    team_use_counts: dict[str, int] = {}
    current_pick: Optional[Pick] = None
    has_picked_this_week: bool = False
    lives_remaining: int = 0
    lives_per_player: int = 0
    is_eliminated: bool = False
    can_pick: bool = False
    deadline: Optional[datetime] = None
    deadline_passed: bool = False


def _aware(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


def pick_deadline(now: Optional[datetime] = None) -> datetime:
    """The upcoming Saturday 13:00 EST; on Saturday from 13:00 on, the one after."""
    est_now = _aware(now or datetime.now(timezone.utc)).astimezone(DEADLINE_TZ)
    days_until = (DEADLINE_WEEKDAY - est_now.weekday()) % 7
    if days_until == 0 and est_now.hour >= DEADLINE_HOUR:
        days_until = 7
    deadline_day = est_now + timedelta(days=days_until)
    return deadline_day.replace(hour=DEADLINE_HOUR, minute=0, second=0, microsecond=0)


def week_deadline(series: Series) -> datetime:
    return pick_deadline(series.current_week_started_at)


def is_deadline_passed(series: Series, week: int, now: Optional[datetime] = None) -> bool:
    if week < series.current_week:
        return True
    if week > series.current_week:
        return False
    now = _aware(now or datetime.now(timezone.utc))
    return now >= week_deadline(series)


def is_week_open(series: Series, week: int) -> bool:
    return series.settings.starting_week <= week <= series.current_week


def team_use_counts(member: Member, exclude_week: Optional[int] = None) -> Counter:
    return Counter(p.team_id for p in member.picks if p.week != exclude_week)


def _check_team(series: Series, member: Member, week: int, team_id: str) -> Optional[RuleViolation]:
    settings = series.settings
    uses = team_use_counts(member, exclude_week=week)[team_id]
    if uses >= settings.max_team_uses:
        if settings.max_team_uses == 1:
            message = f"{team_id.upper()} has already been used"
        else:
            message = f"{team_id.upper()} has already been used {uses} times (limit {settings.max_team_uses})"
        return TeamAlreadyUsedError(message, team_id=team_id, week=week)

    if schedule.is_on_bye(team_id, week, series.sport):
        return TeamOnByeError(f"{team_id.upper()} is on bye in week {week}", team_id=team_id, week=week)

    if schedule.get_matchup_info(team_id, week, series.sport) is None:
        return UnknownTeamError(f"{team_id.upper()} has no game in week {week}", team_id=team_id, week=week)
    return None


def _check_member(series: Series, member: Member, week: int) -> Optional[RuleViolation]:
    if member.is_eliminated or member.lives_remaining <= 0:
        return EliminatedError(f"{member.user_name or member.user_id} has been eliminated", week=week)
    if not is_week_open(series, week):
        return WeekNotOpenError(f"Week {week} is not open for picks", week=week)
    return None


def validate_pick(
    series: Series,
    member: Member,
    week: int,
    team_id: str,
    now: Optional[datetime] = None,
) -> PickOutcome:
    """Check a member's pick for ``week`` and return the pick to store or the reason it is refused."""
    team_id = team_id.lower()
    now = _aware(now or datetime.now(timezone.utc))

    violation = _check_member(series, member, week)
    if violation:
        return violation

    existing = member.pick_for_week(week)
    if is_deadline_passed(series, week, now):
        return DeadlinePassedError(f"Picks for week {week} are locked", week=week)
    if existing is not None and existing.result != "pending":
        return DeadlinePassedError(f"Week {week} already has a result", week=week)

    violation = _check_team(series, member, week, team_id)
    if violation:
        return violation

    return Pick(week=week, team_id=team_id, result="pending", is_auto_pick=False, picked_at=now)


def validate_admin_pick(
    series: Series,
    member: Member,
    week: int,
    team_id: str,
    now: Optional[datetime] = None,
) -> PickOutcome:
    """Like ``validate_pick`` but a series admin may set a pick after the deadline."""
    team_id = team_id.lower()
    now = _aware(now or datetime.now(timezone.utc))

    violation = _check_member(series, member, week)
    if violation:
        return violation

    existing = member.pick_for_week(week)
    if existing is not None and existing.result != "pending":
        return DeadlinePassedError(f"Week {week} already has a result", week=week)

    violation = _check_team(series, member, week, team_id)
    if violation:
        return violation

    return Pick(week=week, team_id=team_id, result="pending", is_auto_pick=False, picked_at=now)


def available_teams(series: Series, member: Member, week: int) -> list[str]:
    counts = team_use_counts(member, exclude_week=week)
    return [
        team_id
        for team_id in schedule.iter_week_teams(week, series.sport)
        if counts[team_id] < series.settings.max_team_uses
        and not schedule.is_on_bye(team_id, week, series.sport)
    ]


def select_auto_pick_team(series: Series, member: Member, week: int) -> Optional[str]:
    """Largest favorite among the member's eligible teams; schedule order breaks ties."""
    candidates = available_teams(series, member, week)
    if not candidates:
        return None

    def spread_of(team_id: str) -> float:
        info = schedule.get_matchup_info(team_id, week, series.sport)
        if info is None or info.spread is None:
            return float("inf")
        return info.spread

    # min() keeps the first of equal keys
    return min(candidates, key=spread_of)


def apply_auto_pick(
    series: Series,
    member: Member,
    week: int,
    now: Optional[datetime] = None,
) -> PickOutcome:
    violation = _check_member(series, member, week)
    if violation:
        return violation

    existing = member.pick_for_week(week)
    if existing is not None:
        return existing

    team_id = select_auto_pick_team(series, member, week)
    if team_id is None:
        return NoEligibleAutoPickError(
            f"No eligible team left for {member.user_name or member.user_id} in week {week}",
            week=week,
        )
    return Pick(
        week=week,
        team_id=team_id,
        result="pending",
        is_auto_pick=True,
        picked_at=_aware(now or datetime.now(timezone.utc)),
    )


def resolve_outcome(outcome: GameOutcome, settings: SeriesSettings) -> PickResult:
    """Ties become a win or a loss before any life is touched."""
    if outcome == "tie":
        return "win" if settings.tie_counts_as_win else "loss"
    if outcome in ("win", "loss"):
        return outcome
    raise ValueError(f"Unknown game outcome: {outcome!r}")


def apply_week_result(
    series: Series,
    week: int,
    outcome_by_team: Mapping[str, GameOutcome],
) -> list[Member]:
    """Resolve every pending pick for ``week``; already-resolved picks are left alone."""
    outcomes = {team.lower(): outcome for team, outcome in outcome_by_team.items()}
    updated = []

    for member in series.members:
        pick = member.pick_for_week(week)
        if pick is None or pick.result != "pending" or pick.team_id not in outcomes:
            updated.append(member)
            continue

        result = resolve_outcome(outcomes[pick.team_id], series.settings)
        lives = member.lives_remaining - 1 if result == "loss" else member.lives_remaining
        picks = [p.model_copy(update={"result": result}) if p.week == week else p for p in member.picks]
        updated.append(
            member.model_copy(
                update={
                    "picks": picks,
                    "lives_remaining": max(lives, 0),
                    "is_eliminated": lives <= 0,
                }
            )
        )

    return updated


def next_entry_number(series: Series, user_id: str) -> Union[int, RuleViolation]:
    """Entry number for the user's next entry, or ``MaxEntriesReachedError``."""
    entries = [m.entry_number for m in series.members if m.user_id == user_id]
    if len(entries) >= series.settings.max_entries_per_player:
        return MaxEntriesReachedError(
            f"At most {series.settings.max_entries_per_player} entries per player in this series"
        )
    return max(entries, default=0) + 1


def get_user_series_status(
    series: Series,
    user_id: str,
    entry_number: int = 1,
    now: Optional[datetime] = None,
) -> SeriesStatus:
    member = series.member_for_user(user_id, entry_number)
    if member is None:
        return SeriesStatus()

    now = _aware(now or datetime.now(timezone.utc))
    counts = team_use_counts(member)
    current_pick = member.pick_for_week(series.current_week)
    deadline_passed = is_deadline_passed(series, series.current_week, now)
    can_pick = (
        not member.is_eliminated
        and not deadline_passed
        and (current_pick is None or current_pick.result == "pending")
    )

    return SeriesStatus(
        member=member,
        used_teams=[p.team_id for p in member.picks],
        team_use_counts=dict(counts),
        current_pick=current_pick,
        has_picked_this_week=current_pick is not None,
        lives_remaining=member.lives_remaining,
        lives_per_player=series.settings.lives_per_player,
        is_eliminated=member.is_eliminated,
        can_pick=can_pick,
        deadline=week_deadline(series),
        deadline_passed=deadline_passed,
    )
