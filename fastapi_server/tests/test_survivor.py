from datetime import datetime, timedelta, timezone

import pytest
from conftest import AFTER_DEADLINE, BEFORE_DEADLINE, WEEK_13_START, member, pick, series

from survivor_pool.core import schedule, survivor
from survivor_pool.core.errors import (
    DeadlinePassedError,
    EliminatedError,
    MaxEntriesReachedError,
    NoEligibleAutoPickError,
    TeamAlreadyUsedError,
    TeamOnByeError,
    UnknownTeamError,
    WeekNotOpenError,
)
from survivor_pool.core.types import Pick, SeriesSettings


# --- Deadlines ---

def test_deadline_is_next_saturday_1pm_est():
    deadline = survivor.pick_deadline(WEEK_13_START)
    assert deadline == datetime(2024, 11, 30, 18, 0, tzinfo=timezone.utc)


def test_deadline_rolls_over_on_saturday_afternoon():
    saturday_morning = datetime(2024, 11, 30, 15, 0, tzinfo=timezone.utc)  # 10:00 EST
    saturday_afternoon = datetime(2024, 11, 30, 18, 30, tzinfo=timezone.utc)  # 13:30 EST
    assert survivor.pick_deadline(saturday_morning) == datetime(2024, 11, 30, 18, 0, tzinfo=timezone.utc)
    assert survivor.pick_deadline(saturday_afternoon) == datetime(2024, 12, 7, 18, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "now, expected",
    [
        (datetime(2024, 11, 30, 17, 59, 59, tzinfo=timezone.utc), datetime(2024, 11, 30, 18, 0, tzinfo=timezone.utc)),
        (datetime(2024, 11, 30, 18, 0, tzinfo=timezone.utc), datetime(2024, 12, 7, 18, 0, tzinfo=timezone.utc)),
    ],
    ids=["12:59:59 EST", "13:00 EST"],
)
def test_deadline_boundary_at_1pm_est(now, expected):
    assert survivor.pick_deadline(now) == expected


def test_naive_times_are_utc():
    assert survivor.pick_deadline(datetime(2024, 11, 25, 12, 0)) == survivor.pick_deadline(WEEK_13_START)


def test_pick_accepted_one_minute_before_deadline():
    s = series([member("m1")])
    outcome = survivor.validate_pick(s, s.members[0], 13, "KC", now=BEFORE_DEADLINE)
    assert isinstance(outcome, Pick)
    assert outcome.team_id == "kc"
    assert outcome.result == "pending"
    assert outcome.is_auto_pick is False


def test_pick_refused_one_minute_after_deadline():
    s = series([member("m1")])
    outcome = survivor.validate_pick(s, s.members[0], 13, "kc", now=AFTER_DEADLINE)
    assert isinstance(outcome, DeadlinePassedError)


def test_replacing_a_pick_after_deadline_is_refused():
    s = series([member("m1", picks=[pick(13, "kc")])])
    outcome = survivor.validate_pick(s, s.members[0], 13, "det", now=AFTER_DEADLINE)
    assert isinstance(outcome, DeadlinePassedError)


def test_earlier_weeks_are_locked():
    s = series([member("m1")])
    assert survivor.is_deadline_passed(s, 12, BEFORE_DEADLINE)
    assert not survivor.is_deadline_passed(s, 13, BEFORE_DEADLINE)


# --- Pick validation ---

def test_eliminated_member_cannot_pick():
    s = series([member("m1", lives=0)])
    outcome = survivor.validate_pick(s, s.members[0], 13, "kc", now=BEFORE_DEADLINE)
    assert isinstance(outcome, EliminatedError)


def test_week_outside_open_range():
    s = series([member("m1")], settings=SeriesSettings(starting_week=5))
    assert isinstance(survivor.validate_pick(s, s.members[0], 14, "kc", now=BEFORE_DEADLINE), WeekNotOpenError)
    assert isinstance(survivor.validate_pick(s, s.members[0], 4, "kc", now=BEFORE_DEADLINE), WeekNotOpenError)


def test_team_used_in_earlier_week_is_refused():
    s = series([member("m1", picks=[pick(12, "kc", "win")])])
    outcome = survivor.validate_pick(s, s.members[0], 13, "kc", now=BEFORE_DEADLINE)
    assert isinstance(outcome, TeamAlreadyUsedError)
    assert outcome.team_id == "kc"
    assert outcome.to_dict()["code"] == "team_already_used"


def test_team_use_limit_above_one():
    s = series([member("m1", picks=[pick(12, "kc", "win")])], settings=SeriesSettings(max_team_uses=2))
    assert isinstance(survivor.validate_pick(s, s.members[0], 13, "kc", now=BEFORE_DEADLINE), Pick)

    s = series(
        [member("m1", picks=[pick(11, "kc", "win"), pick(12, "kc", "win")])],
        settings=SeriesSettings(max_team_uses=2),
    )
    assert isinstance(survivor.validate_pick(s, s.members[0], 13, "kc", now=BEFORE_DEADLINE), TeamAlreadyUsedError)


def test_changing_same_week_pick_does_not_count_as_reuse():
    s = series([member("m1", picks=[pick(13, "kc")])])
    outcome = survivor.validate_pick(s, s.members[0], 13, "kc", now=BEFORE_DEADLINE)
    assert isinstance(outcome, Pick)


def test_bye_and_unknown_teams():
    s = series([member("m1")])
    assert isinstance(survivor.validate_pick(s, s.members[0], 13, "phi", now=BEFORE_DEADLINE), TeamOnByeError)
    assert isinstance(survivor.validate_pick(s, s.members[0], 13, "xyz", now=BEFORE_DEADLINE), UnknownTeamError)


def test_resolved_pick_is_final():
    s = series([member("m1", picks=[pick(13, "kc", "win")])])
    outcome = survivor.validate_admin_pick(s, s.members[0], 13, "det", now=AFTER_DEADLINE)
    assert isinstance(outcome, DeadlinePassedError)


def test_admin_pick_ignores_deadline():
    s = series([member("m1")])
    outcome = survivor.validate_admin_pick(s, s.members[0], 13, "det", now=AFTER_DEADLINE)
    assert isinstance(outcome, Pick)
    assert outcome.team_id == "det"


def test_violations_compare_by_value():
    s = series([member("m1", lives=0)])
    first = survivor.validate_pick(s, s.members[0], 13, "kc", now=BEFORE_DEADLINE)
    second = survivor.validate_pick(s, s.members[0], 13, "kc", now=BEFORE_DEADLINE)
    assert first == second


# --- Auto-pick ---

def test_auto_pick_takes_biggest_favorite():
    s = series([member("m1")])
    outcome = survivor.apply_auto_pick(s, s.members[0], 13, now=AFTER_DEADLINE)
    assert outcome.team_id == "kc"
    assert outcome.is_auto_pick is True


def test_auto_pick_skips_used_teams():
    s = series([member("m1", picks=[pick(11, "kc", "win"), pick(12, "det", "win")])])
    assert survivor.apply_auto_pick(s, s.members[0], 13).team_id == "tb"


def test_auto_pick_ties_keep_schedule_order():
    used = ["kc", "det", "tb", "hou", "dal"]
    s = series([member("m1", picks=[pick(w, t, "win") for w, t in enumerate(used, start=1)])])
    # gb, min and lar are all -3.5; gb is listed first
    assert survivor.apply_auto_pick(s, s.members[0], 13).team_id == "gb"


def test_auto_pick_keeps_existing_pick():
    existing = pick(13, "lv")
    s = series([member("m1", picks=[existing])])
    assert survivor.apply_auto_pick(s, s.members[0], 13) == existing


def test_auto_pick_for_eliminated_member():
    s = series([member("m1", lives=0)])
    assert isinstance(survivor.apply_auto_pick(s, s.members[0], 13), EliminatedError)


def test_auto_pick_with_no_eligible_team():
    teams = list(schedule.iter_week_teams(13))
    s = series([member("m1", picks=[pick(w, t, "win") for w, t in enumerate(teams, start=100)])])
    assert isinstance(survivor.apply_auto_pick(s, s.members[0], 13), NoEligibleAutoPickError)


def test_auto_pick_outside_open_weeks():
    s = series([member("m1")], settings=SeriesSettings(starting_week=10))
    assert isinstance(survivor.apply_auto_pick(s, s.members[0], 3), WeekNotOpenError)
    assert isinstance(survivor.apply_auto_pick(s, s.members[0], 14), WeekNotOpenError)
    assert survivor.apply_auto_pick(s, s.members[0], 13).team_id == "kc"


def test_soccer_auto_pick_takes_first_eligible_team():
    s = series([member("m1")], current_week=14, sport="soccer", competition="premier_league")
    assert survivor.apply_auto_pick(s, s.members[0], 14).team_id == "eve"


# --- Results ---

def test_loss_costs_one_life():
    s = series([member("m1", picks=[pick(13, "lv")])])
    [updated] = survivor.apply_week_result(s, 13, {"lv": "loss", "kc": "win"})
    assert updated.lives_remaining == 1
    assert updated.is_eliminated is False
    assert updated.pick_for_week(13).result == "loss"


def test_last_life_eliminates():
    s = series([member("m1", lives=1, picks=[pick(13, "lv")])])
    [updated] = survivor.apply_week_result(s, 13, {"LV": "loss"})
    assert updated.lives_remaining == 0
    assert updated.is_eliminated is True


def test_win_keeps_lives():
    s = series([member("m1", picks=[pick(13, "kc")])])
    [updated] = survivor.apply_week_result(s, 13, {"kc": "win"})
    assert updated.lives_remaining == 2
    assert updated.pick_for_week(13).result == "win"


@pytest.mark.parametrize("tie_counts_as_win, result, lives", [(True, "win", 2), (False, "loss", 1)])
def test_ties_follow_setting(tie_counts_as_win, result, lives):
    s = series([member("m1", picks=[pick(13, "dal")])], settings=SeriesSettings(tie_counts_as_win=tie_counts_as_win))
    [updated] = survivor.apply_week_result(s, 13, {"dal": "tie"})
    assert updated.pick_for_week(13).result == result
    assert updated.lives_remaining == lives


def test_results_are_idempotent():
    s = series([member("m1", picks=[pick(13, "lv")])])
    once = survivor.apply_week_result(s, 13, {"lv": "loss"})
    twice = survivor.apply_week_result(s.model_copy(update={"members": once}), 13, {"lv": "loss"})
    assert twice == once


def test_unknown_outcome_is_rejected():
    with pytest.raises(ValueError):
        survivor.resolve_outcome("draw", SeriesSettings())


def _with_pick(s, new_pick):
    [m] = s.members
    return s.model_copy(update={"members": [m.model_copy(update={"picks": [*m.picks, new_pick]})]})


def test_two_losses_eliminate_and_block_further_picks():
    s = series([member("m1")])
    first = survivor.validate_pick(s, s.members[0], 13, "lv", now=BEFORE_DEADLINE)
    assert isinstance(first, Pick)
    s = _with_pick(s, first)
    s = s.model_copy(update={"members": survivor.apply_week_result(s, 13, {"lv": "loss"})})
    assert s.members[0].lives_remaining == 1
    assert s.members[0].is_eliminated is False

    next_week = timedelta(days=7)
    s = s.model_copy(update={"current_week": 14, "current_week_started_at": WEEK_13_START + next_week})
    second = survivor.validate_pick(s, s.members[0], 14, "chi", now=BEFORE_DEADLINE + next_week)
    assert isinstance(second, Pick)
    s = _with_pick(s, second)
    s = s.model_copy(update={"members": survivor.apply_week_result(s, 14, {"chi": "loss"})})

    [out] = s.members
    assert out.lives_remaining == 0
    assert out.is_eliminated is True
    assert isinstance(survivor.validate_pick(s, out, 14, "kc", now=BEFORE_DEADLINE + next_week), EliminatedError)
    assert isinstance(survivor.apply_auto_pick(s, out, 14), EliminatedError)


def test_members_without_a_pick_are_untouched():
    s = series([member("m1"), member("m2", picks=[pick(13, "lv")])])
    first, second = survivor.apply_week_result(s, 13, {"lv": "loss"})
    assert first == s.members[0]
    assert second.lives_remaining == 1


# --- Status and entries ---

def test_user_series_status():
    s = series([member("m1", picks=[pick(12, "det", "win"), pick(13, "kc")])])
    status = survivor.get_user_series_status(s, "user-m1", now=BEFORE_DEADLINE)
    assert status.used_teams == ["det", "kc"]
    assert status.team_use_counts == {"det": 1, "kc": 1}
    assert status.current_pick.team_id == "kc"
    assert status.has_picked_this_week is True
    assert status.can_pick is True
    assert status.deadline_passed is False

    after = survivor.get_user_series_status(s, "user-m1", now=AFTER_DEADLINE)
    assert after.can_pick is False
    assert after.deadline_passed is True


def test_status_for_non_member():
    status = survivor.get_user_series_status(series([member("m1")]), "stranger")
    assert status.member is None
    assert status.can_pick is False


def test_available_teams_excludes_used():
    s = series([member("m1", picks=[pick(12, "kc", "win")])])
    teams = survivor.available_teams(s, s.members[0], 13)
    assert "kc" not in teams
    assert "phi" not in teams
    assert len(teams) == 19


def test_entry_limit():
    s = series([member("m1")])
    assert isinstance(survivor.next_entry_number(s, "user-m1"), MaxEntriesReachedError)
    assert survivor.next_entry_number(s, "someone-else") == 1

    multi = series(
        [member("m1")],
        settings=SeriesSettings(allow_multiple_entries=True, max_entries_per_player=2),
    )
    assert survivor.next_entry_number(multi, "user-m1") == 2
