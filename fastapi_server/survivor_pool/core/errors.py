"""
Rule violations returned by the pool engines.

The engines hand these back as values so callers can show a specific message
for every refusal. They are still exceptions, which lets the HTTP layer
``raise`` one and have the registered handler render it.
"""
from typing import Optional


class RuleViolation(Exception):
    code = "rule_violation"
    status_code = 409

    def __init__(self, message: str, *, team_id: Optional[str] = None, week: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.team_id = team_id
        self.week = week

    def to_dict(self) -> dict:
        body = {"code": self.code, "detail": self.message}
        if self.team_id is not None:
            body["team_id"] = self.team_id
        if self.week is not None:
            body["week"] = self.week
        return body

    def __eq__(self, other):
        return (
            type(self) is type(other)
            and self.message == other.message
            and self.team_id == other.team_id
            and self.week == other.week
        )

    def __hash__(self):
        return hash((type(self), self.message, self.team_id, self.week))

    def __repr__(self):
        return f"{type(self).__name__}({self.message!r})"


class EliminatedError(RuleViolation):
    code = "eliminated"
    status_code = 403


class DeadlinePassedError(RuleViolation):
    code = "deadline_passed"


class TeamAlreadyUsedError(RuleViolation):
    code = "team_already_used"


class TeamOnByeError(RuleViolation):
    code = "team_on_bye"
    status_code = 422


class UnknownTeamError(RuleViolation):
    code = "unknown_team"
    status_code = 422


class WeekNotOpenError(RuleViolation):
    code = "week_not_open"
    status_code = 422


class NoEligibleAutoPickError(RuleViolation):
    code = "no_eligible_auto_pick"
    status_code = 500


class InvalidMarginError(RuleViolation):
    code = "invalid_margin"
    status_code = 422


class TeamNotInGameError(RuleViolation):
    code = "team_not_in_game"
    status_code = 422


class MatchupUndeterminedError(RuleViolation):
    code = "matchup_undetermined"


class MaxEntriesReachedError(RuleViolation):
    code = "max_entries_reached"


class UnknownGameError(RuleViolation):
    code = "unknown_game"
    status_code = 404
