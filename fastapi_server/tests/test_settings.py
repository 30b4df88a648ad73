import pytest

from survivor_pool.core.settings import DEFAULT_SETTINGS, merge_settings, resolve_settings
from survivor_pool.core.types import SeriesSettings


def test_missing_settings_use_defaults():
    settings = resolve_settings(None)
    assert settings == DEFAULT_SETTINGS
    assert settings.lives_per_player == 2
    assert settings.max_team_uses == 1
    assert settings.tie_counts_as_win is True
    assert settings.starting_week == 1
    assert settings.max_entries_per_player == 1


def test_partial_settings_keep_given_values():
    settings = resolve_settings({"lives_per_player": 3})
    assert settings.lives_per_player == 3
    assert settings.max_team_uses == 1
    assert settings.tie_counts_as_win is True


def test_legacy_camel_case_keys():
    settings = resolve_settings({"livesPerPlayer": 1, "tieCountsAsWin": False, "maxTeamUses": 2})
    assert settings.lives_per_player == 1
    assert settings.tie_counts_as_win is False
    assert settings.max_team_uses == 2


def test_unknown_keys_and_nulls_are_ignored():
    settings = resolve_settings({"theme": "dark", "lives_per_player": None})
    assert settings == DEFAULT_SETTINGS


@pytest.mark.parametrize("key", ["lives_per_player", "max_team_uses", "starting_week", "max_entries_per_player"])
def test_values_below_one_are_rejected(key):
    with pytest.raises(ValueError):
        resolve_settings({key: 0})


def test_single_entry_unless_multiple_entries_allowed():
    assert resolve_settings({"max_entries_per_player": 3}).max_entries_per_player == 1
    settings = resolve_settings({"allow_multiple_entries": True, "max_entries_per_player": 3})
    assert settings.max_entries_per_player == 3


def test_resolved_settings_pass_through():
    settings = SeriesSettings(lives_per_player=4)
    assert resolve_settings(settings) is settings


def test_merge_settings_applies_partial_update():
    current = resolve_settings({"lives_per_player": 3, "max_team_uses": 2})
    merged = merge_settings(current, {"tieCountsAsWin": False})
    assert merged.lives_per_player == 3
    assert merged.max_team_uses == 2
    assert merged.tie_counts_as_win is False
