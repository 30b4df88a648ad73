"""
Series settings resolution.

Series created before configurable rules existed have no settings at all;
newer ones may carry a partial mapping. Both go through ``resolve_settings``
so every rule check sees the same defaults.
"""
from typing import Any, Mapping, Optional

from survivor_pool.core.types import SeriesSettings

DEFAULT_SETTINGS = SeriesSettings()

# Keys as the web client stored them
_LEGACY_KEYS = {
    "startingWeek": "starting_week",
    "livesPerPlayer": "lives_per_player",
    "maxTeamUses": "max_team_uses",
    "tieCountsAsWin": "tie_counts_as_win",
    "allowMultipleEntries": "allow_multiple_entries",
    "maxEntriesPerPlayer": "max_entries_per_player",
}

_MINIMUM_ONE = ("starting_week", "lives_per_player", "max_team_uses", "max_entries_per_player")


def _normalize(raw: Mapping[str, Any]) -> dict:
    values = {}
    for key, value in raw.items():
        key = _LEGACY_KEYS.get(key, key)
        if key not in SeriesSettings.model_fields or value is None:
            continue
        values[key] = value
    for key in _MINIMUM_ONE:
        if key in values and int(values[key]) < 1:
            raise ValueError(f"{key} must be at least 1, got {values[key]}")
    return values


def resolve_settings(raw: Optional[Mapping[str, Any]] = None) -> SeriesSettings:
    """Fill every missing field of a persisted settings mapping from the defaults."""
    if isinstance(raw, SeriesSettings):
        return raw
    values = DEFAULT_SETTINGS.model_dump()
    values.update(_normalize(raw or {}))
    if not values["allow_multiple_entries"]:
        values["max_entries_per_player"] = 1
    return SeriesSettings(**values)


def merge_settings(current: SeriesSettings, update: Mapping[str, Any]) -> SeriesSettings:
    """Apply an explicit partial update on top of already-resolved settings."""
    values = current.model_dump()
    values.update(_normalize(update))
    return resolve_settings(values)
