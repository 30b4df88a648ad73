"""
SQLModel tables for survivor and playoff pools.
"""
from survivor_pool.models.user import UserRow
from survivor_pool.models.series import SeriesRow
from survivor_pool.models.series_member import SeriesMemberRow
from survivor_pool.models.pick import PickRow
from survivor_pool.models.invitation import InvitationRow
from survivor_pool.models.playoff_game import PlayoffGameRow
from survivor_pool.models.playoff_pick import PlayoffPickRow

__all__ = [
    "UserRow",
    "SeriesRow",
    "SeriesMemberRow",
    "PickRow",
    "InvitationRow",
    "PlayoffGameRow",
    "PlayoffPickRow",
]
