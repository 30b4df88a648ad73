"""
Helpers shared by the routers: the acting user, series lookup and role checks.
"""
from typing import Optional

from fastapi import Header, HTTPException

from survivor_pool.core.errors import RuleViolation
from survivor_pool.core.types import Member, Series, User
from survivor_pool.storage.base import SeriesNotFound, SeriesStore


def current_user_id(x_user_id: Optional[str] = Header(None, alias="X-User-Id")) -> str:
    """The user the upstream auth proxy vouches for."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="X-User-Id header required")
    return x_user_id


def get_user_or_404(store: SeriesStore, user_id: str) -> User:
    user = store.get_user(user_id)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return user


def get_series_or_404(store: SeriesStore, series_id: str) -> Series:
    try:
        return store.read_series(series_id)
    except SeriesNotFound:
        raise HTTPException(status_code=404, detail="Series not found") from None


def require_member(series: Series, user_id: str, entry_number: int = 1) -> Member:
    member = series.member_for_user(user_id, entry_number)
    if member is None:
        raise HTTPException(status_code=403, detail="Not a member of this series")
    return member


def require_admin(series: Series, user_id: str) -> None:
    if not series.is_admin(user_id):
        raise HTTPException(status_code=403, detail="Only a series admin can do this")


def require_series_type(series: Series, series_type: str) -> None:
    if series.series_type != series_type:
        raise HTTPException(
            status_code=409,
            detail=f"Series is a {series.series_type.replace('_', ' ')}, not a {series_type.replace('_', ' ')}",
        )


def check(outcome):
    """Raise a rule violation returned by the engines, pass anything else through."""
    if isinstance(outcome, RuleViolation):
        raise outcome
    return outcome
