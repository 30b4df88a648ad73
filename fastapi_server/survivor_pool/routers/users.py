"""
Users router - registers users on behalf of the auth proxy.
"""
import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from survivor_pool.core.types import User
from survivor_pool.routers.common import current_user_id, get_user_or_404
from survivor_pool.storage import get_store
from survivor_pool.storage.base import SeriesStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/users", tags=["users"])


class UpsertUserRequest(BaseModel):
    email: str = Field(min_length=3, max_length=254, pattern=r"^[^@\s]+@[^@\s]+$")
    name: str = Field(default="", max_length=80)
    picture: str = Field(default="", max_length=500)


@router.post("", response_model=User)
def upsert_user(request: UpsertUserRequest, store: SeriesStore = Depends(get_store)):
    """Create the user for an email, or refresh its name and picture."""
    user = store.upsert_user(request.email, request.name.strip(), request.picture)
    logger.info("Upserted user %s", user.id)
    return user


@router.get("/me", response_model=User)
def get_me(
    user_id: str = Depends(current_user_id),
    store: SeriesStore = Depends(get_store),
):
    return get_user_or_404(store, user_id)


@router.get("/{user_id}", response_model=User)
def get_user(user_id: str, store: SeriesStore = Depends(get_store)):
    return get_user_or_404(store, user_id)
