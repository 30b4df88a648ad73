import os
from datetime import datetime, timezone

import pytest

os.environ.setdefault("POOL_STORAGE", "memory")

from fastapi.testclient import TestClient  # noqa: E402

from survivor_pool.core.types import Member, Pick, PlayoffSeeding, Series, SeriesSettings  # noqa: E402
from survivor_pool.storage import get_store  # noqa: E402
from survivor_pool.storage.memory import MemoryStore  # noqa: E402

# Monday of NFL week 13, 2024; that week locks Saturday 2024-11-30 13:00 EST (18:00 UTC)
WEEK_13_START = datetime(2024, 11, 25, 12, 0, tzinfo=timezone.utc)
BEFORE_DEADLINE = datetime(2024, 11, 30, 17, 59, tzinfo=timezone.utc)
AFTER_DEADLINE = datetime(2024, 11, 30, 18, 1, tzinfo=timezone.utc)

SEEDING = PlayoffSeeding(
    afc=["kc", "buf", "bal", "hou", "lac", "pit", "den"],
    nfc=["det", "phi", "tb", "lar", "min", "was", "gb"],
)


def member(member_id="m1", user_id=None, lives=2, picks=(), **kwargs) -> Member:
    return Member(
        id=member_id,
        user_id=user_id or f"user-{member_id}",
        user_name=member_id.upper(),
        lives_remaining=lives,
        is_eliminated=lives <= 0,
        picks=list(picks),
        **kwargs,
    )


def pick(week, team_id, result="pending", **kwargs) -> Pick:
    return Pick(week=week, team_id=team_id, result=result, picked_at=WEEK_13_START, **kwargs)


def series(members=(), current_week=13, settings=None, **kwargs) -> Series:
    return Series(
        id="s1",
        name="Office Pool",
        created_by="user-m1",
        current_week=current_week,
        current_week_started_at=WEEK_13_START,
        season=2024,
        settings=settings or SeriesSettings(),
        members=list(members),
        **kwargs,
    )


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def client(store):
    from main import app

    app.dependency_overrides[get_store] = lambda: store
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def register(client):
    """Create a user through the API and return its id."""

    def _register(email, name=""):
        response = client.post("/api/users", json={"email": email, "name": name})
        assert response.status_code == 200
        return response.json()["id"]

    return _register


def auth(user_id: str) -> dict:
    return {"X-User-Id": user_id}
