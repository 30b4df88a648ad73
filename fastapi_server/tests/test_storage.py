import json
import threading
from types import SimpleNamespace

import pytest
from conftest import SEEDING
from sqlalchemy.exc import IntegrityError
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, create_engine, select

from survivor_pool.core import playoff, survivor
from survivor_pool.core.settings import resolve_settings
from survivor_pool.core.types import Pick, PlayoffBracketPick
from survivor_pool.database import create_db_and_tables
from survivor_pool.models import SeriesRow
from survivor_pool.storage.base import InvitationClosed, InvitationNotFound, SeriesNotFound
from survivor_pool.storage.memory import MemoryStore
from survivor_pool.storage.sql import SqlStore


def sqlite_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    create_db_and_tables(engine)
    return engine


@pytest.fixture(params=["memory", "sql"])
def adapter(request):
    if request.param == "memory":
        return MemoryStore()
    return SqlStore(sqlite_engine())


@pytest.fixture
def alice(adapter):
    return adapter.upsert_user("Alice@Example.com", "Alice")


@pytest.fixture
def bob(adapter):
    return adapter.upsert_user("bob@example.com", "Bob")


def test_upsert_user_by_email(adapter, alice):
    again = adapter.upsert_user("alice@example.com", "Alice B")
    assert again.id == alice.id
    assert again.email == "alice@example.com"
    assert again.name == "Alice B"
    assert adapter.get_user(alice.id).name == "Alice B"
    assert adapter.get_user("missing") is None


def test_create_series_adds_creator_as_admin(adapter, alice):
    series = adapter.create_series(alice, "Office Pool", settings=resolve_settings({"lives_per_player": 3}))
    assert series.created_by == alice.id
    assert series.current_week == 1
    [creator] = series.members
    assert creator.role == "admin"
    assert creator.lives_remaining == 3
    assert adapter.read_series(series.id).settings.lives_per_player == 3


def test_join_is_idempotent_per_entry(adapter, alice, bob):
    series = adapter.create_series(alice, "Office Pool")
    first = adapter.join_series(series.id, bob)
    again = adapter.join_series(series.id, bob)
    second_entry = adapter.join_series(series.id, bob, entry_number=2)

    assert first.id == again.id
    assert second_entry.id != first.id
    assert second_entry.entry_number == 2
    assert [m.user_id for m in adapter.read_series(series.id).members] == [alice.id, bob.id, bob.id]
    assert [s.id for s in adapter.list_user_series(bob.id)] == [series.id]


def test_write_pick_upserts_per_week(adapter, alice):
    series = adapter.create_series(alice, "Office Pool", current_week=13)
    member_id = series.members[0].id

    adapter.write_pick(series.id, member_id, Pick(week=13, team_id="kc"))
    adapter.write_pick(series.id, member_id, Pick(week=13, team_id="det"))
    adapter.write_pick(series.id, member_id, Pick(week=12, team_id="buf", result="win"))

    picks = adapter.read_series(series.id).get_member(member_id).picks
    assert [(p.week, p.team_id) for p in picks] == [(12, "buf"), (13, "det")]
    assert picks[1].picked_at.tzinfo is not None


def test_write_members_persists_results(adapter, alice):
    series = adapter.create_series(alice, "Office Pool", current_week=13)
    member_id = series.members[0].id
    adapter.write_pick(series.id, member_id, Pick(week=13, team_id="lv"))

    updated = survivor.apply_week_result(adapter.read_series(series.id), 13, {"lv": "loss"})
    adapter.write_members(series.id, updated)

    member = adapter.read_series(series.id).get_member(member_id)
    assert member.lives_remaining == 1
    assert member.pick_for_week(13).result == "loss"


def test_settings_and_week(adapter, alice):
    series = adapter.create_series(alice, "Office Pool")
    updated = adapter.update_settings(
        series.id,
        resolve_settings({"max_team_uses": 2}),
        {"prize_value": 50.0, "show_prize_value": True},
    )
    assert updated.settings.max_team_uses == 2
    assert updated.prize_value == 50.0
    assert updated.show_prize_value is True

    advanced = adapter.advance_week(series.id, 2)
    assert advanced.current_week == 2
    assert advanced.current_week_started_at >= series.current_week_started_at


def test_leave_and_delete(adapter, alice, bob):
    series = adapter.create_series(alice, "Office Pool")
    member = adapter.join_series(series.id, bob)
    adapter.write_pick(series.id, member.id, Pick(week=1, team_id="kc"))

    adapter.leave_series(series.id, bob.id)
    assert [m.user_id for m in adapter.read_series(series.id).members] == [alice.id]

    adapter.delete_series(series.id)
    with pytest.raises(SeriesNotFound):
        adapter.read_series(series.id)


def test_playoff_state_round_trip(adapter, alice):
    series = adapter.create_series(alice, "Playoffs", series_type="playoff_pool")
    games = playoff.advance_bracket([], SEEDING)
    games = [playoff.record_game_result(g, 10, 24) if g.id == "wc-afc-1" else g for g in games]

    adapter.set_playoff_seeding(series.id, SEEDING)
    adapter.write_playoff_games(series.id, games)
    adapter.set_playoff_stage(series.id, "stage_2")
    adapter.write_playoff_picks(
        series.id,
        series.members[0].id,
        [PlayoffBracketPick(game_id="wc-afc-1", round="wild_card", picked_winner_id="buf", predicted_margin=14)],
    )

    stored = adapter.read_series(series.id)
    assert stored.playoff_seeding == SEEDING
    assert stored.playoff_stage == "stage_2"
    assert playoff.sort_games(stored.playoff_games) == playoff.sort_games(games)
    [result] = playoff.score_member(stored.members[0], stored.playoff_games)
    assert result.total_points == 10


def test_playoff_games_come_back_in_bracket_order(adapter, alice):
    series = adapter.create_series(alice, "Playoffs", series_type="playoff_pool")
    games = [playoff.pending_super_bowl(), *playoff.pending_conference_games(), *playoff.advance_bracket([], SEEDING)]
    adapter.write_playoff_games(series.id, games)

    stored = adapter.read_series(series.id).playoff_games
    assert [g.round for g in stored] == ["wild_card"] * 6 + ["conference"] * 2 + ["super_bowl"]
    assert stored == playoff.sort_games(games)


def test_placeholder_sources_round_trip(adapter, alice):
    series = adapter.create_series(alice, "Playoffs", series_type="playoff_pool")
    adapter.write_playoff_games(series.id, playoff.pending_conference_games())
    stored = {g.id: g for g in adapter.read_series(series.id).playoff_games}
    assert stored["conf-afc"].away_source.game_number == 2
    assert stored["conf-afc"].away_team_id is None


def test_invitation_lifecycle(adapter, alice, bob):
    series = adapter.create_series(alice, "Office Pool")
    invitation = adapter.create_invitation(series.id, "BOB@example.com", invited_by=alice.id)
    assert adapter.create_invitation(series.id, "bob@example.com", invited_by=alice.id).id == invitation.id

    [(pending_series, pending)] = adapter.list_pending_invitations("bob@example.com")
    assert pending_series.id == series.id
    assert pending.status == "pending"

    with pytest.raises(PermissionError):
        adapter.accept_invitation(invitation.id, alice)

    joined = adapter.accept_invitation(invitation.id, bob)
    assert bob.id in [m.user_id for m in joined.members]
    assert adapter.list_pending_invitations("bob@example.com") == []

    # accepted and declined are terminal
    with pytest.raises(InvitationClosed):
        adapter.accept_invitation(invitation.id, bob)
    with pytest.raises(InvitationClosed):
        adapter.decline_invitation(invitation.id)
    with pytest.raises(InvitationNotFound):
        adapter.decline_invitation("missing")


def test_decline_invitation(adapter, alice):
    series = adapter.create_series(alice, "Office Pool")
    invitation = adapter.create_invitation(series.id, "carol@example.com", invited_by=alice.id)
    adapter.decline_invitation(invitation.id)
    [stored] = adapter.read_series(series.id).invitations
    assert stored.status == "declined"

    again = adapter.create_invitation(series.id, "carol@example.com", invited_by=alice.id)
    assert again.status == "pending"
    assert again.id == invitation.id


def test_change_subscriptions(adapter, alice):
    series = adapter.create_series(alice, "Office Pool")
    seen = []
    unsubscribe = adapter.notify_on_change(series.id, seen.append)

    adapter.advance_week(series.id, 2)
    assert seen == [series.id]

    unsubscribe()
    adapter.advance_week(series.id, 3)
    assert seen == [series.id]


def test_failing_subscriber_does_not_block_writes(adapter, alice):
    series = adapter.create_series(alice, "Office Pool")

    def boom(series_id):
        raise RuntimeError("subscriber down")

    adapter.notify_on_change(series.id, boom)
    assert adapter.advance_week(series.id, 2).current_week == 2


def test_create_series_is_all_or_nothing():
    engine = sqlite_engine()
    adapter = SqlStore(engine)
    # a NULL member name fails the creator insert
    nameless = SimpleNamespace(id="u1", name=None, picture="")

    with pytest.raises(IntegrityError):
        adapter.create_series(nameless, "Half Written")
    with Session(engine) as session:
        assert session.exec(select(SeriesRow)).all() == []


def test_legacy_series_without_settings():
    engine = sqlite_engine()
    adapter = SqlStore(engine)
    alice = adapter.upsert_user("alice@example.com", "Alice")
    series = adapter.create_series(alice, "Old Pool")

    with Session(engine) as session:
        row = session.get(SeriesRow, series.id)
        row.settings_json = None
        session.add(row)
        session.commit()
    assert adapter.read_series(series.id).settings.lives_per_player == 2

    with Session(engine) as session:
        row = session.get(SeriesRow, series.id)
        row.settings_json = json.dumps({"livesPerPlayer": 1})
        session.add(row)
        session.commit()
    assert adapter.read_series(series.id).settings.lives_per_player == 1


def test_memory_readers_survive_concurrent_writes():
    adapter = MemoryStore()
    alice = adapter.upsert_user("alice@example.com", "Alice")
    stop = threading.Event()
    errors = []

    def writer():
        try:
            while not stop.is_set():
                series = adapter.create_series(alice, "Churn")
                adapter.create_invitation(series.id, "bob@example.com", invited_by=alice.id)
                adapter.delete_series(series.id)
        except Exception as exc:  # surfaced through the assertion below
            errors.append(exc)

    thread = threading.Thread(target=writer)
    thread.start()
    try:
        for _ in range(2000):
            adapter.list_user_series(alice.id)
            adapter.list_pending_invitations("bob@example.com")
    finally:
        stop.set()
        thread.join()
    assert errors == []
