"""Session bootstrap against the in-memory store."""
import asyncio
from itertools import combinations

import pytest

from conftest import ALICE
from venti.client.bootstrap import SessionBootstrapper, merge_profile
from venti.client.errors import ProfileUnavailable, RecordConflict, RecordStoreError
from venti.client.session import AuthUser
from venti.client.state import Confirmed, Permissions

COLLECTIONS = ("journal_entries", "moods", "my_stories", "chat_history")


def _seed_collections(store, user_id=ALICE.id):
    store.collection("journal_entries").seed(
        {"user_id": user_id, "content": "older", "mood": 4, "created_at": "2024-01-01T09:00:00"},
        {"user_id": user_id, "content": "newer", "mood": 6, "created_at": "2024-01-03T09:00:00"},
    )
    store.collection("moods").seed(
        {"user_id": user_id, "date": "2024-01-01", "mood": 3},
        {"user_id": user_id, "date": "2024-01-02", "mood": 8},
    )
    store.collection("my_stories").seed(
        {"user_id": user_id, "title": "a", "content": "x", "updated_at": "2024-01-01T00:00:00"},
        {"user_id": user_id, "title": "b", "content": "y", "updated_at": "2024-01-05T00:00:00"},
    )
    store.collection("chat_history").seed(
        {"user_id": user_id, "role": "user", "text": "first", "created_at": "2024-01-01T10:00:00"},
        {"user_id": user_id, "role": "model", "text": "second", "created_at": "2024-01-01T10:00:05"},
    )
    # Someone else's rows never leak in
    store.collection("moods").seed({"user_id": "user-bob", "date": "2024-01-01", "mood": 1})


async def test_first_session_creates_minimal_profile(store):
    user_data = await SessionBootstrapper(store).establish_session(ALICE)

    row = store.collection("profiles").rows[ALICE.id]
    assert row == {**row, "name": "alice", "role": "user", "onboarding_complete": False}
    profile = user_data.profile
    assert profile.id == ALICE.id
    assert profile.name == "alice"
    assert profile.program_day == 1
    assert profile.shield_list == ["", "", "", "", ""]
    assert user_data.permissions == Permissions(can_admin=False, can_super_admin=False)


async def test_email_without_local_part_is_named_friend(store):
    user = AuthUser(id="user-anon", email="@example.com")
    user_data = await SessionBootstrapper(store).establish_session(user)
    assert user_data.profile.name == "Friend"


async def test_existing_profile_merges_over_defaults(store):
    store.collection("profiles").seed({
        "id": ALICE.id,
        "name": "Alice",
        "role": "admin",
        "program": "healing",
        "program_day": 12,
        "baseline": None,
        "ex_name": None,
    })
    user_data = await SessionBootstrapper(store).establish_session(ALICE)

    profile = user_data.profile
    assert profile.name == "Alice"
    assert profile.program_day == 12
    assert profile.program.value == "healing"
    assert profile.baseline.model_dump() == {"mood": 5, "sleep": 8, "anxiety": 5, "urge": 5}
    assert profile.ex_name == ""
    assert user_data.permissions == Permissions(can_admin=True, can_super_admin=False)
    assert store.collection("profiles").calls == ["fetch_one"]


def test_merge_forces_authenticated_id():
    profile = merge_profile({"id": "someone-else", "name": "X"}, "user-alice")
    assert profile.id == "user-alice"


async def test_collections_are_ordered_and_confirmed(store):
    _seed_collections(store)
    user_data = await SessionBootstrapper(store).establish_session(ALICE)

    assert [e.record["content"] for e in user_data.journal_entries] == ["newer", "older"]
    assert [m.record["date"] for m in user_data.moods] == ["2024-01-02", "2024-01-01"]
    assert [s.record["title"] for s in user_data.my_stories] == ["b", "a"]
    assert [c.record["text"] for c in user_data.chat_history] == ["first", "second"]
    assert all(isinstance(m.key, Confirmed) for m in user_data.moods)


async def test_profile_fetch_error_is_fatal(store):
    store.collection("profiles").fail("fetch_one")
    with pytest.raises(ProfileUnavailable) as exc_info:
        await SessionBootstrapper(store).establish_session(ALICE)
    assert "Network error" in str(exc_info.value)
    assert store.collection("profiles").calls == ["fetch_one"]


async def test_profile_create_error_is_fatal(store):
    store.collection("profiles").fail("insert", RecordStoreError("permission denied", kind="unauthorized"))
    with pytest.raises(ProfileUnavailable):
        await SessionBootstrapper(store).establish_session(ALICE)


async def test_create_conflict_refetches_profile(store):
    profiles = store.collection("profiles")
    original_insert = profiles.insert

    async def racing_insert(record):
        # Another writer gets there first
        profiles.seed({"id": ALICE.id, "name": "from-bundle", "role": "user"})
        return await original_insert(record)

    profiles.insert = racing_insert
    user_data = await SessionBootstrapper(store).establish_session(ALICE)

    assert user_data.profile.name == "from-bundle"
    assert len(profiles.rows) == 1


async def test_failed_refetch_after_conflict_is_fatal(store):
    profiles = store.collection("profiles")
    profiles.fail("insert", RecordConflict("duplicate key"))
    with pytest.raises(ProfileUnavailable):
        await SessionBootstrapper(store).establish_session(ALICE)
    assert profiles.calls == ["fetch_one", "insert", "fetch_one"]


async def test_concurrent_bootstraps_leave_one_profile(store):
    bootstrapper = SessionBootstrapper(store)
    first, second = await asyncio.gather(
        bootstrapper.establish_session(ALICE),
        bootstrapper.establish_session(ALICE),
    )
    assert list(store.collection("profiles").rows) == [ALICE.id]
    assert first.profile == second.profile


@pytest.mark.parametrize(
    "failing",
    [subset for n in range(len(COLLECTIONS) + 1) for subset in combinations(COLLECTIONS, n)],
)
async def test_auxiliary_failures_leave_other_collections_intact(store, failing):
    _seed_collections(store)
    for name in failing:
        store.collection(name).fail("fetch_where")

    user_data = await SessionBootstrapper(store).establish_session(ALICE)

    for name in COLLECTIONS:
        items = getattr(user_data, name)
        if name in failing:
            assert items == ()
        else:
            assert len(items) == 2
    assert user_data.profile.id == ALICE.id
