"""Optimistic writes: local apply, reconcile, rollback."""
import asyncio
from datetime import date

import pytest

from conftest import ALICE, TODAY
from venti.client.bootstrap import SessionBootstrapper
from venti.client.errors import FunctionError, RecordStoreError
from venti.client.mutations import GREETING, OptimisticMutations, strip_sos
from venti.client.state import Confirmed, Pending


def _moods(container):
    return [(m.record["date"], m.record["mood"]) for m in container.user_data.moods]


def _chat(container):
    return [(m.record["role"], m.record["text"]) for m in container.user_data.chat_history]


# =====================================================================
# ROLLBACK
# =====================================================================

async def _load_seeded(store, container):
    store.collection("moods").seed({"user_id": ALICE.id, "date": "2023-12-31", "mood": 4})
    store.collection("my_stories").seed(
        {"user_id": ALICE.id, "title": "Old", "content": "Text", "updated_at": "2023-12-30T00:00:00"}
    )
    store.collection("journal_entries").seed({"user_id": ALICE.id, "content": "Entry", "mood": 5})
    container.load(await SessionBootstrapper(store).establish_session(ALICE))


ROLLBACK_CASES = {
    "new mood": ("moods", "upsert", lambda m: m.log_mood(6)),
    "mood edit": ("moods", "upsert", lambda m: m.log_mood(9, date(2023, 12, 31))),
    "task": ("profiles", "update", lambda m: m.complete_task()),
    "profile edit": ("profiles", "update", lambda m: m.set_emergency_contact("Sam", "555-0100")),
    "program": ("profiles", "update", lambda m: m.select_program("healing")),
    "chat send": ("chat_history", "insert", lambda m: m.send_chat("hello")),
    "story create": ("my_stories", "insert", lambda m: m.save_story("New", "Body")),
    "story update": ("my_stories", "update", lambda m: m.save_story("Renamed", "Body", story_id=1)),
    "story delete": ("my_stories", "delete", lambda m: m.delete_story(1)),
    "journal add": ("journal_entries", "insert", lambda m: m.add_journal_entry("Today", 6)),
    "journal delete": ("journal_entries", "delete", lambda m: m.delete_journal_entry(1)),
    "greeting": ("chat_history", "insert", lambda m: m.ensure_chat_greeting()),
}


@pytest.mark.parametrize("case", list(ROLLBACK_CASES))
async def test_failed_write_restores_previous_aggregate(store, container, mutations, case):
    await _load_seeded(store, container)
    before = container.user_data
    collection, op, action = ROLLBACK_CASES[case]
    store.collection(collection).fail(op)

    assert await action(mutations) is False

    assert container.user_data == before
    notices = container.active()
    assert len(notices) == 1
    assert "Network error" in notices[0].message


async def test_invalid_profile_change_is_rejected_locally(store, signed_in, mutations):
    before = signed_in.user_data
    assert await mutations.set_shield_list(["one", "two"]) is False
    assert signed_in.user_data == before
    assert store.collection("profiles").calls.count("update") == 0
    assert signed_in.active()


async def test_mutation_without_session_posts_notice(container, mutations):
    assert await mutations.log_mood(5) is False
    assert container.active()[0].message == "You are not signed in."


# =====================================================================
# MOODS
# =====================================================================

async def test_log_mood_is_idempotent_per_date(store, signed_in, mutations):
    assert await mutations.log_mood(7)
    assert await mutations.log_mood(7)
    assert await mutations.log_mood(3)

    assert _moods(signed_in) == [("2024-01-01", 3)]
    assert isinstance(signed_in.user_data.moods[0].key, Confirmed)
    rows = list(store.collection("moods").rows.values())
    assert [(r["date"], r["mood"]) for r in rows] == [("2024-01-01", 3)]


async def test_log_mood_shows_pending_entry_before_store_answers(store, signed_in, mutations):
    task = asyncio.ensure_future(mutations.log_mood(8))
    await asyncio.sleep(0)
    assert isinstance(signed_in.user_data.moods[-1].key, Pending)
    assert _moods(signed_in) == [("2024-01-01", 8)]
    assert await task
    assert isinstance(signed_in.user_data.moods[-1].key, Confirmed)


async def test_new_date_is_appended(store, signed_in, mutations):
    await mutations.log_mood(5, date(2024, 1, 1))
    await mutations.log_mood(6, date(2024, 1, 2))
    assert _moods(signed_in) == [("2024-01-01", 5), ("2024-01-02", 6)]


# =====================================================================
# TASKS & PROFILE
# =====================================================================

async def test_complete_task_once_per_day(store, signed_in, mutations):
    assert await mutations.complete_task()
    assert await mutations.complete_task()

    profile = signed_in.user_data.profile
    assert profile.program_day == 2
    assert profile.last_task_completed_date == TODAY
    assert profile.streaks.self_care == 1
    assert store.collection("profiles").calls.count("update") == 1
    assert signed_in.active() == []


async def test_program_day_is_capped(store, container, signed_in, functions):
    store.collection("profiles").rows[ALICE.id]["program_day"] = 30
    container.load(await SessionBootstrapper(store).establish_session(ALICE))
    for day in (1, 2, 3):
        m = OptimisticMutations(container, store, functions, today=lambda d=day: date(2024, 2, d))
        assert await m.complete_task(streak="no_contact")

    profile = container.user_data.profile
    assert profile.program_day == 30
    assert profile.streaks.no_contact == 3


async def test_select_program_resets_progress(store, signed_in, mutations):
    await mutations.complete_task()
    assert await mutations.select_program("glow-up")

    profile = signed_in.user_data.profile
    assert profile.program.value == "glow-up"
    assert profile.program_day == 1
    assert profile.last_task_completed_date is None
    assert store.collection("profiles").rows[ALICE.id]["last_task_completed_date"] is None


async def test_null_for_required_field_is_rejected_locally(store, signed_in, mutations):
    before = signed_in.user_data
    assert await mutations.update_profile(name=None) is False
    assert signed_in.user_data == before
    assert store.collection("profiles").calls.count("update") == 0
    assert signed_in.active()[0].message == "Some of those profile details are not valid."


async def test_unknown_streak_is_rejected_locally(store, signed_in, mutations):
    before = signed_in.user_data
    assert await mutations.complete_task(streak="meditation") is False
    assert signed_in.user_data == before
    assert store.collection("profiles").calls.count("update") == 0
    assert len(signed_in.active()) == 1


async def test_complete_onboarding_keeps_program_day(store, signed_in, mutations):
    await mutations.complete_task()
    assert await mutations.complete_onboarding(
        ex_name="The Long Winter",
        shield_list=["a", "b", "c", "d", "e"],
        baseline={"mood": 3, "sleep": 6, "anxiety": 7, "urge": 8},
        program_day=1,
    )
    profile = signed_in.user_data.profile
    assert profile.onboarding_complete is True
    assert profile.ex_name == "The Long Winter"
    assert profile.program_day == 2


# =====================================================================
# CHAT
# =====================================================================

async def test_chat_turns_stay_in_order(store, signed_in, mutations, functions):
    functions.replies.extend(["reply A", "reply B"])
    assert await mutations.send_chat("A")
    assert await mutations.send_chat("B")

    assert _chat(signed_in) == [
        ("user", "A"), ("model", "reply A"), ("user", "B"), ("model", "reply B"),
    ]
    assert all(isinstance(m.key, Confirmed) for m in signed_in.user_data.chat_history)
    assert functions.calls[1]["history"] == [
        {"role": "user", "text": "A"}, {"role": "model", "text": "reply A"},
    ]


async def test_crisis_marker_is_stripped_and_raises_sos(store, signed_in, mutations, functions):
    functions.replies.append("Please reach out for help. [TRIGGER_SOS]")
    assert await mutations.send_chat("I can't do this anymore")

    assert signed_in.show_sos is True
    assert _chat(signed_in)[-1] == ("model", "Please reach out for help.")
    stored = [r["text"] for r in store.collection("chat_history").rows.values()]
    assert "[TRIGGER_SOS]" not in " ".join(stored)


async def test_reply_failure_keeps_user_message(store, signed_in, mutations, functions):
    functions.error = FunctionError("Network error: could not reach the server.")
    assert await mutations.send_chat("hello") is False

    assert _chat(signed_in) == [("user", "hello")]
    assert len(store.collection("chat_history").rows) == 1
    assert len(signed_in.active()) == 1


async def test_unsaved_user_message_requests_no_reply(store, signed_in, mutations, functions):
    store.collection("chat_history").fail("insert")
    assert await mutations.send_chat("hello") is False
    assert functions.calls == []
    assert _chat(signed_in) == []


async def test_blank_message_is_ignored(store, signed_in, mutations, functions):
    assert await mutations.send_chat("   ") is False
    assert store.collection("chat_history").calls == ["fetch_where"]


async def test_greeting_only_for_empty_history(store, signed_in, mutations):
    assert await mutations.ensure_chat_greeting()
    assert await mutations.ensure_chat_greeting()
    assert _chat(signed_in) == [("model", GREETING.format(name="alice"))]


def test_strip_sos_without_marker():
    assert strip_sos("hello") == ("hello", False)


# =====================================================================
# STORIES & JOURNAL
# =====================================================================

async def test_new_story_is_prepended_and_confirmed(store, signed_in, mutations):
    assert await mutations.save_story("First", "One")
    assert await mutations.save_story("Second", "Two")

    titles = [s.record["title"] for s in signed_in.user_data.my_stories]
    assert titles == ["Second", "First"]
    assert all(isinstance(s.key, Confirmed) for s in signed_in.user_data.my_stories)


async def test_story_edit_keeps_position(store, signed_in, mutations):
    await mutations.save_story("First", "One")
    await mutations.save_story("Second", "Two")
    first_id = signed_in.user_data.my_stories[1].key.id

    assert await mutations.save_story("First, revised", "One", story_id=first_id)
    titles = [s.record["title"] for s in signed_in.user_data.my_stories]
    assert titles == ["Second", "First, revised"]


@pytest.mark.parametrize("title,content", [("", "body"), ("title", "   ")])
async def test_empty_story_is_rejected_locally(store, signed_in, mutations, title, content):
    assert await mutations.save_story(title, content) is False
    assert store.collection("my_stories").calls == ["fetch_where"]
    assert signed_in.active()


async def test_delete_story(store, signed_in, mutations):
    await mutations.save_story("Gone", "Soon")
    story_id = signed_in.user_data.my_stories[0].key.id
    assert await mutations.delete_story(story_id)
    assert signed_in.user_data.my_stories == ()
    assert store.collection("my_stories").rows == {}


async def test_journal_entry_round(store, signed_in, mutations):
    assert await mutations.add_journal_entry("Felt lighter today", 7, prompt="What helped?")
    entry = signed_in.user_data.journal_entries[0]
    assert entry.record["prompt"] == "What helped?"
    assert await mutations.delete_journal_entry(entry.key.id)
    assert signed_in.user_data.journal_entries == ()


# =====================================================================
# OVERLAPPING WRITES
# =====================================================================

def _fail_attempt(collection, op, attempt, yields=1):
    """Make the ``attempt``-th call of ``op`` fail after yielding ``yields`` times."""
    original = getattr(collection, op)
    count = {"n": 0}

    async def wrapped(*args, **kwargs):
        count["n"] += 1
        if count["n"] == attempt:
            collection.calls.append(op)
            for _ in range(yields):
                await asyncio.sleep(0)
            raise RecordStoreError("Network error: could not reach the server.", kind="network")
        return await original(*args, **kwargs)

    setattr(collection, op, wrapped)


async def test_failed_mood_write_does_not_hide_a_later_success(store, signed_in, mutations):
    _fail_attempt(store.collection("moods"), "upsert", attempt=1)

    results = await asyncio.gather(mutations.log_mood(7), mutations.log_mood(3))

    assert results == [False, True]
    rows = list(store.collection("moods").rows.values())
    assert [(r["date"], r["mood"]) for r in rows] == [("2024-01-01", 3)]
    assert _moods(signed_in) == [("2024-01-01", 3)]
    assert isinstance(signed_in.user_data.moods[0].key, Confirmed)


async def test_failed_mood_write_falls_back_to_earlier_confirmation(store, signed_in, mutations):
    _fail_attempt(store.collection("moods"), "upsert", attempt=2, yields=2)

    results = await asyncio.gather(mutations.log_mood(7), mutations.log_mood(3))

    assert results == [True, False]
    rows = list(store.collection("moods").rows.values())
    assert [(r["date"], r["mood"]) for r in rows] == [("2024-01-01", 7)]
    assert _moods(signed_in) == [("2024-01-01", 7)]
    assert isinstance(signed_in.user_data.moods[0].key, Confirmed)


async def test_both_mood_writes_failing_leaves_no_entry(store, signed_in, mutations):
    moods = store.collection("moods")
    _fail_attempt(moods, "upsert", attempt=1)
    _fail_attempt(moods, "upsert", attempt=2)

    assert await asyncio.gather(mutations.log_mood(7), mutations.log_mood(3)) == [False, False]
    assert _moods(signed_in) == []
    assert moods.rows == {}


async def test_failed_profile_write_keeps_other_confirmed_fields(store, signed_in, mutations):
    profiles = store.collection("profiles")
    _fail_attempt(profiles, "update", attempt=1, yields=3)

    results = await asyncio.gather(
        mutations.complete_task(),
        mutations.set_emergency_contact("Sam", "555-0100"),
    )

    assert results == [False, True]
    stored = profiles.rows[ALICE.id]
    profile = signed_in.user_data.profile
    assert profile.emergency_contact.model_dump() == stored["emergency_contact"]
    assert profile.emergency_contact.name == "Sam"
    assert profile.program_day == 1
    assert profile.last_task_completed_date is None
    assert profile.streaks.self_care == 0


# =====================================================================
# SIGN-OUT DURING A WRITE
# =====================================================================

async def test_late_completion_after_clear_is_discarded(store, signed_in, mutations):
    task = asyncio.ensure_future(mutations.log_mood(4))
    await asyncio.sleep(0)
    signed_in.clear()
    assert await task is False
    assert signed_in.user_data is None


async def test_late_failure_after_clear_posts_nothing(store, signed_in, mutations):
    store.collection("moods").fail("upsert", RecordStoreError("boom"))
    task = asyncio.ensure_future(mutations.log_mood(4))
    await asyncio.sleep(0)
    signed_in.clear()
    assert await task is False
    assert signed_in.active() == []
