# client/mutations.py
import logging
from collections import Counter
from dataclasses import replace
from datetime import date
from typing import Any, Callable, Dict, Hashable, List, Optional, Tuple
from uuid import uuid4

from pydantic import ValidationError as PydanticValidationError

from venti.client.errors import (
    NOT_SIGNED_IN_MESSAGE,
    FunctionError,
    NotAuthenticated,
    RecordStoreError,
)
from venti.client.functions import FunctionsClient
from venti.client.state import (
    AggregateContainer,
    Confirmed,
    Items,
    Key,
    Pending,
    Tracked,
    UserData,
    index_of,
    remove_item,
    replace_item,
)
from venti.client.store import Record, RecordStore
from venti.schemas.functions import SOS_MARKER
from venti.schemas.profile import ProfileRead, ProfileUpdate, Streaks

logger = logging.getLogger(__name__)

MOOD_CONFLICT_KEY = "user_id,date"
GREETING = "Hi {name}, I'm here to listen. What's on your mind today?"
INVALID_PROFILE_MESSAGE = "Some of those profile details are not valid."

RemoteError = (RecordStoreError, FunctionError, NotAuthenticated)


def strip_sos(text: str) -> Tuple[str, bool]:
    """Remove the crisis marker; report whether it was present."""
    if SOS_MARKER not in text:
        return text, False
    return text.replace(SOS_MARKER, "").strip(), True


def _describe(exc: Exception) -> str:
    return str(exc) or exc.__class__.__name__


class Baselines:
    """
    Last confirmed value per slot while writes to that slot are in flight.

    A slot is a mood date or a profile field. The first write to begin on
    an idle slot records the value it replaces. Successful writes move the
    baseline forward, and a failed write falls back to it, so overlapping
    writes never restore each other's speculative values.
    """

    def __init__(self):
        self._values: Dict[Hashable, Any] = {}
        self._in_flight: Counter = Counter()

    def begin(self, slot: Hashable, current: Any) -> None:
        if not self._in_flight[slot]:
            self._values[slot] = current
        self._in_flight[slot] += 1

    def confirm(self, slot: Hashable, value: Any) -> None:
        self._values[slot] = value

    def get(self, slot: Hashable) -> Any:
        return self._values.get(slot)

    def in_flight(self, slot: Hashable) -> int:
        return self._in_flight[slot]

    def end(self, slot: Hashable) -> None:
        self._in_flight[slot] -= 1
        if self._in_flight[slot] <= 0:
            del self._in_flight[slot]
            self._values.pop(slot, None)


def _revert_item(items: Items, speculative: Tracked, baseline: Optional[Tracked]) -> Items:
    """Undo ``speculative`` if it is still shown: put back ``baseline`` or drop it."""
    for n, item in enumerate(items):
        if item is speculative:
            restored = () if baseline is None else (baseline,)
            return items[:n] + restored + items[n + 1:]
    return items


def _place_mood(moods: Items, day_iso: str, ours: Tracked, new: Tracked, sole: bool) -> Items:
    """Show the confirmed mood for its date unless a newer write is still pending."""
    for n, m in enumerate(moods):
        if m.record.get("date") == day_iso:
            if m is ours or m.confirmed or sole:
                return moods[:n] + (new,) + moods[n + 1:]
            return moods
    return moods + (new,)


class OptimisticMutations:
    """
    Every user write: apply locally, write remotely, then reconcile the
    confirmed record or undo this write's local change and post a notice.

    No method raises. Each returns True when the write was confirmed and
    False otherwise.
    """

    def __init__(
        self,
        container: AggregateContainer,
        store: RecordStore,
        functions: FunctionsClient,
        today: Callable[[], date] = date.today,
        max_program_day: int = 30,
    ):
        self.container = container
        self.store = store
        self.functions = functions
        self.today = today
        self.max_program_day = max_program_day
        self._mood_baselines = Baselines()
        self._profile_baselines = Baselines()

    # =====================================================================
    # HELPERS
    # =====================================================================

    @staticmethod
    def _temp_key() -> Pending:
        return Pending(f"temp-{uuid4().hex}")

    def _begin(self) -> Optional[UserData]:
        user_data = self.container.user_data
        if user_data is None:
            self.container.notify(NOT_SIGNED_IN_MESSAGE)
        return user_data

    def _stale(self, generation: int) -> bool:
        return generation != self.container.generation

    def _rollback(
        self,
        generation: int,
        revert: Callable[[UserData], UserData],
        message: str,
        exc: Exception,
    ) -> bool:
        """Undo this write's local change and post a notice; always False."""
        logger.warning(f"{message}: {_describe(exc)}")
        if self._stale(generation):
            return False
        self.container.update(revert)
        self.container.notify(f"{message}: {_describe(exc)}")
        return False

    @staticmethod
    def _restore(snapshot: Dict[str, Any]) -> Callable[[UserData], UserData]:
        return lambda ud: replace(ud, **snapshot)

    def _swap(self, generation: int, field: str, key: Key, row: Record) -> None:
        """Replace the item with ``key`` by the confirmed row."""
        if self._stale(generation):
            return
        new = Tracked(Confirmed(row["id"]), row)
        self.container.update(
            lambda ud: replace(ud, **{field: replace_item(getattr(ud, field), key, new)})
        )

    def _set(self, field: str, value: Any) -> None:
        self.container.update(lambda ud: replace(ud, **{field: value}))

    # =====================================================================
    # MOODS
    # =====================================================================

    async def log_mood(self, mood: int, day: Optional[date] = None) -> bool:
        """Record today's (or ``day``'s) mood; one entry per date, last write wins."""
        user_data = self._begin()
        if user_data is None:
            return False
        day_iso = (day or self.today()).isoformat()
        generation = self.container.generation
        slot = (generation, day_iso)

        moods = user_data.moods
        i = next((n for n, m in enumerate(moods) if m.record.get("date") == day_iso), None)
        previous = moods[i] if i is not None else None
        if previous is not None:
            speculative = Tracked(previous.key, {**previous.record, "mood": mood})
            moods = moods[:i] + (speculative,) + moods[i + 1:]
        else:
            record = {"user_id": user_data.profile.id, "date": day_iso, "mood": mood}
            speculative = Tracked(self._temp_key(), record)
            moods = moods + (speculative,)
        self._mood_baselines.begin(slot, previous)
        self._set("moods", moods)

        try:
            row = await self.store.collection("moods").upsert(
                {"user_id": user_data.profile.id, "date": day_iso, "mood": mood},
                on_conflict=MOOD_CONFLICT_KEY,
            )
        except RemoteError as exc:
            baseline = self._mood_baselines.get(slot)
            return self._rollback(
                generation,
                lambda ud: replace(ud, moods=_revert_item(ud.moods, speculative, baseline)),
                "Could not save your mood",
                exc,
            )
        else:
            if self._stale(generation):
                return False
            new = Tracked(Confirmed(row["id"]), row)
            self._mood_baselines.confirm(slot, new)
            sole = self._mood_baselines.in_flight(slot) == 1
            self.container.update(
                lambda ud: replace(ud, moods=_place_mood(ud.moods, day_iso, speculative, new, sole))
            )
            return True
        finally:
            self._mood_baselines.end(slot)

    # =====================================================================
    # PROFILE
    # =====================================================================

    def _revert_profile(self, generation: int, intended: Dict[str, Any]) -> Callable[[UserData], UserData]:
        """Put back each field this write changed, where it still shows this write's value."""

        def revert(ud: UserData) -> UserData:
            restored = {
                name: self._profile_baselines.get((generation, name))
                for name, value in intended.items()
                if getattr(ud.profile, name) == value
            }
            if not restored:
                return ud
            return replace(ud, profile=ud.profile.model_copy(update=restored))

        return revert

    def _confirmed_fields(self, row: Record, intended: Dict[str, Any]) -> Dict[str, Any]:
        """The stored values of the fields this write sent, typed like the profile."""
        sent = {name: row[name] for name in intended if name in row}
        try:
            parsed = ProfileRead.model_validate(
                {**self.container.user_data.profile.model_dump(), **sent}
            )
        except PydanticValidationError as exc:
            logger.warning(f"Stored profile row did not validate, keeping local values: {exc}")
            return dict(intended)
        return {name: getattr(parsed, name) for name in intended}

    async def update_profile(self, **changes: Any) -> bool:
        """
        Apply a partial profile change. Invalid values are rejected locally
        with a notice and nothing is sent.
        """
        user_data = self._begin()
        if user_data is None:
            return False
        try:
            validated = ProfileUpdate(**changes)
            fields = validated.model_dump(exclude_unset=True)
            speculative = ProfileRead.model_validate({**user_data.profile.model_dump(), **fields})
        except PydanticValidationError as exc:
            logger.info(f"Rejected profile change: {exc}")
            self.container.notify(INVALID_PROFILE_MESSAGE)
            return False

        generation = self.container.generation
        intended = {name: getattr(speculative, name) for name in fields}
        for name in intended:
            self._profile_baselines.begin((generation, name), getattr(user_data.profile, name))
        self._set("profile", speculative)

        try:
            row = await self.store.collection("profiles").update(
                user_data.profile.id, validated.model_dump(mode="json", exclude_unset=True)
            )
        except RemoteError as exc:
            return self._rollback(
                generation,
                self._revert_profile(generation, intended),
                "Could not update your profile",
                exc,
            )
        else:
            if self._stale(generation):
                return False
            stored = self._confirmed_fields(row, intended)
            current = self.container.user_data.profile
            shown = {}
            for name, value in stored.items():
                slot = (generation, name)
                self._profile_baselines.confirm(slot, value)
                # A later write to the same field is still showing its own value
                if self._profile_baselines.in_flight(slot) == 1 or getattr(current, name) == intended[name]:
                    shown[name] = value
            if shown:
                self._set("profile", current.model_copy(update=shown))
            return True
        finally:
            for name in intended:
                self._profile_baselines.end((generation, name))

    async def complete_task(self, streak: str = "self_care") -> bool:
        """
        Mark today's program task done: advance the day (capped), stamp
        the date and bump ``streak``. A second call on the same day does
        nothing.
        """
        user_data = self._begin()
        if user_data is None:
            return False
        if streak not in Streaks.model_fields:
            logger.info(f"Rejected unknown streak {streak!r}")
            self.container.notify(INVALID_PROFILE_MESSAGE)
            return False
        profile = user_data.profile
        today = self.today()
        if profile.last_task_completed_date == today:
            return True

        streaks = profile.streaks.model_dump()
        streaks[streak] = streaks[streak] + 1
        return await self.update_profile(
            program_day=min(self.max_program_day, profile.program_day + 1),
            last_task_completed_date=today,
            streaks=streaks,
        )

    async def complete_onboarding(self, **details: Any) -> bool:
        """Save the onboarding answers; the program day is left as is."""
        details.pop("program_day", None)
        return await self.update_profile(onboarding_complete=True, **details)

    async def select_program(self, program: str) -> bool:
        return await self.update_profile(
            program=program, program_day=1, last_task_completed_date=None
        )

    async def set_emergency_contact(self, name: str, phone: str) -> bool:
        return await self.update_profile(emergency_contact={"name": name, "phone": phone})

    async def set_shield_list(self, items: List[str]) -> bool:
        return await self.update_profile(shield_list=list(items))

    # =====================================================================
    # CHAT
    # =====================================================================

    async def _append_and_insert(
        self, generation: int, record: Record, failure: str
    ) -> Optional[Record]:
        """Append a pending chat message, insert it and confirm it in place."""
        snapshot = {"chat_history": self.container.user_data.chat_history}
        key = self._temp_key()
        self.container.update(
            lambda ud: replace(ud, chat_history=ud.chat_history + (Tracked(key, record),))
        )
        try:
            row = await self.store.collection("chat_history").insert(record)
        except RemoteError as exc:
            self._rollback(generation, self._restore(snapshot), failure, exc)
            return None
        self._swap(generation, "chat_history", key, row)
        return row

    async def send_chat(self, text: str) -> bool:
        """
        Persist the user's message, then ask for and persist a reply.

        If the user message cannot be saved it is removed and no reply is
        requested. If the reply fails the user message stays and a notice
        is posted; there is no automatic retry.
        """
        text = text.strip()
        user_data = self._begin()
        if user_data is None or not text:
            return False
        generation = self.container.generation
        user_id = user_data.profile.id
        history = [
            {"role": m.record["role"], "text": m.record["text"]}
            for m in user_data.chat_history
            if m.confirmed
        ]

        sent = await self._append_and_insert(
            generation,
            {"user_id": user_id, "role": "user", "text": text},
            "Could not send your message",
        )
        if sent is None or self._stale(generation):
            return False

        try:
            reply = await self.functions.ai_response(
                text, history, user_data.profile.model_dump(mode="json")
            )
        except RemoteError as exc:
            logger.warning(f"Companion reply failed: {_describe(exc)}")
            if not self._stale(generation):
                self.container.notify(f"Venti could not reply right now: {_describe(exc)}")
            return False
        if self._stale(generation):
            return False

        reply, crisis = strip_sos(reply)
        if crisis:
            logger.info(f"Crisis marker in reply for {user_id}")
            self.container.trigger_sos()

        saved = await self._append_and_insert(
            generation,
            {"user_id": user_id, "role": "model", "text": reply},
            "Could not save Venti's reply",
        )
        return saved is not None

    async def ensure_chat_greeting(self) -> bool:
        """Start an empty conversation with a greeting from the companion."""
        user_data = self._begin()
        if user_data is None:
            return False
        if user_data.chat_history:
            return True
        record = {
            "user_id": user_data.profile.id,
            "role": "model",
            "text": GREETING.format(name=user_data.profile.name or "there"),
        }
        saved = await self._append_and_insert(
            self.container.generation, record, "Could not start the conversation"
        )
        return saved is not None

    # =====================================================================
    # STORIES
    # =====================================================================

    async def save_story(self, title: str, content: str, story_id: Optional[int] = None) -> bool:
        """Create a story, or update ``story_id`` when given."""
        user_data = self._begin()
        if user_data is None:
            return False
        if not title.strip() or not content.strip():
            self.container.notify("Please add a title and some content before saving.")
            return False

        generation = self.container.generation
        snapshot = {"my_stories": user_data.my_stories}
        stories = self.store.collection("my_stories")

        if story_id is None:
            key: Key = self._temp_key()
            record = {"user_id": user_data.profile.id, "title": title, "content": content}
            self._set("my_stories", (Tracked(key, record),) + user_data.my_stories)
            try:
                row = await stories.insert(record)
            except RemoteError as exc:
                return self._rollback(generation, self._restore(snapshot), "Could not save your story", exc)
        else:
            key = Confirmed(story_id)
            i = index_of(user_data.my_stories, key)
            if i is None:
                self.container.notify("That story no longer exists.")
                return False
            current = user_data.my_stories[i]
            edited = Tracked(key, {**current.record, "title": title, "content": content})
            self._set("my_stories", replace_item(user_data.my_stories, key, edited))
            try:
                row = await stories.update(story_id, {"title": title, "content": content})
            except RemoteError as exc:
                return self._rollback(generation, self._restore(snapshot), "Could not update your story", exc)

        self._swap(generation, "my_stories", key, row)
        return not self._stale(generation)

    async def delete_story(self, story_id: int) -> bool:
        return await self._delete("my_stories", story_id, "Could not delete your story")

    # =====================================================================
    # JOURNAL
    # =====================================================================

    async def add_journal_entry(self, content: str, mood: int = 5, prompt: Optional[str] = None) -> bool:
        user_data = self._begin()
        if user_data is None:
            return False
        if not content.strip():
            self.container.notify("Write something before saving your entry.")
            return False

        generation = self.container.generation
        snapshot = {"journal_entries": user_data.journal_entries}
        key = self._temp_key()
        record = {"user_id": user_data.profile.id, "prompt": prompt, "content": content, "mood": mood}
        self._set("journal_entries", (Tracked(key, record),) + user_data.journal_entries)

        try:
            row = await self.store.collection("journal_entries").insert(record)
        except RemoteError as exc:
            return self._rollback(generation, self._restore(snapshot), "Could not save your journal entry", exc)

        self._swap(generation, "journal_entries", key, row)
        return not self._stale(generation)

    async def delete_journal_entry(self, entry_id: int) -> bool:
        return await self._delete("journal_entries", entry_id, "Could not delete your journal entry")

    async def _delete(self, field: str, record_id: Any, failure: str) -> bool:
        user_data = self._begin()
        if user_data is None:
            return False
        generation = self.container.generation
        snapshot = {field: getattr(user_data, field)}
        self._set(field, remove_item(getattr(user_data, field), Confirmed(record_id)))

        try:
            await self.store.collection(field).delete(record_id)
        except RemoteError as exc:
            return self._rollback(generation, self._restore(snapshot), failure, exc)
        return not self._stale(generation)
