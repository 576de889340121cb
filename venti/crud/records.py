# crud/records.py
from datetime import date, datetime, timezone
from typing import Any, Dict, Optional
from sqlalchemy.orm import Session

from venti.core.exceptions import DatabaseConflictError
from venti.crud.base import CRUDOwned
from venti.models.journal_entry import JournalEntry
from venti.models.mood_entry import MoodEntry
from venti.models.story import Story
from venti.models.chat_message import ChatMessage


class CRUDJournalEntry(CRUDOwned[JournalEntry]):
    # Newest first
    order_by = (JournalEntry.created_at.desc(), JournalEntry.id.desc())


class CRUDMoodEntry(CRUDOwned[MoodEntry]):
    order_by = (MoodEntry.date.desc(), MoodEntry.id.desc())

    def get_by_date(self, db: Session, *, user_id: str, day: date) -> Optional[MoodEntry]:
        return (
            db.query(MoodEntry)
            .filter(MoodEntry.user_id == user_id, MoodEntry.date == day)
            .first()
        )

    def upsert(self, db: Session, *, obj_in: Dict[str, Any]) -> MoodEntry:
        """
        Insert or replace the mood for (user_id, date).

        A concurrent insert for the same key surfaces as a conflict on our
        insert; in that case the row now exists and is updated instead.
        """
        existing = self.get_by_date(db, user_id=obj_in["user_id"], day=obj_in["date"])
        if existing is not None:
            return self.update(db, db_obj=existing, obj_in={"mood": obj_in["mood"]})

        try:
            return self.create(db, obj_in=obj_in)
        except DatabaseConflictError:
            existing = self.get_by_date(db, user_id=obj_in["user_id"], day=obj_in["date"])
            if existing is None:
                raise
            return self.update(db, db_obj=existing, obj_in={"mood": obj_in["mood"]})


class CRUDStory(CRUDOwned[Story]):
    order_by = (Story.updated_at.desc(), Story.id.desc())

    def update(self, db: Session, *, db_obj: Story, obj_in: Dict[str, Any]) -> Story:
        obj_in = {**obj_in, "updated_at": datetime.now(timezone.utc)}
        return super().update(db, db_obj=db_obj, obj_in=obj_in)


class CRUDChatMessage(CRUDOwned[ChatMessage]):
    # Oldest first - conversation order
    order_by = (ChatMessage.created_at.asc(), ChatMessage.id.asc())


crud_journal_entry = CRUDJournalEntry(JournalEntry)
crud_mood_entry = CRUDMoodEntry(MoodEntry)
crud_story = CRUDStory(Story)
crud_chat_message = CRUDChatMessage(ChatMessage)
