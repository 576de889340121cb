# schemas/records.py
from pydantic import BaseModel, Field, ConfigDict, field_validator
from typing import Optional
from datetime import date, datetime

from venti.models.chat_message import ChatRole


# =====================================================================
# JOURNAL
# =====================================================================

class JournalEntryBase(BaseModel):
    user_id: str
    prompt: Optional[str] = None
    content: str = Field(..., min_length=1)
    mood: int = Field(5, ge=1, le=10)


class JournalEntryCreate(JournalEntryBase):
    pass


class JournalEntryUpdate(BaseModel):
    prompt: Optional[str] = None
    content: Optional[str] = Field(None, min_length=1)
    mood: Optional[int] = Field(None, ge=1, le=10)


class JournalEntryRead(JournalEntryBase):
    id: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# =====================================================================
# MOODS
# =====================================================================

class MoodEntryBase(BaseModel):
    user_id: str
    date: date
    mood: int = Field(..., ge=1, le=10)


class MoodEntryUpsert(MoodEntryBase):
    """Insert-or-replace keyed by (user_id, date)."""
    pass


class MoodEntryUpdate(BaseModel):
    mood: int = Field(..., ge=1, le=10)


class MoodEntryRead(MoodEntryBase):
    id: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# =====================================================================
# STORIES
# =====================================================================

class StoryBase(BaseModel):
    user_id: str
    title: str
    content: str

    @field_validator("title", "content")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Title and content must not be empty")
        return v


class StoryCreate(StoryBase):
    pass


class StoryUpdate(BaseModel):
    title: Optional[str] = None
    content: Optional[str] = None


class StoryRead(StoryBase):
    id: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


# =====================================================================
# CHAT
# =====================================================================

class ChatMessageBase(BaseModel):
    user_id: str
    role: ChatRole
    text: str


class ChatMessageCreate(ChatMessageBase):
    pass


class ChatMessageRead(ChatMessageBase):
    id: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
