# schemas/functions.py
from pydantic import BaseModel, Field
from typing import List, Dict, Any

from venti.schemas.profile import AdminUserView, ProfileRead
from venti.schemas.records import (
    JournalEntryRead,
    MoodEntryRead,
    StoryRead,
    ChatMessageRead,
)


# =====================================================================
# ADMIN
# =====================================================================

class AdminUsersResponse(BaseModel):
    users: List[AdminUserView]


# =====================================================================
# USER DATA BUNDLE
# =====================================================================

class UserDataBundle(ProfileRead):
    journal_entries: List[JournalEntryRead] = Field(default_factory=list)
    moods: List[MoodEntryRead] = Field(default_factory=list)
    my_stories: List[StoryRead] = Field(default_factory=list)
    chat_history: List[ChatMessageRead] = Field(default_factory=list)


# =====================================================================
# GENERATIVE TEXT
# =====================================================================

# Appended by the companion model when the user seems to be in crisis
SOS_MARKER = "[TRIGGER_SOS]"


class HistoryMessage(BaseModel):
    role: str
    text: str


class AIResponseRequest(BaseModel):
    new_message: str = Field(..., min_length=1)
    history: List[HistoryMessage] = Field(default_factory=list)
    user_data: Dict[str, Any] = Field(default_factory=dict)


class WeeklySummaryRequest(BaseModel):
    entries: List[Dict[str, Any]] = Field(default_factory=list)
    moods: List[Dict[str, Any]] = Field(default_factory=list)


class PersonaMessage(BaseModel):
    name: str
    text: str


class CommunityChatRequest(BaseModel):
    history: List[PersonaMessage] = Field(default_factory=list)


class CommunityChatResponse(BaseModel):
    messages: List[PersonaMessage]


class CommunityStoryRequest(BaseModel):
    topic: str = Field(..., min_length=1)


class TextResponse(BaseModel):
    text: str
