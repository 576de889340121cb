# venti/models/__init__.py

from venti.core.config import Base

# Import all models here so metadata.create_all sees every table
from .user_auth import UserAuth
from .profile import Profile, UserRole, Program
from .journal_entry import JournalEntry
from .mood_entry import MoodEntry
from .story import Story
from .chat_message import ChatMessage, ChatRole

__all__ = [
    "Base",
    "UserAuth",
    "Profile",
    "UserRole",
    "Program",
    "JournalEntry",
    "MoodEntry",
    "Story",
    "ChatMessage",
    "ChatRole",
]
