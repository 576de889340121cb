from .user_auth import crud_user_auth
from .profile import crud_profile
from .records import crud_journal_entry, crud_mood_entry, crud_story, crud_chat_message

__all__ = [
    "crud_user_auth",
    "crud_profile",
    "crud_journal_entry",
    "crud_mood_entry",
    "crud_story",
    "crud_chat_message",
]
