# venti/schemas/__init__.py

from .user_auth import (
    UserAuthCreate,
    LoginRequest,
    RefreshTokenRequest,
    UserAuthOut,
    TokenResponse,
    SuccessResponse,
)
from .profile import (
    BreakupContext,
    Baseline,
    Streaks,
    EmergencyContact,
    ProfileFields,
    ProfileRead,
    ProfileCreate,
    ProfileUpdate,
    AdminUserView,
    RoleUpdateRequest,
)
from .records import (
    JournalEntryCreate,
    JournalEntryUpdate,
    JournalEntryRead,
    MoodEntryUpsert,
    MoodEntryUpdate,
    MoodEntryRead,
    StoryCreate,
    StoryUpdate,
    StoryRead,
    ChatMessageCreate,
    ChatMessageRead,
)

__all__ = [
    # Auth
    "UserAuthCreate", "LoginRequest", "RefreshTokenRequest",
    "UserAuthOut", "TokenResponse", "SuccessResponse",

    # Profile
    "BreakupContext", "Baseline", "Streaks", "EmergencyContact",
    "ProfileFields", "ProfileRead", "ProfileCreate", "ProfileUpdate",
    "AdminUserView", "RoleUpdateRequest",

    # Records
    "JournalEntryCreate", "JournalEntryUpdate", "JournalEntryRead",
    "MoodEntryUpsert", "MoodEntryUpdate", "MoodEntryRead",
    "StoryCreate", "StoryUpdate", "StoryRead",
    "ChatMessageCreate", "ChatMessageRead",
]
