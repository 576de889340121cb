# api/routers/functions.py
import logging
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from venti.core.config import get_db
from venti.core.security import get_current_user
from venti.models.user_auth import UserAuth
from venti.services.ai import GeminiClient, companion_ai_service, get_gemini_client
from venti.services.profile import profile_service
from venti.schemas.profile import ProfileRead, RoleUpdateRequest
from venti.schemas.functions import (
    AdminUsersResponse,
    AIResponseRequest,
    CommunityChatRequest,
    CommunityChatResponse,
    CommunityStoryRequest,
    TextResponse,
    UserDataBundle,
    WeeklySummaryRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/functions", tags=["Functions"])


# =====================================================================
# PRIVILEGED FUNCTIONS
# =====================================================================

@router.post("/admin-get-users", response_model=AdminUsersResponse, summary="List all users (admin)")
def admin_get_users(
    current_user: UserAuth = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return AdminUsersResponse(users=profile_service.list_users(db, current_user))


@router.post("/admin-update-role", response_model=ProfileRead, summary="Change a user's role (superadmin)")
def admin_update_role(
    request: RoleUpdateRequest,
    current_user: UserAuth = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    - **target_user_id**: profile to change
    - **new_role**: ``user`` or ``admin``

    Callers may not change their own role.
    """
    return profile_service.update_role(db, request, current_user)


@router.post("/get-user-data-bundle", response_model=UserDataBundle, summary="Profile plus every collection")
def get_user_data_bundle(
    current_user: UserAuth = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Creates the profile with defaults if this is the user's first session."""
    return profile_service.get_user_data_bundle(db, current_user)


# =====================================================================
# GENERATIVE TEXT
# =====================================================================

@router.post("/get-ai-response", response_model=TextResponse, summary="Companion chat reply")
async def get_ai_response(
    request: AIResponseRequest,
    current_user: UserAuth = Depends(get_current_user),
    client: GeminiClient = Depends(get_gemini_client)
):
    text = await companion_ai_service.reply(
        client, request.new_message, request.history, request.user_data
    )
    logger.debug(f"Companion reply generated for {current_user.id}")
    return TextResponse(text=text)


@router.post("/get-ai-weekly-summary", response_model=TextResponse, summary="Weekly journal summary")
async def get_ai_weekly_summary(
    request: WeeklySummaryRequest,
    current_user: UserAuth = Depends(get_current_user),
    client: GeminiClient = Depends(get_gemini_client)
):
    text = await companion_ai_service.weekly_summary(client, request.entries, request.moods)
    return TextResponse(text=text)


@router.post(
    "/get-ai-community-chat",
    response_model=CommunityChatResponse,
    summary="Support-group persona replies"
)
async def get_ai_community_chat(
    request: CommunityChatRequest,
    current_user: UserAuth = Depends(get_current_user),
    client: GeminiClient = Depends(get_gemini_client)
):
    messages = await companion_ai_service.community_chat(client, request.history)
    return CommunityChatResponse(messages=messages)


@router.post("/get-ai-community-story", response_model=TextResponse, summary="Anonymous story for a topic")
async def get_ai_community_story(
    request: CommunityStoryRequest,
    current_user: UserAuth = Depends(get_current_user),
    client: GeminiClient = Depends(get_gemini_client)
):
    text = await companion_ai_service.community_story(client, request.topic)
    return TextResponse(text=text)
