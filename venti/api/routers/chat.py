# api/routers/chat.py
from typing import List
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from venti.core.config import get_db
from venti.core.security import get_current_user
from venti.models.user_auth import UserAuth
from venti.services.records import chat_service
from venti.schemas.records import ChatMessageCreate, ChatMessageRead
from venti.schemas.user_auth import SuccessResponse

router = APIRouter(prefix="/chat-messages", tags=["Chat"])


@router.get("", response_model=List[ChatMessageRead], summary="Conversation history, oldest first")
def list_messages(
    user_id: str = Query(..., description="Owner of the conversation"),
    current_user: UserAuth = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return chat_service.list_for_owner(db, user_id, current_user)


@router.post(
    "",
    response_model=ChatMessageRead,
    status_code=status.HTTP_201_CREATED,
    summary="Persist a chat message"
)
def create_message(
    message: ChatMessageCreate,
    current_user: UserAuth = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return chat_service.create(db, message.model_dump(), current_user)


@router.delete("/{message_id}", response_model=SuccessResponse)
def delete_message(
    message_id: int,
    current_user: UserAuth = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    chat_service.delete(db, message_id, current_user)
    return SuccessResponse(message="Chat message deleted")
