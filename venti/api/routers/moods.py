# api/routers/moods.py
from typing import List
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from venti.core.config import get_db
from venti.core.exceptions import ValidationError
from venti.core.security import get_current_user
from venti.models.user_auth import UserAuth
from venti.services.records import mood_service
from venti.schemas.records import MoodEntryRead, MoodEntryUpdate, MoodEntryUpsert
from venti.schemas.user_auth import SuccessResponse

router = APIRouter(prefix="/moods", tags=["Moods"])


# =====================================================================
# COLLECTION ENDPOINTS
# =====================================================================

@router.get("", response_model=List[MoodEntryRead], summary="List moods, newest date first")
def list_moods(
    user_id: str = Query(..., description="Owner of the moods"),
    current_user: UserAuth = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return mood_service.list_for_owner(db, user_id, current_user)


@router.post(
    "",
    response_model=MoodEntryRead,
    status_code=status.HTTP_201_CREATED,
    summary="Insert a mood; 409 if the date is already logged"
)
def create_mood(
    mood: MoodEntryUpsert,
    current_user: UserAuth = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return mood_service.create(db, mood.model_dump(), current_user)


@router.put("", response_model=MoodEntryRead, summary="Log the mood for a date")
def upsert_mood(
    mood: MoodEntryUpsert,
    on_conflict: str = Query("user_id,date", description="Conflict key; only user_id,date is supported"),
    current_user: UserAuth = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Insert-or-replace keyed by ``(user_id, date)``: at most one row per
    user per day, last write wins.
    """
    if on_conflict.replace(" ", "") != "user_id,date":
        raise ValidationError(f"Unsupported conflict key: {on_conflict}")
    return mood_service.upsert(db, mood.model_dump(), current_user)


# =====================================================================
# ITEM ENDPOINTS
# =====================================================================

@router.get("/{mood_id}", response_model=MoodEntryRead)
def get_mood(
    mood_id: int,
    current_user: UserAuth = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return mood_service.get(db, mood_id, current_user)


@router.patch("/{mood_id}", response_model=MoodEntryRead)
def update_mood(
    mood_id: int,
    changes: MoodEntryUpdate,
    current_user: UserAuth = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return mood_service.update(db, mood_id, changes.model_dump(), current_user)


@router.delete("/{mood_id}", response_model=SuccessResponse)
def delete_mood(
    mood_id: int,
    current_user: UserAuth = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    mood_service.delete(db, mood_id, current_user)
    return SuccessResponse(message="Mood entry deleted")
