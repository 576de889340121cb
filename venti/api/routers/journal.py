# api/routers/journal.py
from typing import List
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from venti.core.config import get_db
from venti.core.security import get_current_user
from venti.models.user_auth import UserAuth
from venti.services.records import journal_service
from venti.schemas.records import JournalEntryCreate, JournalEntryRead, JournalEntryUpdate
from venti.schemas.user_auth import SuccessResponse

router = APIRouter(prefix="/journal-entries", tags=["Journal"])


@router.get("", response_model=List[JournalEntryRead], summary="List journal entries, newest first")
def list_entries(
    user_id: str = Query(..., description="Owner of the entries"),
    current_user: UserAuth = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return journal_service.list_for_owner(db, user_id, current_user)


@router.post(
    "",
    response_model=JournalEntryRead,
    status_code=status.HTTP_201_CREATED,
    summary="Add a journal entry"
)
def create_entry(
    entry: JournalEntryCreate,
    current_user: UserAuth = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return journal_service.create(db, entry.model_dump(), current_user)


@router.get("/{entry_id}", response_model=JournalEntryRead)
def get_entry(
    entry_id: int,
    current_user: UserAuth = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return journal_service.get(db, entry_id, current_user)


@router.patch("/{entry_id}", response_model=JournalEntryRead)
def update_entry(
    entry_id: int,
    changes: JournalEntryUpdate,
    current_user: UserAuth = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return journal_service.update(db, entry_id, changes.model_dump(exclude_unset=True), current_user)


@router.delete("/{entry_id}", response_model=SuccessResponse)
def delete_entry(
    entry_id: int,
    current_user: UserAuth = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    journal_service.delete(db, entry_id, current_user)
    return SuccessResponse(message="Journal entry deleted")
