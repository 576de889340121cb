# api/routers/stories.py
from typing import List
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from venti.core.config import get_db
from venti.core.security import get_current_user
from venti.models.user_auth import UserAuth
from venti.services.records import story_service
from venti.schemas.records import StoryCreate, StoryRead, StoryUpdate
from venti.schemas.user_auth import SuccessResponse

router = APIRouter(prefix="/stories", tags=["Stories"])


@router.get("", response_model=List[StoryRead], summary="List stories, most recently edited first")
def list_stories(
    user_id: str = Query(..., description="Owner of the stories"),
    current_user: UserAuth = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return story_service.list_for_owner(db, user_id, current_user)


@router.post(
    "",
    response_model=StoryRead,
    status_code=status.HTTP_201_CREATED,
    summary="Write a new story"
)
def create_story(
    story: StoryCreate,
    current_user: UserAuth = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return story_service.create(db, story.model_dump(), current_user)


@router.get("/{story_id}", response_model=StoryRead)
def get_story(
    story_id: int,
    current_user: UserAuth = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return story_service.get(db, story_id, current_user)


@router.patch("/{story_id}", response_model=StoryRead)
def update_story(
    story_id: int,
    changes: StoryUpdate,
    current_user: UserAuth = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Edit title and/or content; ``updated_at`` is bumped."""
    return story_service.update(db, story_id, changes.model_dump(exclude_unset=True), current_user)


@router.delete("/{story_id}", response_model=SuccessResponse)
def delete_story(
    story_id: int,
    current_user: UserAuth = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    story_service.delete(db, story_id, current_user)
    return SuccessResponse(message="Story deleted")
