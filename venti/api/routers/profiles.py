# api/routers/profiles.py
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from venti.core.config import get_db
from venti.core.security import get_current_user
from venti.models.user_auth import UserAuth
from venti.services.profile import profile_service
from venti.schemas.profile import ProfileCreate, ProfileRead, ProfileUpdate
from venti.schemas.user_auth import SuccessResponse

router = APIRouter(prefix="/profiles", tags=["Profiles"])


# =====================================================================
# COLLECTION ENDPOINTS
# =====================================================================

@router.get("", response_model=List[ProfileRead], summary="List own profile")
def list_profiles(
    user_id: Optional[str] = Query(None, description="Owner filter; defaults to the caller"),
    current_user: UserAuth = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return profile_service.list_profiles(db, user_id, current_user)


@router.post(
    "",
    response_model=ProfileRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create own profile"
)
def create_profile(
    profile_data: ProfileCreate,
    current_user: UserAuth = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Create the caller's profile. Returns 409 if it already exists, which
    the session bootstrap treats as a lost creation race.
    """
    return profile_service.create_profile(db, profile_data, current_user)


@router.put("", response_model=ProfileRead, summary="Create or overwrite own profile")
def upsert_profile(
    profile_data: ProfileCreate,
    current_user: UserAuth = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return profile_service.upsert_profile(db, profile_data, current_user)


# =====================================================================
# ITEM ENDPOINTS
# =====================================================================

@router.get("/{profile_id}", response_model=ProfileRead, summary="Get own profile")
def get_profile(
    profile_id: str,
    current_user: UserAuth = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return profile_service.get_profile(db, profile_id, current_user)


@router.patch("/{profile_id}", response_model=ProfileRead, summary="Update own profile")
def update_profile(
    profile_id: str,
    update_data: ProfileUpdate,
    current_user: UserAuth = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Partial update; only supplied fields change. The role is not editable here."""
    return profile_service.update_profile(db, profile_id, update_data, current_user)


@router.delete("/{profile_id}", response_model=SuccessResponse, summary="Reset account data")
def reset_account(
    profile_id: str,
    current_user: UserAuth = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Delete the profile and every journal entry, mood, story and chat message."""
    profile_service.reset_account(db, profile_id, current_user)
    return SuccessResponse(message="Account data reset")
