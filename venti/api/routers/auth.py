# api/routers/auth.py
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from venti.core.config import get_db
from venti.core.exceptions import UnauthorizedError
from venti.core.security import (
    create_access_token,
    create_refresh_token,
    get_current_user,
    verify_refresh_token
)
from venti.crud.user_auth import crud_user_auth
from venti.services.user_auth import user_auth_service
from venti.models.user_auth import UserAuth
from venti.schemas.user_auth import (
    LoginRequest,
    TokenResponse,
    RefreshTokenRequest,
    UserAuthCreate,
    UserAuthOut,
)

router = APIRouter(prefix="/auth", tags=["User Authentication"])


def _issue_tokens(user: UserAuth) -> TokenResponse:
    return TokenResponse(
        access_token=create_access_token(data={"sub": str(user.id)}),
        refresh_token=create_refresh_token(data={"sub": str(user.id)}),
        user=UserAuthOut.model_validate(user)
    )


# =====================================================================
# PUBLIC ENDPOINTS - No authentication required
# =====================================================================

@router.post(
    "/register",
    response_model=TokenResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register new user account"
)
def register(
    user_data: UserAuthCreate,
    db: Session = Depends(get_db)
):
    """
    Register a new account and sign it in.

    - **email**: Valid email address
    - **password**: 8 to 128 characters

    No profile is created here; it is created on the first session bootstrap.
    """
    user = user_auth_service.register_user(db, user_data)
    return _issue_tokens(user)


@router.post(
    "/login",
    response_model=TokenResponse,
    summary="Login to get access token"
)
def login(
    login_data: LoginRequest,
    db: Session = Depends(get_db)
):
    """Authenticate and receive access and refresh tokens."""
    user = user_auth_service.authenticate_user(db, login_data)
    return _issue_tokens(user)


@router.post(
    "/refresh",
    response_model=TokenResponse,
    summary="Refresh access token"
)
def refresh_token(
    refresh_data: RefreshTokenRequest,
    db: Session = Depends(get_db)
):
    user_id = verify_refresh_token(refresh_data.refresh_token)
    user = crud_user_auth.get(db, id=user_id)
    if user is None:
        raise UnauthorizedError("User not found")
    return _issue_tokens(user)


# =====================================================================
# USER ENDPOINTS - Authentication required
# =====================================================================

@router.get(
    "/me",
    response_model=UserAuthOut,
    summary="Get the signed-in account"
)
def get_me(
    current_user: UserAuth = Depends(get_current_user)
):
    return current_user
