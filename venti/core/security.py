# core/security.py
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from venti.core.config import settings, get_db
from venti.crud.user_auth import crud_user_auth
from venti.models.user_auth import UserAuth


# =====================================================================
# JWT TOKEN CONFIGURATION
# =====================================================================

security = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


# =====================================================================
# TOKEN CREATION
# =====================================================================

def _encode(data: dict, secret_key: str, token_type: str, lifetime: timedelta) -> str:
    to_encode = data.copy()
    to_encode.update({"exp": datetime.now(timezone.utc) + lifetime, "type": token_type})
    return jwt.encode(to_encode, secret_key, algorithm=settings.ALGORITHM)


def create_access_token(data: dict) -> str:
    """
    Create JWT access token.

    Args:
        data: Claims to embed, typically {"sub": user_id}

    Returns:
        Encoded JWT access token
    """
    return _encode(
        data,
        settings.SECRET_KEY,
        "access",
        timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
    )


def create_refresh_token(data: dict) -> str:
    return _encode(
        data,
        settings.REFRESH_SECRET_KEY,
        "refresh",
        timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
    )


# =====================================================================
# TOKEN VERIFICATION
# =====================================================================

def verify_token(token: str, secret_key: str, token_type: str = "access") -> str:
    """
    Verify JWT token and return the user id it was issued for.

    Raises:
        HTTPException: 401 if the token is malformed, expired or of the wrong type
    """
    try:
        payload = jwt.decode(token, secret_key, algorithms=[settings.ALGORITHM])
    except JWTError:
        raise _unauthorized("Could not validate credentials")

    user_id = payload.get("sub")
    if user_id is None:
        raise _unauthorized("Could not validate credentials")
    if payload.get("type") != token_type:
        raise _unauthorized(f"Invalid token type. Expected {token_type}")
    return user_id


def verify_access_token(token: str) -> str:
    return verify_token(token, settings.SECRET_KEY, "access")


def verify_refresh_token(token: str) -> str:
    return verify_token(token, settings.REFRESH_SECRET_KEY, "refresh")


# =====================================================================
# USER AUTHENTICATION DEPENDENCIES
# =====================================================================

async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db)
) -> UserAuth:
    """
    Resolve the caller from the bearer token.

    Raises:
        HTTPException: 401 if the header is missing, the token is invalid,
            or the user no longer exists
    """
    if credentials is None:
        raise _unauthorized("Not authenticated")

    user_id = verify_access_token(credentials.credentials)
    user = crud_user_auth.get(db, id=user_id)
    if user is None:
        raise _unauthorized("User not found")
    return user
