# services/user_auth.py
import logging
from sqlalchemy.orm import Session

from venti.core.exceptions import ConflictError, DatabaseConflictError, UnauthorizedError
from venti.crud.user_auth import crud_user_auth
from venti.models.user_auth import UserAuth
from venti.schemas.user_auth import UserAuthCreate, LoginRequest

logger = logging.getLogger(__name__)


class UserAuthService:
    """Service layer for registration and login."""

    def __init__(self):
        self.crud = crud_user_auth

    def register_user(self, db: Session, user_data: UserAuthCreate) -> UserAuth:
        """
        Public user registration.

        No profile row is created here; the first session creates it.

        Raises:
            ConflictError: If email already exists
        """
        if self.crud.get_by_email(db, email=user_data.email):
            raise ConflictError("Email already registered")
        try:
            user = self.crud.create(db, email=user_data.email, password=user_data.password)
        except DatabaseConflictError:
            raise ConflictError("Email already registered")
        logger.info(f"Registered user {user.id}")
        return user

    def authenticate_user(self, db: Session, login_data: LoginRequest) -> UserAuth:
        """
        Verify credentials and record the login time.

        Raises:
            UnauthorizedError: If the e-mail is unknown or the password is wrong
        """
        user = self.crud.get_by_email(db, email=login_data.email)
        if not user or not self.crud.verify_password(login_data.password, user.password_hash):
            raise UnauthorizedError("Invalid email or password")
        return self.crud.record_login(db, db_obj=user)


user_auth_service = UserAuthService()
