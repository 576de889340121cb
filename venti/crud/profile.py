# crud/profile.py
from typing import Any, Dict, List, Optional, Tuple
from sqlalchemy.orm import Session

from venti.core.exceptions import DatabaseConflictError
from venti.crud.base import CRUDOwned
from venti.models.profile import Profile, UserRole
from venti.models.user_auth import UserAuth


class CRUDProfile:
    """CRUD operations for Profile model."""

    # =====================================================================
    # CREATE OPERATIONS
    # =====================================================================

    def create(self, db: Session, *, obj_in: Dict[str, Any]) -> Profile:
        """
        Insert a profile row.

        Raises:
            DatabaseConflictError: a profile with this id already exists
        """
        db_obj = Profile(**obj_in)
        db.add(db_obj)
        CRUDOwned.commit_or_conflict(db)
        db.refresh(db_obj)
        return db_obj

    def get_or_create(self, db: Session, *, obj_in: Dict[str, Any]) -> Tuple[Profile, bool]:
        """
        Return the profile for obj_in["id"], creating it if absent.

        Losing a creation race to another writer is not an error: the row
        the other writer created is returned.
        """
        existing = self.get(db, id=obj_in["id"])
        if existing is not None:
            return existing, False
        try:
            return self.create(db, obj_in=obj_in), True
        except DatabaseConflictError:
            existing = self.get(db, id=obj_in["id"])
            if existing is None:
                raise
            return existing, False

    # =====================================================================
    # READ OPERATIONS
    # =====================================================================

    def get(self, db: Session, id: str) -> Optional[Profile]:
        """Get profile by user ID."""
        return db.query(Profile).filter(Profile.id == id).first()

    def list_with_email(self, db: Session) -> List[Tuple[Profile, Optional[str]]]:
        """All profiles paired with the login e-mail of their owner."""
        return (
            db.query(Profile, UserAuth.email)
            .outerjoin(UserAuth, UserAuth.id == Profile.id)
            .order_by(Profile.created_at.asc())
            .all()
        )

    # =====================================================================
    # UPDATE OPERATIONS
    # =====================================================================

    def update(self, db: Session, *, db_obj: Profile, obj_in: Dict[str, Any]) -> Profile:
        for field, value in obj_in.items():
            setattr(db_obj, field, value)

        CRUDOwned.commit_or_conflict(db)
        db.refresh(db_obj)
        return db_obj

    def update_role(self, db: Session, *, db_obj: Profile, role: UserRole) -> Profile:
        """Role changes go through the privileged admin function only."""
        db_obj.role = role
        db.commit()
        db.refresh(db_obj)
        return db_obj

    # =====================================================================
    # DELETE OPERATIONS
    # =====================================================================

    def delete(self, db: Session, *, db_obj: Profile) -> None:
        db.delete(db_obj)


crud_profile = CRUDProfile()
