# crud/base.py
from typing import Any, Dict, Generic, List, Optional, Type, TypeVar
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError

from venti.core.config import Base
from venti.core.exceptions import DatabaseConflictError

ModelT = TypeVar("ModelT", bound=Base)


class CRUDOwned(Generic[ModelT]):
    """
    CRUD operations for a collection whose rows belong to one user.

    Subclasses set ``order_by`` to the collection's canonical ordering.
    """

    order_by: tuple = ()

    def __init__(self, model: Type[ModelT]):
        self.model = model

    # =====================================================================
    # HELPER METHODS
    # =====================================================================

    @staticmethod
    def commit_or_conflict(db: Session) -> None:
        """Commit, translating constraint violations into DatabaseConflictError."""
        try:
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            raise DatabaseConflictError(str(exc.orig)) from exc

    # =====================================================================
    # CREATE OPERATIONS
    # =====================================================================

    def create(self, db: Session, *, obj_in: Dict[str, Any]) -> ModelT:
        db_obj = self.model(**obj_in)
        db.add(db_obj)
        self.commit_or_conflict(db)
        db.refresh(db_obj)
        return db_obj

    # =====================================================================
    # READ OPERATIONS
    # =====================================================================

    def get(self, db: Session, id: Any) -> Optional[ModelT]:
        return db.query(self.model).filter(self.model.id == id).first()

    def get_owned(self, db: Session, *, id: Any, user_id: str) -> Optional[ModelT]:
        """Fetch a row only if it belongs to ``user_id``."""
        return (
            db.query(self.model)
            .filter(self.model.id == id, self.model.user_id == user_id)
            .first()
        )

    def list_by_user(self, db: Session, *, user_id: str) -> List[ModelT]:
        return (
            db.query(self.model)
            .filter(self.model.user_id == user_id)
            .order_by(*self.order_by)
            .all()
        )

    # =====================================================================
    # UPDATE OPERATIONS
    # =====================================================================

    def update(self, db: Session, *, db_obj: ModelT, obj_in: Dict[str, Any]) -> ModelT:
        for field, value in obj_in.items():
            setattr(db_obj, field, value)

        self.commit_or_conflict(db)
        db.refresh(db_obj)
        return db_obj

    # =====================================================================
    # DELETE OPERATIONS
    # =====================================================================

    def delete(self, db: Session, *, db_obj: ModelT) -> None:
        db.delete(db_obj)
        db.commit()

    def delete_all_for_user(self, db: Session, *, user_id: str) -> int:
        """Bulk delete; the caller commits."""
        return (
            db.query(self.model)
            .filter(self.model.user_id == user_id)
            .delete(synchronize_session=False)
        )
