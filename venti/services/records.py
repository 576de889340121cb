# services/records.py
from typing import Any, Dict, List
from sqlalchemy.orm import Session

from venti.core.exceptions import (
    ConflictError,
    DatabaseConflictError,
    NotFoundError,
    PermissionError,
)
from venti.crud.base import CRUDOwned
from venti.crud.records import (
    crud_journal_entry,
    crud_mood_entry,
    crud_story,
    crud_chat_message,
)
from venti.models.user_auth import UserAuth


class OwnedRecordService:
    """
    Per-user access rules for one collection: a caller sees and touches
    only rows whose user_id is its own identity.
    """

    def __init__(self, crud: CRUDOwned, label: str):
        self.crud = crud
        self.label = label

    # =====================================================================
    # PERMISSION HELPERS
    # =====================================================================

    def _require_owner(self, owner_id: str, requesting_user: UserAuth) -> None:
        if owner_id != requesting_user.id:
            raise PermissionError(f"You can only access your own {self.label}")

    def _get_owned(self, db: Session, record_id: int, requesting_user: UserAuth):
        # Foreign rows are reported as missing rather than forbidden
        db_obj = self.crud.get_owned(db, id=record_id, user_id=requesting_user.id)
        if db_obj is None:
            raise NotFoundError(f"{self.label.capitalize()} not found")
        return db_obj

    # =====================================================================
    # OPERATIONS
    # =====================================================================

    def get(self, db: Session, record_id: int, requesting_user: UserAuth):
        return self._get_owned(db, record_id, requesting_user)

    def list_for_owner(self, db: Session, owner_id: str, requesting_user: UserAuth) -> List[Any]:
        self._require_owner(owner_id, requesting_user)
        return self.crud.list_by_user(db, user_id=owner_id)

    def create(self, db: Session, obj_in: Dict[str, Any], requesting_user: UserAuth):
        self._require_owner(obj_in["user_id"], requesting_user)
        try:
            return self.crud.create(db, obj_in=obj_in)
        except DatabaseConflictError:
            raise ConflictError(f"{self.label.capitalize()} already exists")

    def update(
        self, db: Session, record_id: int, changes: Dict[str, Any], requesting_user: UserAuth
    ):
        db_obj = self._get_owned(db, record_id, requesting_user)
        try:
            return self.crud.update(db, db_obj=db_obj, obj_in=changes)
        except DatabaseConflictError:
            raise ConflictError(f"{self.label.capitalize()} conflicts with an existing record")

    def delete(self, db: Session, record_id: int, requesting_user: UserAuth) -> None:
        db_obj = self._get_owned(db, record_id, requesting_user)
        self.crud.delete(db, db_obj=db_obj)


class MoodService(OwnedRecordService):
    def upsert(self, db: Session, obj_in: Dict[str, Any], requesting_user: UserAuth):
        """Last write wins for (user_id, date)."""
        self._require_owner(obj_in["user_id"], requesting_user)
        return self.crud.upsert(db, obj_in=obj_in)


journal_service = OwnedRecordService(crud_journal_entry, "journal entry")
mood_service = MoodService(crud_mood_entry, "mood entry")
story_service = OwnedRecordService(crud_story, "story")
chat_service = OwnedRecordService(crud_chat_message, "chat message")
