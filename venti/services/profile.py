# services/profile.py
import logging
from typing import Dict, List, Optional
from sqlalchemy.orm import Session

from venti.core.exceptions import (
    ConflictError,
    DatabaseConflictError,
    NotFoundError,
    PermissionError,
    ValidationError,
)
from venti.crud.profile import crud_profile
from venti.crud.records import (
    crud_journal_entry,
    crud_mood_entry,
    crud_story,
    crud_chat_message,
)
from venti.models.profile import Profile, UserRole
from venti.models.user_auth import UserAuth
from venti.schemas.profile import (
    AdminUserView,
    ProfileCreate,
    ProfileFields,
    ProfileRead,
    ProfileUpdate,
    RoleUpdateRequest,
    default_display_name,
)
from venti.schemas.functions import UserDataBundle
from venti.schemas.records import (
    JournalEntryRead,
    MoodEntryRead,
    StoryRead,
    ChatMessageRead,
)

logger = logging.getLogger(__name__)

ADMIN_ROLES = {UserRole.admin, UserRole.superadmin}
ASSIGNABLE_ROLES = {UserRole.user, UserRole.admin}


class ProfileService:
    """Service layer for profiles and the privileged profile functions."""

    def __init__(self):
        self.crud = crud_profile

    # =====================================================================
    # PERMISSION HELPERS
    # =====================================================================

    def _require_owner(self, profile_id: str, requesting_user: UserAuth) -> None:
        if profile_id != requesting_user.id:
            raise PermissionError("You can only access your own profile")

    def _role_of(self, db: Session, requesting_user: UserAuth) -> UserRole:
        profile = self.crud.get(db, id=requesting_user.id)
        return profile.role if profile is not None else UserRole.user

    # =====================================================================
    # CREATE OPERATIONS
    # =====================================================================

    def create_profile(
        self, db: Session, profile_data: ProfileCreate, requesting_user: UserAuth
    ) -> Profile:
        """
        Client-side lazy creation.

        Raises:
            ConflictError: the profile already exists (e.g. created by the
                bundle function a moment earlier)
        """
        self._require_owner(profile_data.id, requesting_user)

        obj_in = profile_data.model_dump(exclude_unset=True, mode="python", exclude={"role"})
        obj_in["role"] = UserRole.user
        try:
            return self.crud.create(db, obj_in=obj_in)
        except DatabaseConflictError:
            raise ConflictError("Profile already exists")

    def upsert_profile(
        self, db: Session, profile_data: ProfileCreate, requesting_user: UserAuth
    ) -> Profile:
        """Create or overwrite the caller's profile; the stored role is kept."""
        self._require_owner(profile_data.id, requesting_user)

        fields = profile_data.model_dump(exclude_unset=True, exclude={"id", "role"})
        profile, created = self.crud.get_or_create(
            db,
            obj_in={"id": profile_data.id, "role": UserRole.user, **fields},
        )
        if created:
            return profile
        return self.crud.update(db, db_obj=profile, obj_in=fields)

    # =====================================================================
    # READ OPERATIONS
    # =====================================================================

    def list_profiles(
        self, db: Session, user_id: Optional[str], requesting_user: UserAuth
    ) -> List[Profile]:
        """Owner-filtered listing: the caller's profile, or nothing before creation."""
        owner_id = user_id or requesting_user.id
        self._require_owner(owner_id, requesting_user)
        profile = self.crud.get(db, id=owner_id)
        return [profile] if profile else []

    def get_profile(self, db: Session, profile_id: str, requesting_user: UserAuth) -> Profile:
        self._require_owner(profile_id, requesting_user)
        profile = self.crud.get(db, id=profile_id)
        if not profile:
            raise NotFoundError("Profile not found")
        return profile

    # =====================================================================
    # UPDATE OPERATIONS
    # =====================================================================

    def update_profile(
        self,
        db: Session,
        profile_id: str,
        update_data: ProfileUpdate,
        requesting_user: UserAuth,
    ) -> Profile:
        profile = self.get_profile(db, profile_id, requesting_user)
        changes = update_data.model_dump(exclude_unset=True)
        try:
            return self.crud.update(db, db_obj=profile, obj_in=changes)
        except DatabaseConflictError as exc:
            logger.warning(f"Profile update for {profile_id} rejected by the database: {exc}")
            raise ValidationError("Those profile details cannot be saved")

    # =====================================================================
    # DELETE OPERATIONS
    # =====================================================================

    def reset_account(self, db: Session, profile_id: str, requesting_user: UserAuth) -> None:
        """Erase the profile and every collection the user owns."""
        profile = self.get_profile(db, profile_id, requesting_user)
        for crud in (crud_journal_entry, crud_mood_entry, crud_story, crud_chat_message):
            crud.delete_all_for_user(db, user_id=profile_id)
        self.crud.delete(db, db_obj=profile)
        db.commit()
        logger.info(f"Account data reset for user {profile_id}")

    # =====================================================================
    # PRIVILEGED FUNCTIONS
    # =====================================================================

    def list_users(self, db: Session, requesting_user: UserAuth) -> List[AdminUserView]:
        """All profiles with e-mail; admin or superadmin only."""
        if self._role_of(db, requesting_user) not in ADMIN_ROLES:
            raise PermissionError("Not authorized")

        return [
            AdminUserView.model_validate(
                {**ProfileRead.model_validate(profile).model_dump(), "email": email or "N/A"}
            )
            for profile, email in self.crud.list_with_email(db)
        ]

    def update_role(
        self, db: Session, request: RoleUpdateRequest, requesting_user: UserAuth
    ) -> Profile:
        """Superadmin only; a caller may not change their own role."""
        try:
            new_role = UserRole(request.new_role)
        except ValueError:
            raise ValidationError("Invalid role specified")
        if new_role not in ASSIGNABLE_ROLES:
            raise ValidationError("Invalid role specified")

        if self._role_of(db, requesting_user) != UserRole.superadmin:
            raise PermissionError("Not authorized")

        if request.target_user_id == requesting_user.id:
            raise ValidationError("Cannot change your own role")

        target = self.crud.get(db, id=request.target_user_id)
        if not target:
            raise NotFoundError("Target user not found")

        logger.info(
            f"User {requesting_user.id} changed role of {target.id} "
            f"from {target.role.value} to {new_role.value}"
        )
        return self.crud.update_role(db, db_obj=target, role=new_role)

    def get_user_data_bundle(self, db: Session, requesting_user: UserAuth) -> UserDataBundle:
        """
        Server-side session bootstrap: get-or-create the profile with full
        defaults, then attach every collection. A collection that fails to
        load is logged and returned empty.
        """
        defaults = ProfileFields(name=default_display_name(requesting_user.email))
        profile, created = self.crud.get_or_create(
            db,
            obj_in={
                "id": requesting_user.id,
                "role": UserRole.user,
                **defaults.model_dump(),
            },
        )
        if created:
            logger.info(f"Profile created by bundle function for {requesting_user.id}")

        collections: Dict[str, list] = {}
        for key, crud, schema in (
            ("journal_entries", crud_journal_entry, JournalEntryRead),
            ("moods", crud_mood_entry, MoodEntryRead),
            ("my_stories", crud_story, StoryRead),
            ("chat_history", crud_chat_message, ChatMessageRead),
        ):
            try:
                rows = crud.list_by_user(db, user_id=requesting_user.id)
                collections[key] = [schema.model_validate(row) for row in rows]
            except Exception:
                logger.exception(f"Failed to load {key} for {requesting_user.id}")
                db.rollback()
                collections[key] = []

        return UserDataBundle(
            **ProfileRead.model_validate(profile).model_dump(),
            **collections,
        )


profile_service = ProfileService()
