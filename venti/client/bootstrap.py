# client/bootstrap.py
import asyncio
import logging
from typing import Any, Dict, Tuple

from pydantic import ValidationError as PydanticValidationError

from venti.client.errors import (
    NotAuthenticated,
    ProfileUnavailable,
    RecordConflict,
    RecordNotFound,
    RecordStoreError,
)
from venti.client.session import AuthUser
from venti.client.state import Items, Permissions, UserData, confirmed
from venti.client.store import Record, RecordStore
from venti.schemas.profile import ProfileFields, ProfileRead, default_display_name

logger = logging.getLogger(__name__)

# collection -> (sort field, newest first)
COLLECTION_ORDER: Dict[str, Tuple[str, bool]] = {
    "journal_entries": ("created_at", True),
    "moods": ("date", True),
    "my_stories": ("updated_at", True),
    "chat_history": ("created_at", False),
}


def merge_profile(row: Record, user_id: str) -> ProfileRead:
    """
    Defaults, overlaid with every non-null field of the stored row, with
    ``id`` forced to the authenticated identity.
    """
    merged: Dict[str, Any] = {"role": "user", **ProfileFields().model_dump()}
    merged.update(
        {k: v for k, v in row.items() if v is not None and k in ProfileRead.model_fields}
    )
    merged["id"] = user_id
    return ProfileRead.model_validate(merged)


def _ordered(name: str, rows: list) -> Items:
    field, newest_first = COLLECTION_ORDER[name]
    rows = sorted(
        rows,
        key=lambda r: (str(r.get(field) or ""), r.get("id") or 0),
        reverse=newest_first,
    )
    return tuple(confirmed(row) for row in rows)


class SessionBootstrapper:
    """Builds the aggregate for a freshly signed-in user."""

    def __init__(self, store: RecordStore):
        self.store = store

    async def establish_session(self, user: AuthUser) -> UserData:
        """
        Resolve or create the profile, then load the four collections.

        Raises:
            ProfileUnavailable: the profile could not be fetched or created.
                Collection failures are never fatal.
        """
        row = await self._resolve_profile(user)
        try:
            profile = merge_profile(row, user.id)
        except PydanticValidationError as exc:
            logger.error(f"Stored profile for {user.id} is invalid: {exc}")
            raise ProfileUnavailable("Your profile data could not be read.", cause=exc) from exc

        names = list(COLLECTION_ORDER)
        results = await asyncio.gather(*(self._fetch_collection(name, user.id) for name in names))

        logger.info(f"Session established for {user.id}")
        return UserData(
            profile=profile,
            permissions=Permissions.from_role(profile.role),
            **dict(zip(names, results)),
        )

    # =====================================================================
    # PROFILE
    # =====================================================================

    async def _resolve_profile(self, user: AuthUser) -> Record:
        profiles = self.store.collection("profiles")
        try:
            return await profiles.fetch_one(user.id)
        except RecordNotFound:
            logger.info(f"No profile for {user.id}; creating one")
        except (RecordStoreError, NotAuthenticated) as exc:
            raise self._unavailable(user, "load", exc)

        minimal = {
            "id": user.id,
            "name": default_display_name(user.email),
            "role": "user",
            "onboarding_complete": False,
        }
        try:
            return await profiles.insert(minimal)
        except RecordConflict:
            # Created concurrently by another writer
            logger.info(f"Profile for {user.id} already created elsewhere; re-fetching")
        except (RecordStoreError, NotAuthenticated) as exc:
            raise self._unavailable(user, "create", exc)

        try:
            return await profiles.fetch_one(user.id)
        except (RecordStoreError, NotAuthenticated) as exc:
            raise self._unavailable(user, "load", exc)

    @staticmethod
    def _unavailable(user: AuthUser, action: str, exc: Exception) -> ProfileUnavailable:
        logger.error(f"Could not {action} profile for {user.id}: {exc}")
        return ProfileUnavailable(f"Could not {action} your profile: {exc}", cause=exc)

    # =====================================================================
    # COLLECTIONS
    # =====================================================================

    async def _fetch_collection(self, name: str, user_id: str) -> Items:
        try:
            rows = await self.store.collection(name).fetch_where(user_id)
        except (RecordStoreError, NotAuthenticated) as exc:
            logger.warning(f"Could not load {name} for {user_id}; continuing without it: {exc}")
            return ()
        return _ordered(name, rows)
