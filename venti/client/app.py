# client/app.py
import logging
from datetime import date, datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

import httpx

from venti.client.bootstrap import SessionBootstrapper
from venti.client.config import ClientSettings, client_settings
from venti.client.errors import (
    NOT_SIGNED_IN_MESSAGE,
    FunctionError,
    NotAuthenticated,
    ProfileUnavailable,
    RecordStoreError,
)
from venti.client.functions import FunctionsClient
from venti.client.mutations import OptimisticMutations
from venti.client.session import SIGNED_OUT, AuthProvider, AuthUser, HttpAuthProvider, Session
from venti.client.state import AggregateContainer, UserData
from venti.client.store import HttpRecordStore, RecordStore

logger = logging.getLogger(__name__)

SUMMARY_FALLBACK = (
    "I couldn't put together your weekly summary right now. "
    "Please try again in a little while."
)
STORY_FALLBACK = "This story is still being written. Please check back soon."
SUMMARY_WINDOW_DAYS = 7


class VentiApp:
    """
    Session lifecycle and the single owner of the aggregate.

    Writes go through ``mutations``; this class handles sign-in, the
    bootstrap and its failure state, sign-out, and the non-optimistic
    calls (admin functions, generated text).
    """

    def __init__(
        self,
        auth: AuthProvider,
        store: RecordStore,
        functions: FunctionsClient,
        settings: ClientSettings = client_settings,
        today: Callable[[], date] = date.today,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.auth = auth
        self.functions = functions
        self.container = AggregateContainer(
            notice_ttl_seconds=settings.NOTICE_TTL_SECONDS, clock=clock
        )
        self.bootstrapper = SessionBootstrapper(store)
        self.mutations = OptimisticMutations(
            self.container,
            store,
            functions,
            today=today,
            max_program_day=settings.MAX_PROGRAM_DAY,
        )
        self.store = store
        self.today = today
        self.init_error: Optional[str] = None
        self.loading = False
        self.admin_users: List[Dict[str, Any]] = []
        self._unsubscribe = auth.on_session_change(self._on_session_change)

    @classmethod
    def connect(
        cls,
        settings: ClientSettings = client_settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        **kwargs: Any,
    ) -> "VentiApp":
        """Wire the HTTP-backed auth, store and functions to ``settings.API_URL``."""
        http = httpx.AsyncClient(
            base_url=settings.API_URL,
            timeout=settings.REQUEST_TIMEOUT_SECONDS,
            transport=transport,
        )
        auth = HttpAuthProvider(http)
        return cls(
            auth,
            HttpRecordStore(http, auth.access_token),
            FunctionsClient(http, auth.access_token),
            settings=settings,
            **kwargs,
        )

    @property
    def user_data(self) -> Optional[UserData]:
        return self.container.user_data

    # =====================================================================
    # SESSION LIFECYCLE
    # =====================================================================

    def _on_session_change(self, event: str, session: Optional[Session]) -> None:
        if event == SIGNED_OUT:
            self.container.clear()
            self.init_error = None
            self.admin_users = []

    async def initialize(self) -> bool:
        """Resume an existing session, if any."""
        session = await self.auth.get_current_session()
        if session is None:
            return False
        return await self.handle_user_session(session.user)

    async def handle_user_session(self, user: AuthUser) -> bool:
        """
        Bootstrap the aggregate for ``user``. A fatal failure is kept in
        ``init_error`` for the user to retry or sign out; the session is
        never ended automatically.
        """
        generation = self.container.generation
        self.loading = True
        self.init_error = None
        try:
            user_data = await self.bootstrapper.establish_session(user)
        except ProfileUnavailable as exc:
            logger.error(f"Session bootstrap failed for {user.id}: {exc}")
            self.init_error = str(exc)
            return False
        finally:
            self.loading = False

        if generation != self.container.generation:
            # Signed out while loading
            return False
        self.container.load(user_data)
        return True

    async def sign_up(self, email: str, password: str) -> bool:
        session = await self.auth.sign_up(email, password)
        return await self.handle_user_session(session.user)

    async def sign_in(self, email: str, password: str) -> bool:
        session = await self.auth.sign_in(email, password)
        return await self.handle_user_session(session.user)

    async def retry(self) -> bool:
        session = await self.auth.get_current_session()
        if session is None:
            self.init_error = NOT_SIGNED_IN_MESSAGE
            return False
        return await self.handle_user_session(session.user)

    async def sign_out(self) -> None:
        await self.auth.sign_out()
        # Providers without listeners still leave a clean container
        if self.container.user_data is not None:
            self.container.clear()

    async def reset_account(self) -> bool:
        """Erase every record the user owns, then start over with a fresh profile."""
        user_data = self.container.user_data
        session = await self.auth.get_current_session()
        if user_data is None or session is None:
            self.container.notify(NOT_SIGNED_IN_MESSAGE)
            return False
        try:
            await self.store.collection("profiles").delete(user_data.profile.id)
        except (RecordStoreError, NotAuthenticated) as exc:
            logger.warning(f"Account reset failed: {exc}")
            self.container.notify(f"Could not reset your account: {exc}")
            return False

        logger.info(f"Account reset for {user_data.profile.id}")
        self.container.clear()
        return await self.handle_user_session(session.user)

    # =====================================================================
    # ADMIN FUNCTIONS
    # =====================================================================

    async def load_users(self) -> List[Dict[str, Any]]:
        user_data = self.container.user_data
        if user_data is None or not user_data.permissions.can_admin:
            self.container.notify("Not authorized")
            return []
        try:
            self.admin_users = await self.functions.list_users()
        except (FunctionError, NotAuthenticated) as exc:
            self.container.notify(str(exc))
            return []
        return self.admin_users

    async def change_role(self, target_user_id: str, new_role: str) -> bool:
        """Role changes are applied locally only after the server confirms them."""
        try:
            updated = await self.functions.update_role(target_user_id, new_role)
        except (FunctionError, NotAuthenticated) as exc:
            logger.warning(f"Role change for {target_user_id} refused: {exc}")
            self.container.notify(str(exc))
            return False

        self.admin_users = [
            {**u, "role": updated["role"]} if u.get("id") == target_user_id else u
            for u in self.admin_users
        ]
        self.container.notify(f"Role updated to {updated['role']}", level="info")
        return True

    # =====================================================================
    # GENERATED TEXT
    # =====================================================================

    async def weekly_summary(self) -> str:
        """Summary of the last seven days; a fallback text if generation fails."""
        user_data = self.container.user_data
        if user_data is None:
            return SUMMARY_FALLBACK
        since = (self.today() - timedelta(days=SUMMARY_WINDOW_DAYS)).isoformat()
        entries = [
            e.record for e in user_data.journal_entries
            if e.confirmed and str(e.record.get("created_at", ""))[:10] >= since
        ]
        moods = [
            m.record for m in user_data.moods
            if m.confirmed and str(m.record.get("date", "")) >= since
        ]
        try:
            return await self.functions.weekly_summary(entries, moods)
        except (FunctionError, NotAuthenticated) as exc:
            logger.warning(f"Weekly summary failed: {exc}")
            self.container.notify(str(exc))
            return SUMMARY_FALLBACK

    async def community_reply(self, history: List[Dict[str, str]]) -> List[Dict[str, str]]:
        try:
            return await self.functions.community_chat(history)
        except (FunctionError, NotAuthenticated) as exc:
            self.container.notify(str(exc))
            return []

    async def community_story(self, topic: str) -> str:
        try:
            return await self.functions.community_story(topic)
        except (FunctionError, NotAuthenticated) as exc:
            self.container.notify(str(exc))
            return STORY_FALLBACK

    # =====================================================================
    # NAVIGATION
    # =====================================================================

    def navigate(self, screen: str) -> None:
        self.container.navigate(screen)

    def go_back(self) -> None:
        self.container.go_back()

    def dismiss_sos(self) -> None:
        self.container.dismiss_sos()
