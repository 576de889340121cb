# client/session.py
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Protocol

import httpx

from venti.client.errors import (
    BAD_RESPONSE_MESSAGE,
    NETWORK_MESSAGE,
    NotAuthenticated,
    RecordStoreError,
)
from venti.client.store import error_detail

logger = logging.getLogger(__name__)

SIGNED_IN = "SIGNED_IN"
SIGNED_OUT = "SIGNED_OUT"


@dataclass(frozen=True)
class AuthUser:
    id: str
    email: str


@dataclass(frozen=True)
class Session:
    access_token: str
    refresh_token: str
    user: AuthUser


SessionListener = Callable[[str, Optional[Session]], None]


class AuthProvider(Protocol):
    async def sign_up(self, email: str, password: str) -> Session: ...

    async def sign_in(self, email: str, password: str) -> Session: ...

    async def get_current_session(self) -> Optional[Session]: ...

    def on_session_change(self, callback: SessionListener) -> Callable[[], None]: ...

    async def sign_out(self) -> None: ...


def _session_from(payload: dict) -> Session:
    user = payload["user"]
    return Session(
        access_token=payload["access_token"],
        refresh_token=payload["refresh_token"],
        user=AuthUser(id=user["id"], email=user["email"]),
    )


class HttpAuthProvider:
    """Email/password sessions against the ``/auth`` routes."""

    def __init__(self, http: httpx.AsyncClient):
        self._http = http
        self._session: Optional[Session] = None
        self._listeners: List[SessionListener] = []

    # =====================================================================
    # LISTENERS
    # =====================================================================

    def on_session_change(self, callback: SessionListener) -> Callable[[], None]:
        """Register ``callback(event, session)``; returns an unsubscribe function."""
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def _emit(self, event: str, session: Optional[Session]) -> None:
        for listener in list(self._listeners):
            listener(event, session)

    # =====================================================================
    # SESSION
    # =====================================================================

    def access_token(self) -> str:
        if self._session is None:
            raise NotAuthenticated()
        return self._session.access_token

    async def get_current_session(self) -> Optional[Session]:
        return self._session

    async def _authenticate(self, path: str, email: str, password: str) -> Session:
        try:
            resp = await self._http.post(path, json={"email": email, "password": password})
        except httpx.TransportError as exc:
            raise RecordStoreError(NETWORK_MESSAGE, kind="network") from exc
        if resp.status_code >= 400:
            kind = "conflict" if resp.status_code == 409 else "unauthorized"
            raise RecordStoreError(error_detail(resp), kind=kind, status_code=resp.status_code)

        try:
            self._session = _session_from(resp.json())
        except (ValueError, KeyError, TypeError) as exc:
            logger.warning(f"Malformed session payload from {path}: {exc!r}")
            raise RecordStoreError(BAD_RESPONSE_MESSAGE, status_code=resp.status_code) from exc
        logger.info(f"Signed in as {self._session.user.id}")
        self._emit(SIGNED_IN, self._session)
        return self._session

    async def sign_up(self, email: str, password: str) -> Session:
        return await self._authenticate("/auth/register", email, password)

    async def sign_in(self, email: str, password: str) -> Session:
        return await self._authenticate("/auth/login", email, password)

    async def sign_out(self) -> None:
        self._session = None
        self._emit(SIGNED_OUT, None)
