# client/functions.py
import logging
from typing import Any, Callable, Dict, List, Optional

import httpx

from venti.client.errors import (
    BAD_RESPONSE_MESSAGE,
    NETWORK_MESSAGE,
    FunctionError,
    NotAuthenticated,
)
from venti.client.store import error_detail

logger = logging.getLogger(__name__)


class FunctionsClient:
    """Invokes the server functions under ``/functions``."""

    def __init__(self, http: httpx.AsyncClient, token: Callable[[], str]):
        self._http = http
        self._token = token

    async def invoke(self, name: str, body: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        POST ``body`` to the named function and return the decoded JSON.

        Raises:
            NotAuthenticated: no session, or the server rejected the token
            FunctionError: network failure or any other error response; the
                message is the server's ``detail`` where there is one
        """
        headers = {"Authorization": f"Bearer {self._token()}"}
        try:
            resp = await self._http.post(f"/functions/{name}", json=body or {}, headers=headers)
        except httpx.TransportError as exc:
            logger.warning(f"Function {name} unreachable: {exc!r}")
            raise FunctionError(NETWORK_MESSAGE) from exc

        if resp.status_code == 401:
            raise NotAuthenticated()
        if resp.status_code >= 400:
            raise FunctionError(error_detail(resp), status_code=resp.status_code)
        try:
            data = resp.json()
        except ValueError as exc:
            logger.warning(f"Function {name} returned a non-JSON body")
            raise FunctionError(BAD_RESPONSE_MESSAGE, status_code=resp.status_code) from exc
        if not isinstance(data, dict):
            raise FunctionError(BAD_RESPONSE_MESSAGE, status_code=resp.status_code)
        return data

    async def _field(self, name: str, key: str, body: Optional[Dict[str, Any]] = None) -> Any:
        """Invoke ``name`` and return one field of its payload."""
        data = await self.invoke(name, body)
        if key not in data:
            logger.warning(f"Function {name} response has no {key!r}")
            raise FunctionError(BAD_RESPONSE_MESSAGE)
        return data[key]

    # =====================================================================
    # TYPED WRAPPERS
    # =====================================================================

    async def list_users(self) -> List[Dict[str, Any]]:
        return await self._field("admin-get-users", "users")

    async def update_role(self, target_user_id: str, new_role: str) -> Dict[str, Any]:
        return await self.invoke(
            "admin-update-role",
            {"target_user_id": target_user_id, "new_role": new_role},
        )

    async def user_data_bundle(self) -> Dict[str, Any]:
        return await self.invoke("get-user-data-bundle")

    async def ai_response(
        self,
        new_message: str,
        history: List[Dict[str, str]],
        user_data: Dict[str, Any],
    ) -> str:
        return await self._field(
            "get-ai-response",
            "text",
            {"new_message": new_message, "history": history, "user_data": user_data},
        )

    async def weekly_summary(self, entries: List[Dict[str, Any]], moods: List[Dict[str, Any]]) -> str:
        return await self._field("get-ai-weekly-summary", "text", {"entries": entries, "moods": moods})

    async def community_chat(self, history: List[Dict[str, str]]) -> List[Dict[str, str]]:
        return await self._field("get-ai-community-chat", "messages", {"history": history})

    async def community_story(self, topic: str) -> str:
        return await self._field("get-ai-community-story", "text", {"topic": topic})
