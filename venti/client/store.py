# client/store.py
import logging
from typing import Any, Callable, Dict, List, Optional, Protocol

import httpx

from venti.client.errors import (
    BAD_RESPONSE_MESSAGE,
    NETWORK_MESSAGE,
    RecordConflict,
    RecordNotFound,
    RecordStoreError,
)

logger = logging.getLogger(__name__)

Record = Dict[str, Any]

# Collection name -> route
COLLECTION_PATHS = {
    "profiles": "/profiles",
    "journal_entries": "/journal-entries",
    "moods": "/moods",
    "my_stories": "/stories",
    "chat_history": "/chat-messages",
}


class Collection(Protocol):
    async def fetch_where(self, owner_id: str) -> List[Record]: ...

    async def fetch_one(self, id: Any) -> Record: ...

    async def insert(self, record: Record) -> Record: ...

    async def update(self, id: Any, changes: Record) -> Record: ...

    async def upsert(self, record: Record, on_conflict: str) -> Record: ...

    async def delete(self, id: Any) -> None: ...


class RecordStore(Protocol):
    def collection(self, name: str) -> Collection: ...


# =====================================================================
# HTTP IMPLEMENTATION
# =====================================================================


def error_detail(resp: httpx.Response) -> str:
    """The server's ``detail`` message, falling back to the status line."""
    try:
        payload = resp.json()
    except ValueError:
        payload = None
    detail = payload.get("detail") if isinstance(payload, dict) else None
    if isinstance(detail, list):
        # request validation errors
        detail = "; ".join(str(item.get("msg", item)) for item in detail)
    return str(detail or resp.reason_phrase or f"HTTP {resp.status_code}")


def raise_for_store(resp: httpx.Response) -> None:
    """Translate an error response into the store error taxonomy."""
    if resp.status_code < 400:
        return
    message = error_detail(resp)
    if resp.status_code == 404:
        raise RecordNotFound(message, status_code=404)
    if resp.status_code == 409:
        raise RecordConflict(message, status_code=409)
    if resp.status_code in (401, 403):
        raise RecordStoreError(message, kind="unauthorized", status_code=resp.status_code)
    raise RecordStoreError(message, status_code=resp.status_code)


def _decode(resp: httpx.Response) -> Any:
    try:
        return resp.json()
    except ValueError as exc:
        logger.warning(f"{resp.request.method} {resp.request.url} returned a non-JSON body")
        raise RecordStoreError(BAD_RESPONSE_MESSAGE, status_code=resp.status_code) from exc


class HttpCollection:
    def __init__(self, http: httpx.AsyncClient, path: str, token: Callable[[], str]):
        self._http = http
        self._path = path
        self._token = token

    async def _send(
        self,
        method: str,
        url: str,
        json: Optional[Record] = None,
        params: Optional[Dict[str, str]] = None,
    ) -> httpx.Response:
        headers = {"Authorization": f"Bearer {self._token()}"}
        try:
            resp = await self._http.request(method, url, json=json, params=params, headers=headers)
        except httpx.TransportError as exc:
            # Timeouts are transport errors too
            logger.warning(f"{method} {url} failed: {exc!r}")
            raise RecordStoreError(NETWORK_MESSAGE, kind="network") from exc
        raise_for_store(resp)
        return resp

    async def fetch_where(self, owner_id: str) -> List[Record]:
        resp = await self._send("GET", self._path, params={"user_id": owner_id})
        return _decode(resp)

    async def fetch_one(self, id: Any) -> Record:
        resp = await self._send("GET", f"{self._path}/{id}")
        return _decode(resp)

    async def insert(self, record: Record) -> Record:
        resp = await self._send("POST", self._path, json=record)
        return _decode(resp)

    async def update(self, id: Any, changes: Record) -> Record:
        resp = await self._send("PATCH", f"{self._path}/{id}", json=changes)
        return _decode(resp)

    async def upsert(self, record: Record, on_conflict: str) -> Record:
        resp = await self._send("PUT", self._path, json=record, params={"on_conflict": on_conflict})
        return _decode(resp)

    async def delete(self, id: Any) -> None:
        await self._send("DELETE", f"{self._path}/{id}")


class HttpRecordStore:
    """Record store backed by the Venti HTTP API."""

    def __init__(self, http: httpx.AsyncClient, token: Callable[[], str]):
        self._http = http
        self._token = token

    def collection(self, name: str) -> HttpCollection:
        try:
            path = COLLECTION_PATHS[name]
        except KeyError:
            raise ValueError(f"Unknown collection: {name}")
        return HttpCollection(self._http, path, self._token)
