"""Shared fixtures: per-test SQLite API, stubbed language model, in-memory store."""
import asyncio
import json
import os
import tempfile
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional

# The app module builds its default engine on import
os.environ.setdefault("DATABASE_URL", f"sqlite:///{tempfile.mkdtemp()}/venti-import.db")

import httpx
import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.orm import sessionmaker

from main import app
from venti.client import VentiApp
from venti.client.bootstrap import SessionBootstrapper
from venti.client.config import ClientSettings
from venti.client.errors import RecordConflict, RecordNotFound, RecordStoreError
from venti.client.mutations import OptimisticMutations
from venti.client.session import AuthUser
from venti.client.state import AggregateContainer
from venti.core.config import Base, build_engine, get_db
from venti.models import Profile, UserRole
from venti.services.ai import GeminiClient, get_gemini_client

TODAY = date(2024, 1, 1)
PASSWORD = "correct-horse-battery"


# =====================================================================
# API
# =====================================================================


@pytest.fixture
def session_factory(tmp_path):
    """Fresh SQLite file per test, wired into the app through get_db."""
    engine = build_engine(f"sqlite:///{tmp_path / 'venti-test.db'}")
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    def override_get_db():
        db = factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    yield factory
    app.dependency_overrides.clear()
    engine.dispose()


@pytest.fixture
async def client(session_factory):
    """Async HTTP client wired to the FastAPI app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


async def register(client: AsyncClient, email: str, password: str = PASSWORD) -> Dict[str, Any]:
    resp = await client.post("/auth/register", json={"email": email, "password": password})
    assert resp.status_code == 201, resp.text
    return resp.json()


def bearer(tokens: Dict[str, Any]) -> Dict[str, str]:
    return {"Authorization": f"Bearer {tokens['access_token']}"}


def set_role(session_factory, user_id: str, role: UserRole) -> None:
    """Grant a role directly in the database; the API cannot mint superadmins."""
    db = session_factory()
    try:
        profile = db.query(Profile).filter(Profile.id == user_id).first()
        profile.role = role
        db.commit()
    finally:
        db.close()


def stored_role(session_factory, user_id: str) -> Optional[UserRole]:
    db = session_factory()
    try:
        profile = db.query(Profile).filter(Profile.id == user_id).first()
        return profile.role if profile else None
    finally:
        db.close()


def profile_count(session_factory, user_id: str) -> int:
    db = session_factory()
    try:
        return db.query(Profile).filter(Profile.id == user_id).count()
    finally:
        db.close()


# =====================================================================
# LANGUAGE MODEL
# =====================================================================


class GeminiStub:
    """Answers generateContent calls from a queue of texts."""

    def __init__(self):
        self.replies: List[str] = []
        self.requests: List[Dict[str, Any]] = []
        self.status_code = 200

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(json.loads(request.content))
        if self.status_code != 200:
            return httpx.Response(self.status_code, json={"error": {"message": "unavailable"}})
        text = self.replies.pop(0) if self.replies else "I'm here for you."
        return httpx.Response(
            200,
            json={"candidates": [{"content": {"role": "model", "parts": [{"text": text}]}}]},
        )


@pytest.fixture
def gemini(session_factory):
    stub = GeminiStub()
    gemini_client = GeminiClient(api_key="test-key", transport=httpx.MockTransport(stub.handler))
    app.dependency_overrides[get_gemini_client] = lambda: gemini_client
    return stub


# =====================================================================
# CLIENT CORE OVER HTTP
# =====================================================================


@pytest.fixture
def make_app(session_factory):
    """Build VentiApp instances talking to the in-process API."""

    def _make(today: date = TODAY) -> VentiApp:
        return VentiApp.connect(
            settings=ClientSettings(API_URL="http://test"),
            transport=ASGITransport(app=app),
            today=lambda: today,
        )

    return _make


# =====================================================================
# IN-MEMORY STORE
# =====================================================================


class MemoryCollection:
    """
    Collection double with per-operation fault injection.

    Every operation yields to the event loop first so concurrent callers
    interleave the way they would against a real store.
    """

    def __init__(self, name: str):
        self.name = name
        self.rows: Dict[Any, Dict[str, Any]] = {}
        self.failures: Dict[str, Exception] = {}
        self.calls: List[str] = []
        self._next_id = 1

    def fail(self, op: str, error: Optional[Exception] = None) -> None:
        self.failures[op] = error or RecordStoreError("Network error: could not reach the server.", kind="network")

    def heal(self) -> None:
        self.failures.clear()

    async def _enter(self, op: str) -> None:
        self.calls.append(op)
        await asyncio.sleep(0)
        if op in self.failures:
            raise self.failures[op]

    def _stamp(self) -> str:
        return (datetime(2024, 1, 1) + timedelta(seconds=self._next_id)).isoformat()

    def _add(self, record: Dict[str, Any]) -> Dict[str, Any]:
        row = dict(record)
        if "id" not in row:
            row["id"] = self._next_id
        row.setdefault("created_at", self._stamp())
        if self.name == "my_stories":
            row.setdefault("updated_at", row["created_at"])
        self._next_id += 1
        self.rows[row["id"]] = row
        return dict(row)

    def seed(self, *records: Dict[str, Any]) -> None:
        for record in records:
            self._add(record)

    async def fetch_where(self, owner_id: str) -> List[Dict[str, Any]]:
        await self._enter("fetch_where")
        return [dict(r) for r in self.rows.values() if r.get("user_id") == owner_id]

    async def fetch_one(self, id: Any) -> Dict[str, Any]:
        await self._enter("fetch_one")
        if id not in self.rows:
            raise RecordNotFound(f"{self.name} {id} not found")
        return dict(self.rows[id])

    async def insert(self, record: Dict[str, Any]) -> Dict[str, Any]:
        await self._enter("insert")
        if "id" in record and record["id"] in self.rows:
            raise RecordConflict(f"{self.name} {record['id']} already exists")
        return self._add(record)

    async def update(self, id: Any, changes: Dict[str, Any]) -> Dict[str, Any]:
        await self._enter("update")
        if id not in self.rows:
            raise RecordNotFound(f"{self.name} {id} not found")
        self.rows[id] = {**self.rows[id], **changes}
        return dict(self.rows[id])

    async def upsert(self, record: Dict[str, Any], on_conflict: str) -> Dict[str, Any]:
        await self._enter("upsert")
        keys = on_conflict.split(",")
        for row in self.rows.values():
            if all(row.get(k) == record.get(k) for k in keys):
                row.update(record)
                return dict(row)
        return self._add(record)

    async def delete(self, id: Any) -> None:
        await self._enter("delete")
        if id not in self.rows:
            raise RecordNotFound(f"{self.name} {id} not found")
        del self.rows[id]


class MemoryStore:
    NAMES = ("profiles", "journal_entries", "moods", "my_stories", "chat_history")

    def __init__(self):
        self.collections = {name: MemoryCollection(name) for name in self.NAMES}

    def collection(self, name: str) -> MemoryCollection:
        return self.collections[name]


class StubFunctions:
    """Stands in for FunctionsClient in client-core tests."""

    def __init__(self):
        self.replies: List[str] = []
        self.error: Optional[Exception] = None
        self.calls: List[Dict[str, Any]] = []

    async def ai_response(self, new_message, history, user_data) -> str:
        self.calls.append({"new_message": new_message, "history": history, "user_data": user_data})
        await asyncio.sleep(0)
        if self.error is not None:
            raise self.error
        return self.replies.pop(0) if self.replies else "I hear you."


ALICE = AuthUser(id="user-alice", email="alice@example.com")


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def functions():
    return StubFunctions()


@pytest.fixture
def container():
    return AggregateContainer()


@pytest.fixture
def mutations(container, store, functions):
    return OptimisticMutations(container, store, functions, today=lambda: TODAY)


@pytest.fixture
async def signed_in(container, store):
    """Alice's aggregate bootstrapped from the memory store and loaded."""
    user_data = await SessionBootstrapper(store).establish_session(ALICE)
    container.load(user_data)
    return container

