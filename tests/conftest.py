"""
Root Pytest Fixtures.

Shared fixtures available to all test types.

Test Database Configuration:
    Tests use a fresh in-memory SQLite replica per test. StaticPool keeps
    the single connection alive so every session sees the same database.

Remote Service:
    FakeNoteServer is an in-process stand-in for the paginated notes REST
    endpoint. It is mounted on an httpx.MockTransport, so the real
    RemoteNoteClient is exercised end to end without a network.
"""

import json
import re
from collections.abc import AsyncGenerator
from datetime import datetime, timedelta, timezone
from typing import Any

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from notesync.clients.remote import RemoteNoteClient
from notesync.core.config_schema import (
    RemoteRetrySchema,
    RemoteSchema,
    RetryBackoffSchema,
    SyncSchema,
)
from notesync.core.database import create_session_factory
from notesync.models.base import Base

TEST_BASE_URL = "http://testserver"
NOTES_PATH = "/api/notes/"

_DETAIL_PATH = re.compile(r"^/api/notes/(-?\d+)/$")


# =============================================================================
# Fake remote note service
# =============================================================================


class FakeNoteServer:
    """
    In-memory paginated notes endpoint.

    Records every request in `requests` as (method, path, query) tuples.
    Use fail_next() to make the next matching request return an error.
    """

    def __init__(self, page_size: int = 20) -> None:
        self.page_size = page_size
        self.notes: dict[int, dict[str, Any]] = {}
        self.requests: list[tuple[str, str, dict[str, str]]] = []
        self._next_id = 1
        self._failures: list[tuple[str, int | None, int, Any]] = []
        self._clock = datetime(2025, 7, 7, 12, 0, tzinfo=timezone.utc)

    def _tick(self) -> str:
        self._clock += timedelta(seconds=1)
        return self._clock.isoformat()

    def add_note(self, title: str = "Remote", description: str = "") -> dict[str, Any]:
        """Create a note directly on the server, as another device would."""
        now = self._tick()
        note = {
            "id": self._next_id,
            "title": title,
            "description": description,
            "created_at": now,
            "updated_at": now,
            "creator_name": "Other",
            "creator_username": "other",
        }
        self.notes[note["id"]] = note
        self._next_id += 1
        return note

    def fail_next(self, method: str, note_id: int | None, status: int, body: Any = None) -> None:
        """Answer the next `method` request for note_id with status."""
        self._failures.append((method, note_id, status, body))

    def count(self, method: str, path: str | None = None) -> int:
        return sum(
            1 for m, p, _ in self.requests
            if m == method and (path is None or p == path)
        )

    @property
    def network_calls(self) -> int:
        return len(self.requests)

    def _injected(self, method: str, note_id: int | None) -> httpx.Response | None:
        for i, (m, nid, status, body) in enumerate(self._failures):
            if m == method and nid == note_id:
                del self._failures[i]
                if body is None:
                    return httpx.Response(status)
                return httpx.Response(status, json=body)
        return None

    def handle(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        query = dict(request.url.params)
        self.requests.append((request.method, path, query))

        if path == NOTES_PATH:
            injected = self._injected(request.method, None)
            if injected is not None:
                return injected
            if request.method == "GET":
                return self._list(query)
            if request.method == "POST":
                return self._create(json.loads(request.content))

        match = _DETAIL_PATH.match(path)
        if match:
            note_id = int(match.group(1))
            injected = self._injected(request.method, note_id)
            if injected is not None:
                return injected
            if note_id not in self.notes:
                return httpx.Response(404, json={"detail": "Not found."})
            if request.method == "PUT":
                return self._update(note_id, json.loads(request.content))
            if request.method == "DELETE":
                del self.notes[note_id]
                return httpx.Response(204)

        return httpx.Response(405, json={"detail": "Method not allowed."})

    def _list(self, query: dict[str, str]) -> httpx.Response:
        page = int(query.get("page", 1))
        size = int(query.get("page_size", self.page_size))
        ordered = [self.notes[k] for k in sorted(self.notes)]
        start = (page - 1) * size
        if start >= len(ordered) and page != 1:
            return httpx.Response(404, json={"detail": "Invalid page."})

        has_next = start + size < len(ordered)
        return httpx.Response(200, json={
            "count": len(ordered),
            "next": f"{TEST_BASE_URL}{NOTES_PATH}?page={page + 1}&page_size={size}" if has_next else None,
            "previous": f"{TEST_BASE_URL}{NOTES_PATH}?page={page - 1}&page_size={size}" if page > 1 else None,
            "results": ordered[start:start + size],
        })

    def _create(self, body: dict[str, Any]) -> httpx.Response:
        note = self.add_note(body["title"], body["description"])
        note["creator_name"] = "Test User"
        note["creator_username"] = "tester"
        return httpx.Response(201, json=note)

    def _update(self, note_id: int, body: dict[str, Any]) -> httpx.Response:
        note = self.notes[note_id]
        note.update(title=body["title"], description=body["description"], updated_at=self._tick())
        return httpx.Response(200, json=note)


# =============================================================================
# Configuration Fixtures
# =============================================================================


@pytest.fixture
def remote_config() -> RemoteSchema:
    """Remote settings with retries disabled so failures surface at once."""
    return RemoteSchema(
        base_url=TEST_BASE_URL,
        notes_path=NOTES_PATH,
        timeout_seconds=5,
        page_size=20,
        retry=RemoteRetrySchema(max_attempts=1, backoff_multiplier=0, backoff_max=0),
    )


@pytest.fixture
def sync_config() -> SyncSchema:
    """Sync settings with a short retry back-off."""
    return SyncSchema(
        periodic_interval_seconds=60,
        pull_policy="guarded",
        coalesce_policy="keep",
        retry_backoff=RetryBackoffSchema(initial_seconds=0.01, max_seconds=0.05),
        max_pages=50,
    )


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture
async def db_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Fresh in-memory replica for a single test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test replica."""
    return create_session_factory(db_engine)


# =============================================================================
# Remote Fixtures
# =============================================================================


@pytest.fixture
def note_server() -> FakeNoteServer:
    return FakeNoteServer()


@pytest.fixture
async def remote_client(
    remote_config: RemoteSchema,
    note_server: FakeNoteServer,
) -> AsyncGenerator[RemoteNoteClient, None]:
    """Real RemoteNoteClient wired to the fake server."""
    client = RemoteNoteClient(
        remote_config,
        token="test-token",
        transport=httpx.MockTransport(note_server.handle),
    )
    yield client
    await client.close()
