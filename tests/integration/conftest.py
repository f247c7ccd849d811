"""
Integration Test Fixtures.

Fixtures for integration tests: a real in-memory replica, the real remote
client on top of the fake note server, and the engine, scheduler and
services built from them. These build on the root conftest.py fixtures.
"""

from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import datetime, timedelta
from typing import Any

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from notesync.clients.remote import RemoteNoteClient
from notesync.core.config_schema import SyncSchema
from notesync.core.database import (
    create_replica_engine,
    create_session_factory,
    init_replica_schema,
    session_scope,
)
from notesync.models.note import Note, SyncStatus
from notesync.services.feed import ChangeNotifier
from notesync.services.note import NoteService
from notesync.sync.engine import ReconciliationEngine

BASE_TIME = datetime(2025, 1, 1, 9, 0)


@pytest.fixture
async def file_session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """
    Session factory over a file-backed replica.

    Unlike the in-memory replica, every session gets its own connection,
    so concurrent transactions contend for the write lock as in production.
    """
    engine = create_replica_engine(f"sqlite+aiosqlite:///{tmp_path / 'replica.db'}")
    await init_replica_schema(engine)
    yield create_session_factory(engine)
    await engine.dispose()


@pytest.fixture
def notifier() -> ChangeNotifier:
    return ChangeNotifier()


@pytest.fixture
def engine(
    session_factory: async_sessionmaker[AsyncSession],
    remote_client: RemoteNoteClient,
    sync_config: SyncSchema,
    notifier: ChangeNotifier,
) -> ReconciliationEngine:
    return ReconciliationEngine(session_factory, remote_client, sync_config, notifier)


@pytest.fixture
def note_service(
    session_factory: async_sessionmaker[AsyncSession],
    notifier: ChangeNotifier,
) -> NoteService:
    """Service with no scheduler attached; tests drive cycles explicitly."""
    return NoteService(session_factory, notifier=notifier)


@pytest.fixture
def seed_note(
    session_factory: async_sessionmaker[AsyncSession],
) -> Callable[..., Awaitable[None]]:
    """
    Insert a replica row directly.

    Usage:
        await seed_note(3, SyncStatus.UPDATED, title="edited")
    """

    async def _seed(note_id: int, status: SyncStatus, title: str | None = None, **fields: Any) -> None:
        stamp = BASE_TIME + timedelta(minutes=abs(note_id))
        values = {
            "id": note_id,
            "title": title if title is not None else f"Note {note_id}",
            "description": "",
            "created_at": stamp,
            "updated_at": stamp,
            "creator_name": "Me",
            "creator_username": "me",
            "sync_status": status,
            **fields,
        }
        async with session_scope(session_factory) as session:
            session.add(Note(**values))

    return _seed


@pytest.fixture
def replica_rows(
    session_factory: async_sessionmaker[AsyncSession],
) -> Callable[[], Awaitable[dict[int, Note]]]:
    """Read every replica row, tombstones included, keyed by id."""

    async def _rows() -> dict[int, Note]:
        async with session_scope(session_factory) as session:
            result = await session.execute(select(Note))
            return {note.id: note for note in result.scalars().all()}

    return _rows
