"""
Application Entry Point.

Wires the replica, remote client, reconciliation engine, scheduler and
services into one object. Used by the CLI and the task worker.

Usage:
    async with lifespan() as app:
        await app.notes.create_note("Title", "Body")
        outcome = await app.scheduler.enqueue_immediate().wait()
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from notesync.clients.remote import RemoteNoteClient
from notesync.core.config import AppConfig, get_app_config
from notesync.core.database import (
    dispose_engine,
    get_engine,
    get_session_factory,
    init_replica_schema,
)
from notesync.core.logging import get_logger
from notesync.services.feed import ChangeNotifier, NoteFeed
from notesync.services.note import NoteService
from notesync.sync.engine import ReconciliationEngine
from notesync.sync.scheduler import (
    AsyncioSchedulingPort,
    CoalescePolicy,
    ConnectivityMonitor,
    SyncScheduler,
)

logger = get_logger(__name__)


@dataclass
class NoteSyncApp:
    """Every long-lived component of a running sync client."""

    session_factory: async_sessionmaker[AsyncSession]
    remote: RemoteNoteClient
    notifier: ChangeNotifier
    engine: ReconciliationEngine
    connectivity: ConnectivityMonitor
    scheduler: SyncScheduler
    notes: NoteService
    feed: NoteFeed

    async def close(self) -> None:
        await self.scheduler.shutdown()
        await self.remote.close()


def create_app(
    session_factory: async_sessionmaker[AsyncSession],
    remote: RemoteNoteClient,
    app_config: AppConfig | None = None,
) -> NoteSyncApp:
    """Assemble the components around an existing replica and remote client."""
    app_config = app_config or get_app_config()
    sync_config = app_config.sync

    notifier = ChangeNotifier()
    engine = ReconciliationEngine(session_factory, remote, sync_config, notifier)
    connectivity = ConnectivityMonitor()
    port = AsyncioSchedulingPort(
        CoalescePolicy(sync_config.coalesce_policy),
        gate=connectivity.wait_online,
    )
    scheduler = SyncScheduler(engine, port, connectivity, sync_config)

    return NoteSyncApp(
        session_factory=session_factory,
        remote=remote,
        notifier=notifier,
        engine=engine,
        connectivity=connectivity,
        scheduler=scheduler,
        notes=NoteService(session_factory, scheduler, notifier),
        feed=NoteFeed(session_factory, notifier),
    )


@asynccontextmanager
async def lifespan() -> AsyncGenerator[NoteSyncApp, None]:
    """Build the application from configuration and tear it down afterwards."""
    app_config = get_app_config()
    await init_replica_schema(get_engine())

    app = create_app(get_session_factory(), RemoteNoteClient.from_config(), app_config)
    logger.info(
        "Sync client starting",
        extra={
            "app_name": app_config.application.name,
            "env": app_config.application.environment,
            "remote": app_config.remote.base_url,
        },
    )
    try:
        yield app
    finally:
        await app.close()
        await dispose_engine()
        logger.info("Sync client shut down")
