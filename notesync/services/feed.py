"""
Note Feed.

Observable read of the replica for a presentation layer. Emits an explicit
Loading | Ready(notes) | Failed(error) sequence and re-reads after every
change notification from local mutations or sync cycles.

Usage:
    notifier = ChangeNotifier()
    feed = NoteFeed(session_factory, notifier)

    async for result in feed.watch():
        match result:
            case Ready(data=notes): render(notes)
"""

import asyncio
from collections.abc import AsyncIterator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from notesync.core.database import session_scope
from notesync.core.exceptions import DatabaseError
from notesync.core.logging import get_logger
from notesync.models.note import Note
from notesync.repositories.note import NoteRepository
from notesync.schemas.result import Failed, Loading, Ready, Result

logger = get_logger(__name__)


class ChangeNotifier:
    """Monotonic change counter that readers can wait on."""

    def __init__(self) -> None:
        self._version = 0
        self._condition = asyncio.Condition()

    @property
    def version(self) -> int:
        return self._version

    async def notify(self) -> None:
        """Record a replica change and wake every waiter."""
        async with self._condition:
            self._version += 1
            self._condition.notify_all()

    async def wait_for_change(self, since: int) -> int:
        """Block until the version moves past `since`. Returns the new version."""
        async with self._condition:
            await self._condition.wait_for(lambda: self._version > since)
            return self._version


class NoteFeed:
    """Live view of all non-tombstoned notes."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        notifier: ChangeNotifier,
    ) -> None:
        self._session_factory = session_factory
        self._notifier = notifier

    async def snapshot(self) -> Result:
        """Read the replica once."""
        try:
            async with session_scope(self._session_factory) as session:
                notes: list[Note] = await NoteRepository(session).list_visible()
            return Ready(notes)
        except SQLAlchemyError as e:
            logger.error("Replica read failed", extra={"error": str(e)})
            return Failed(DatabaseError(f"Replica read failed: {e}"))

    async def watch(self) -> AsyncIterator[Result]:
        """Yield Loading, then a fresh result after every replica change."""
        yield Loading()
        while True:
            version = self._notifier.version
            yield await self.snapshot()
            await self._notifier.wait_for_change(version)
