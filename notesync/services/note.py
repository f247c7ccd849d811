"""
Note Service.

Local mutations of the note replica. Every mutation lands in the replica
immediately, moves the record through the sync state machine, and then
asks the scheduler for a sync cycle.
"""

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from notesync.core.utils import new_temporary_id, utc_now
from notesync.models.note import Note, SyncStatus
from notesync.repositories.note import NoteRepository
from notesync.services.base import BaseService
from notesync.services.feed import ChangeNotifier
from notesync.sync.scheduler import SyncScheduler
from notesync.sync.state import REMOVED, SyncEvent, transition

LOCAL_CREATOR_NAME = "Me"
LOCAL_CREATOR_USERNAME = "me"


class NoteService(BaseService):
    """
    Service for local note mutations.

    The scheduler and notifier are optional so the service can be used
    against a replica with no background sync attached.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        scheduler: SyncScheduler | None = None,
        notifier: ChangeNotifier | None = None,
    ) -> None:
        super().__init__(session_factory)
        self._scheduler = scheduler
        self._notifier = notifier

    async def _after_change(self, schedule: bool = True) -> None:
        if self._notifier is not None:
            await self._notifier.notify()
        if schedule and self._scheduler is not None:
            self._scheduler.enqueue_immediate()

    async def create_note(self, title: str, description: str) -> Note:
        """
        Create a note locally under a temporary id.

        Args:
            title: Note title
            description: Note body

        Returns:
            The NEW note
        """
        self._log_operation("Creating note", title=title)
        status = transition(None, SyncEvent.CREATE)

        async def _create() -> Note:
            async with self.transaction() as session:
                repo = NoteRepository(session)
                note_id = new_temporary_id()
                while await repo.exists(note_id):
                    note_id = new_temporary_id()
                now = utc_now()
                return await repo.upsert(
                    id=note_id,
                    title=title,
                    description=description,
                    created_at=now,
                    updated_at=now,
                    creator_name=LOCAL_CREATOR_NAME,
                    creator_username=LOCAL_CREATOR_USERNAME,
                    sync_status=status,
                )

        note = await self._execute_db_operation("create_note", _create())
        self._log_debug("Note created", note_id=note.id)
        await self._after_change()
        return note

    async def update_note(self, note_id: int, title: str, description: str) -> Note | None:
        """
        Edit a note's title and description.

        Returns:
            The edited note, or None if no visible note has this id
        """

        async def _update() -> Note | None:
            async with self.transaction() as session:
                repo = NoteRepository(session)
                note = await repo.get_visible(note_id)
                if note is None:
                    return None
                note.sync_status = transition(note.sync_status, SyncEvent.EDIT)
                note.title = title
                note.description = description
                note.updated_at = utc_now()
                await session.flush()
                return note

        note = await self._execute_db_operation("update_note", _update())
        if note is None:
            self._log_debug("Update ignored, note not found", note_id=note_id)
            return None

        self._log_operation("Note updated", note_id=note_id, sync_status=note.sync_status.value)
        await self._after_change()
        return note

    async def delete_note(self, note_id: int) -> bool:
        """
        Delete a note.

        A note the server has never seen is removed outright. Any other
        note becomes a tombstone until the server confirms the deletion.

        Returns:
            False if no visible note has this id
        """

        async def _delete() -> bool | None:
            async with self.transaction() as session:
                repo = NoteRepository(session)
                note = await repo.get_visible(note_id)
                if note is None:
                    return None
                target = transition(note.sync_status, SyncEvent.DELETE)
                if target is REMOVED:
                    await repo.delete_by_id(note_id)
                    return False
                note.sync_status = target
                note.updated_at = utc_now()
                await session.flush()
                return True

        tombstoned = await self._execute_db_operation("delete_note", _delete())
        if tombstoned is None:
            self._log_debug("Delete ignored, note not found", note_id=note_id)
            return False

        self._log_operation("Note deleted", note_id=note_id, tombstoned=tombstoned)
        await self._after_change(schedule=tombstoned)
        return True

    async def get_note(self, note_id: int) -> Note | None:
        """Get a visible note by id."""

        async def _get() -> Note | None:
            async with self.transaction() as session:
                return await NoteRepository(session).get_visible(note_id)

        return await self._execute_db_operation("get_note", _get())

    async def list_notes(self) -> list[Note]:
        """List visible notes, most recently updated first."""

        async def _list() -> list[Note]:
            async with self.transaction() as session:
                return await NoteRepository(session).list_visible()

        return await self._execute_db_operation("list_notes", _list())

    async def has_unsynced_changes(self) -> bool:
        """True if any note still has to be pushed."""

        async def _check() -> bool:
            async with self.transaction() as session:
                return await NoteRepository(session).has_unsynced()

        return await self._execute_db_operation("has_unsynced_changes", _check())

    async def clear_local_notes(self) -> int:
        """
        Drop the whole replica, pending changes included.

        Used when the user signs out. Returns the number of notes removed.
        """

        async def _clear() -> int:
            async with self.transaction() as session:
                return await NoteRepository(session).clear_all()

        removed = await self._execute_db_operation("clear_local_notes", _clear())
        self._log_operation("Local notes cleared", removed=removed)
        await self._after_change(schedule=False)
        return removed
