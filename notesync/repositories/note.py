"""
Note Repository.

Data access layer for the local note replica. Every query that the sync
engine relies on is expressed here so that each read-modify-write happens
inside a single transaction owned by the caller's session.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import Row, delete, func, select, update
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from notesync.models.note import Note, SyncStatus
from notesync.repositories.base import BaseRepository

# Keeps IN (...) lists well below SQLite's bound-parameter limit
_CHUNK_SIZE = 500

# Eight bound parameters per row in a multi-row INSERT
_UPSERT_BATCH = 100

_REMOTE_COLUMNS = (
    "title",
    "description",
    "created_at",
    "updated_at",
    "creator_name",
    "creator_username",
)


def _chunks(ids: list[int]) -> list[list[int]]:
    return [ids[i:i + _CHUNK_SIZE] for i in range(0, len(ids), _CHUNK_SIZE)]


class NoteRepository(BaseRepository[Note]):
    """
    Repository for the Note replica.

    Inherits standard CRUD operations from BaseRepository
    and adds sync-specific queries.
    """

    model = Note

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)

    async def list_visible(self) -> list[Note]:
        """
        Get all non-tombstoned notes, most recently updated first.

        Returns:
            List of notes whose status is not DELETED
        """
        result = await self.session.execute(
            select(Note)
            .where(Note.sync_status != SyncStatus.DELETED)
            .order_by(Note.updated_at.desc(), Note.id.desc())
        )
        return list(result.scalars().all())

    async def get_visible(self, id: int) -> Note | None:
        """Get a non-tombstoned note by id, or None."""
        result = await self.session.execute(
            select(Note)
            .where(Note.id == id)
            .where(Note.sync_status != SyncStatus.DELETED)
        )
        return result.scalar_one_or_none()

    async def list_unsynced(self) -> list[Note]:
        """Get every note with pending local changes, tombstones included."""
        result = await self.session.execute(
            select(Note)
            .where(Note.sync_status != SyncStatus.SYNCED)
            .order_by(Note.updated_at.asc(), Note.id.asc())
        )
        return list(result.scalars().all())

    async def list_synced(self) -> list[Note]:
        """Get every note that currently matches the server."""
        result = await self.session.execute(
            select(Note).where(Note.sync_status == SyncStatus.SYNCED)
        )
        return list(result.scalars().all())

    async def has_unsynced(self) -> bool:
        """True if at least one note has pending local changes."""
        result = await self.session.execute(
            select(Note.id)
            .where(Note.sync_status != SyncStatus.SYNCED)
            .limit(1)
        )
        return result.scalar_one_or_none() is not None

    async def count_visible(self) -> int:
        """Get count of non-tombstoned notes."""
        result = await self.session.execute(
            select(func.count())
            .select_from(Note)
            .where(Note.sync_status != SyncStatus.DELETED)
        )
        return result.scalar_one()

    async def replace(
        self,
        old_id: int,
        expected_updated_at: datetime | None = None,
        **fields: Any,
    ) -> Note | None:
        """
        Swap a record for one with a different primary key.

        The delete and the insert share the caller's transaction, so no
        reader ever sees both rows or neither.

        Args:
            old_id: Primary key being retired (a temporary id)
            expected_updated_at: When given, the swap only happens while the
                old record is still NEW with this updated_at
            **fields: Column values of the replacement, including its id

        Returns:
            The replacement note, or None if the old record did not match
        """
        stmt = delete(Note).where(Note.id == old_id)
        if expected_updated_at is not None:
            stmt = stmt.where(
                Note.sync_status == SyncStatus.NEW,
                Note.updated_at == expected_updated_at,
            )
        result = await self.session.execute(stmt)
        if expected_updated_at is not None and result.rowcount == 0:
            return None
        return await self.upsert(**fields)

    async def take_if_status(self, id: int, status: SyncStatus) -> Row | None:
        """
        Delete a note while it still has the given status.

        Returns:
            The deleted note's title, description and updated_at, or None
        """
        result = await self.session.execute(
            delete(Note)
            .where(Note.id == id)
            .where(Note.sync_status == status)
            .returning(Note.title, Note.description, Note.updated_at)
        )
        return result.one_or_none()

    async def delete_if_status(self, id: int, status: SyncStatus) -> bool:
        """Delete a note only while it still has the given status."""
        result = await self.session.execute(
            delete(Note)
            .where(Note.id == id)
            .where(Note.sync_status == status)
        )
        return result.rowcount > 0

    async def mark_synced_if_unchanged(
        self,
        id: int,
        remote: dict[str, Any],
        snapshot_updated_at: datetime,
    ) -> bool:
        """
        Overwrite an UPDATED note with the server copy and mark it SYNCED.

        Nothing is written if the note was edited, deleted or otherwise
        changed since the snapshot taken at snapshot_updated_at.

        Returns:
            True if the note was marked SYNCED
        """
        values = {key: value for key, value in remote.items() if key != "id"}
        result = await self.session.execute(
            update(Note)
            .where(Note.id == id)
            .where(Note.sync_status == SyncStatus.UPDATED)
            .where(Note.updated_at == snapshot_updated_at)
            .values(**values, sync_status=SyncStatus.SYNCED)
        )
        return result.rowcount > 0

    async def upsert_synced_many(self, rows: list[dict[str, Any]]) -> int:
        """
        Upsert server representations as SYNCED notes.

        The conflict clause only overwrites rows that are still SYNCED, so
        a note with pending changes is never touched, even one edited after
        the pull started.

        Args:
            rows: Column values from the remote service

        Returns:
            Number of rows written
        """
        connection = await self.session.connection()
        written = 0
        for start in range(0, len(rows), _UPSERT_BATCH):
            batch = [
                {**row, "sync_status": SyncStatus.SYNCED}
                for row in rows[start:start + _UPSERT_BATCH]
            ]
            stmt = sqlite_insert(Note).values(batch)
            stmt = stmt.on_conflict_do_update(
                index_elements=[Note.id],
                set_={column: stmt.excluded[column] for column in _REMOTE_COLUMNS},
                where=Note.sync_status == SyncStatus.SYNCED,
            )
            result = await connection.execute(stmt)
            written += result.rowcount
        return written

    async def delete_synced_absent(self, remote_ids: set[int]) -> list[int]:
        """
        Delete SYNCED notes whose id is not in remote_ids.

        Returns:
            Ids of the notes removed
        """
        stale = [note.id for note in await self.list_synced() if note.id not in remote_ids]

        removed: list[int] = []
        for chunk in _chunks(stale):
            result = await self.session.execute(
                delete(Note)
                .where(Note.id.in_(chunk))
                .where(Note.sync_status == SyncStatus.SYNCED)
                .returning(Note.id)
            )
            removed.extend(result.scalars().all())
        return sorted(removed)
