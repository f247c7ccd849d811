"""
Reconciliation Engine.

Runs one sync cycle between the local replica and the remote note service:

    1. Capture whether the replica has pending local changes.
    2. Push phase: send every non-SYNCED note to the server, one at a time.
       A failure is logged and the loop moves on to the next note.
    3. Pull phase: fetch every page of the remote collection and reconcile
       it into the SYNCED subset of the replica. Under the "guarded" policy
       this phase is skipped when step 1 found pending changes, so a pull
       never observes the server before the cycle's own pushes are visible.

Push failures never escape a cycle. A pull failure escapes as
PullFailedError after the push results have already been committed.

Each store access is its own short transaction. Nothing is read in one
transaction and written in another across a network call. Acknowledgements
are conditional writes that only apply while the note still matches the
snapshot that was pushed.

Usage:
    engine = ReconciliationEngine(session_factory, remote, sync_config)
    report = await engine.run_cycle()
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from notesync.clients.remote import next_page_number
from notesync.core.config_schema import SyncSchema
from notesync.core.database import session_scope
from notesync.core.exceptions import (
    NotFoundError,
    PullFailedError,
    RemoteRejectedError,
)
from notesync.core.logging import get_logger, log_with_source
from notesync.models.note import Note, SyncStatus
from notesync.repositories.note import NoteRepository
from notesync.schemas.note import NotePage, NoteRequest, RemoteNote
from notesync.schemas.result import CycleReport, PushFailure
from notesync.services.feed import ChangeNotifier
from notesync.sync.state import REMOVED, SyncEvent, transition

logger = get_logger(__name__)


class RemoteNotes(Protocol):
    """The subset of the remote client the engine depends on."""

    async def create_note(self, data: NoteRequest) -> RemoteNote: ...

    async def update_note(self, note_id: int, data: NoteRequest) -> RemoteNote: ...

    async def delete_note(self, note_id: int) -> None: ...

    async def list_notes(self, page: int = 1, page_size: int | None = None) -> NotePage: ...


@dataclass(frozen=True)
class _Snapshot:
    """The state of a note at the moment it was read for pushing."""

    id: int
    title: str
    description: str
    updated_at: datetime
    status: SyncStatus

    @classmethod
    def of(cls, note: Note) -> "_Snapshot":
        return cls(
            id=note.id,
            title=note.title,
            description=note.description,
            updated_at=note.updated_at,
            status=note.sync_status,
        )

    def request(self) -> NoteRequest:
        return NoteRequest(title=self.title, description=self.description)


class ReconciliationEngine:
    """
    Two-phase push/pull reconciliation between replica and server.

    The engine holds no state between cycles; everything it needs is read
    from the replica at the start of each phase.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        remote: RemoteNotes,
        config: SyncSchema,
        notifier: ChangeNotifier | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._remote = remote
        self._config = config
        self._notifier = notifier

    @property
    def config(self) -> SyncSchema:
        return self._config

    async def _notify(self) -> None:
        if self._notifier is not None:
            await self._notifier.notify()

    async def has_unsynced_changes(self) -> bool:
        """True if any note is NEW, UPDATED or DELETED."""
        async with session_scope(self._session_factory) as session:
            return await NoteRepository(session).has_unsynced()

    def _should_pull(self, had_pending_changes: bool) -> bool:
        if self._config.pull_policy == "always":
            return True
        return not had_pending_changes

    async def run_cycle(self) -> CycleReport:
        """
        Run one push phase and, policy permitting, one pull phase.

        Returns:
            CycleReport describing what happened

        Raises:
            PullFailedError: The pull phase failed; push results are kept
        """
        report = CycleReport()
        report.had_pending_changes = await self.has_unsynced_changes()

        report.pushed, report.push_failures = await self.push()

        if self._should_pull(report.had_pending_changes):
            try:
                report.pulled, report.removed_remotely = await self.pull()
            except Exception as e:
                log_with_source(
                    logger, "sync", "error", "Pull phase failed",
                    error=str(e), error_type=type(e).__name__,
                )
                raise PullFailedError(f"Pull phase failed: {e}") from e
        else:
            report.pull_skipped = True

        log_with_source(logger, "sync", "info", "Sync cycle finished", **report.as_dict())
        return report

    # -------------------------------------------------------------------------
    # Push phase
    # -------------------------------------------------------------------------

    async def push(self) -> tuple[int, list[PushFailure]]:
        """
        Send every pending note to the server.

        Returns:
            Tuple of (notes reconciled, failures left pending for next cycle)
        """
        async with session_scope(self._session_factory) as session:
            pending = [_Snapshot.of(note) for note in await NoteRepository(session).list_unsynced()]

        pushed = 0
        failures: list[PushFailure] = []
        for snapshot in pending:
            try:
                await self._push_one(snapshot)
                pushed += 1
            except Exception as e:
                status = transition(snapshot.status, SyncEvent.PUSH_FAILED)
                detail = getattr(e, "detail", None)
                log_with_source(
                    logger, "sync", "warning", "Failed to sync note",
                    note_id=snapshot.id,
                    sync_status=status.value,
                    error=str(e),
                    detail=detail,
                    error_type=type(e).__name__,
                )
                failures.append(PushFailure(snapshot.id, status.value, str(e)))

        if pushed:
            await self._notify()
        return pushed, failures

    async def _push_one(self, snapshot: _Snapshot) -> None:
        if snapshot.status == SyncStatus.NEW:
            remote = await self._remote.create_note(snapshot.request())
            await self._acknowledge_create(snapshot, remote)
        elif snapshot.status == SyncStatus.UPDATED:
            remote = await self._remote.update_note(snapshot.id, snapshot.request())
            await self._acknowledge_update(snapshot, remote)
        elif snapshot.status == SyncStatus.DELETED:
            await self._push_delete(snapshot)

    async def _acknowledge_create(self, snapshot: _Snapshot, remote: RemoteNote) -> None:
        """Swap the temporary-id note for the server's note."""
        next_status = transition(SyncStatus.NEW, SyncEvent.PUSH_SUCCEEDED)
        fields = remote.to_fields()

        async with session_scope(self._session_factory) as session:
            repo = NoteRepository(session)
            replaced = await repo.replace(
                snapshot.id,
                expected_updated_at=snapshot.updated_at,
                **fields,
                sync_status=next_status,
            )
            if replaced is not None:
                logger.debug("Note created remotely", extra={"temp_id": snapshot.id, "note_id": remote.id})
                return

            edited = await repo.take_if_status(snapshot.id, SyncStatus.NEW)
            if edited is None:
                # Deleted locally while the create was in flight; the server
                # copy now needs deleting too.
                await repo.upsert(**fields, sync_status=SyncStatus.DELETED)
                logger.info(
                    "Note deleted during create, tombstoned server copy",
                    extra={"temp_id": snapshot.id, "note_id": remote.id},
                )
            else:
                await repo.upsert(
                    **{
                        **fields,
                        "title": edited.title,
                        "description": edited.description,
                        "updated_at": edited.updated_at,
                        "sync_status": transition(next_status, SyncEvent.EDIT),
                    }
                )
                logger.info(
                    "Note edited during create, kept local edit pending",
                    extra={"temp_id": snapshot.id, "note_id": remote.id},
                )

    async def _acknowledge_update(self, snapshot: _Snapshot, remote: RemoteNote) -> None:
        """Overwrite the note with the server's representation."""
        async with session_scope(self._session_factory) as session:
            acknowledged = await NoteRepository(session).mark_synced_if_unchanged(
                snapshot.id, remote.to_fields(), snapshot.updated_at,
            )

        if not acknowledged:
            logger.info(
                "Note changed during update, left pending",
                extra={"note_id": snapshot.id},
            )

    async def _push_delete(self, snapshot: _Snapshot) -> None:
        """Delete the note remotely, then drop the tombstone."""
        try:
            await self._remote.delete_note(snapshot.id)
            event = SyncEvent.PUSH_SUCCEEDED
        except NotFoundError:
            event = SyncEvent.PUSH_NOT_FOUND
            logger.debug("Note already gone remotely", extra={"note_id": snapshot.id})

        if transition(SyncStatus.DELETED, event) is REMOVED:
            async with session_scope(self._session_factory) as session:
                await NoteRepository(session).delete_if_status(snapshot.id, SyncStatus.DELETED)

    # -------------------------------------------------------------------------
    # Pull phase
    # -------------------------------------------------------------------------

    async def fetch_all_remote(self) -> list[RemoteNote]:
        """
        Drain every page of the remote collection.

        Raises:
            RemoteRejectedError: A "next" link cannot be followed, or the
                collection exceeds the configured page limit
        """
        notes: list[RemoteNote] = []
        page = 1
        fetched = 0

        while True:
            body = await self._remote.list_notes(page=page)
            notes.extend(body.results)
            fetched += 1

            if not body.next:
                break

            next_page = next_page_number(body.next)
            if next_page is None or next_page <= page:
                raise RemoteRejectedError(
                    f"Cannot follow pagination link after page {page}: {body.next!r}"
                )
            if fetched >= self._config.max_pages:
                raise RemoteRejectedError(
                    f"Remote collection exceeds {self._config.max_pages} pages"
                )
            page = next_page

        logger.debug("Remote collection fetched", extra={"pages": fetched, "notes": len(notes)})
        return notes

    async def pull(self) -> tuple[int, int]:
        """
        Reconcile the full remote collection into the SYNCED subset.

        Returns:
            Tuple of (notes written, notes removed because the server dropped them)
        """
        remote_notes = await self.fetch_all_remote()
        rows = {note.id: note.to_fields() for note in remote_notes}

        async with session_scope(self._session_factory) as session:
            repo = NoteRepository(session)
            removed = await repo.delete_synced_absent(set(rows))
            written = await repo.upsert_synced_many(list(rows.values()))

        if removed:
            logger.info("Removed notes deleted remotely", extra={"note_ids": removed})
        await self._notify()
        return written, len(removed)
