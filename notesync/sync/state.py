"""
Sync State Machine.

Per-record lifecycle of a replica note. State lives on the record's
sync_status column; this module is the transition table that both the
mutation service and the reconciliation engine consult.

    Current   Event            Next
    -------   -----            ----
    (none)    CREATE           NEW
    SYNCED    EDIT             UPDATED
    NEW       EDIT             NEW
    UPDATED   EDIT             UPDATED
    NEW       DELETE           REMOVED (no tombstone)
    SYNCED    DELETE           DELETED
    UPDATED   DELETE           DELETED
    NEW       PUSH_SUCCEEDED   SYNCED (id replaced)
    UPDATED   PUSH_SUCCEEDED   SYNCED
    DELETED   PUSH_SUCCEEDED   REMOVED
    DELETED   PUSH_NOT_FOUND   REMOVED
    NEW       PUSH_FAILED      NEW
    UPDATED   PUSH_FAILED      UPDATED
    DELETED   PUSH_FAILED      DELETED

Any other pair raises InvalidTransitionError.
"""

import enum
from typing import Final

from notesync.core.exceptions import InvalidTransitionError
from notesync.models.note import SyncStatus


class SyncEvent(str, enum.Enum):
    """Events that move a record through its lifecycle."""

    CREATE = "create"
    EDIT = "edit"
    DELETE = "delete"
    PUSH_SUCCEEDED = "push_succeeded"
    PUSH_NOT_FOUND = "push_not_found"
    PUSH_FAILED = "push_failed"


class Removed:
    """Sentinel target: the record is physically removed from the replica."""

    _instance: "Removed | None" = None

    def __new__(cls) -> "Removed":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "REMOVED"


REMOVED: Final = Removed()

Target = SyncStatus | Removed

TRANSITIONS: Final[dict[tuple[SyncStatus | None, SyncEvent], Target]] = {
    (None, SyncEvent.CREATE): SyncStatus.NEW,
    (SyncStatus.SYNCED, SyncEvent.EDIT): SyncStatus.UPDATED,
    (SyncStatus.NEW, SyncEvent.EDIT): SyncStatus.NEW,
    (SyncStatus.UPDATED, SyncEvent.EDIT): SyncStatus.UPDATED,
    (SyncStatus.NEW, SyncEvent.DELETE): REMOVED,
    (SyncStatus.SYNCED, SyncEvent.DELETE): SyncStatus.DELETED,
    (SyncStatus.UPDATED, SyncEvent.DELETE): SyncStatus.DELETED,
    (SyncStatus.NEW, SyncEvent.PUSH_SUCCEEDED): SyncStatus.SYNCED,
    (SyncStatus.UPDATED, SyncEvent.PUSH_SUCCEEDED): SyncStatus.SYNCED,
    (SyncStatus.DELETED, SyncEvent.PUSH_SUCCEEDED): REMOVED,
    (SyncStatus.DELETED, SyncEvent.PUSH_NOT_FOUND): REMOVED,
    (SyncStatus.NEW, SyncEvent.PUSH_FAILED): SyncStatus.NEW,
    (SyncStatus.UPDATED, SyncEvent.PUSH_FAILED): SyncStatus.UPDATED,
    (SyncStatus.DELETED, SyncEvent.PUSH_FAILED): SyncStatus.DELETED,
}


def transition(current: SyncStatus | None, event: SyncEvent) -> Target:
    """
    Resolve the next state for a record.

    Args:
        current: The record's status, or None when it does not exist yet
        event: What happened to the record

    Returns:
        The next SyncStatus, or REMOVED when the row must be deleted

    Raises:
        InvalidTransitionError: The event is not allowed in this state
    """
    try:
        return TRANSITIONS[(current, event)]
    except KeyError:
        state = current.value if current is not None else "none"
        raise InvalidTransitionError(
            f"Cannot apply {event.value} to a note in state {state}"
        ) from None


def is_pending(status: SyncStatus) -> bool:
    """True for statuses owned by the push phase."""
    return status != SyncStatus.SYNCED
