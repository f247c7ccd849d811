# Replica models package
from notesync.models.base import Base
from notesync.models.note import Note, SyncStatus

__all__ = [
    "Base",
    "Note",
    "SyncStatus",
]
