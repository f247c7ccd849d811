# Local replica repositories package
from notesync.repositories.base import BaseRepository
from notesync.repositories.note import NoteRepository

__all__ = [
    "BaseRepository",
    "NoteRepository",
]
