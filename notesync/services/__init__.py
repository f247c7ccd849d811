from notesync.services.base import BaseService
from notesync.services.feed import ChangeNotifier, NoteFeed
from notesync.services.note import NoteService

__all__ = [
    "BaseService",
    "ChangeNotifier",
    "NoteFeed",
    "NoteService",
]
