# External service clients package
from notesync.clients.remote import RemoteNoteClient, next_page_number

__all__ = [
    "RemoteNoteClient",
    "next_page_number",
]
