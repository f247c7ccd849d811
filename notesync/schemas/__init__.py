# Pydantic schemas and result types package
from notesync.schemas.note import NotePage, NoteRequest, RemoteNote
from notesync.schemas.result import (
    CycleReport,
    Failed,
    Loading,
    PushFailure,
    Ready,
    Result,
)

__all__ = [
    "CycleReport",
    "Failed",
    "Loading",
    "NotePage",
    "NoteRequest",
    "PushFailure",
    "Ready",
    "RemoteNote",
    "Result",
]
