"""
Background Tasks Package.

Taskiq-based worker deployment of the sync engine, with a Redis backend.

Usage (with Redis):
    taskiq worker notesync.tasks.broker:broker
    taskiq scheduler notesync.tasks.scheduler:scheduler

Usage (without Redis):
    from notesync.tasks import sync_notes
    result = await sync_notes()

Important:
    Run only ONE scheduler instance to avoid duplicate sync cycles.
"""

from notesync.tasks.broker import get_broker
from notesync.tasks.scheduler import get_scheduler
from notesync.tasks.sync import SCHEDULED_TASKS, register_tasks, sync_notes

__all__ = [
    "get_broker",
    "get_scheduler",
    "register_tasks",
    "SCHEDULED_TASKS",
    "sync_notes",
]


def __getattr__(name: str):
    """Lazy attribute access for broker and scheduler."""
    if name == "broker":
        return get_broker()
    if name == "scheduler":
        return get_scheduler()
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
