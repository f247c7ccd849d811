"""
Task Scheduler Configuration.

Taskiq scheduler that fires the periodic sync task in worker deployments.
Uses LabelScheduleSource for the cron label the broker registers with
its tasks.

Usage:
    taskiq scheduler notesync.tasks.scheduler:scheduler

Important:
    Run only ONE scheduler instance. Multiple instances will cause
    duplicate sync cycles.
"""

from typing import TYPE_CHECKING

from notesync.core.logging import get_logger

logger = get_logger(__name__)

if TYPE_CHECKING:
    from taskiq import TaskiqScheduler


def create_scheduler() -> "TaskiqScheduler":
    """Create and configure the Taskiq scheduler."""
    from taskiq import TaskiqScheduler
    from taskiq.schedule_sources import LabelScheduleSource

    from notesync.tasks.broker import get_broker

    broker = get_broker()

    scheduler = TaskiqScheduler(
        broker=broker,
        sources=[LabelScheduleSource(broker)],
    )

    logger.info("Taskiq scheduler configured with LabelScheduleSource")

    return scheduler


_scheduler: "TaskiqScheduler | None" = None


def get_scheduler() -> "TaskiqScheduler":
    """Get the scheduler instance, creating it if necessary."""
    global _scheduler
    if _scheduler is None:
        _scheduler = create_scheduler()
    return _scheduler


def __getattr__(name: str):
    """Lazy attribute access for scheduler."""
    if name == "scheduler":
        return get_scheduler()
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
