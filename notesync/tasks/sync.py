"""
Sync Background Tasks.

Runs reconciliation cycles in a Taskiq worker. The task functions are plain
async functions; register_tasks() wraps them with broker.task() and their
cron schedule so the TaskiqScheduler can pick them up via
LabelScheduleSource.

Usage:
    # Without Redis
    from notesync.tasks.sync import sync_notes
    result = await sync_notes()

    # With Redis
    from notesync.tasks.sync import register_tasks
    tasks = register_tasks()
    await tasks["sync_notes"].kiq()
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from notesync.core.logging import get_logger, log_with_source
from notesync.core.utils import utc_now
from notesync.sync.engine import ReconciliationEngine

logger = get_logger(__name__)


@asynccontextmanager
async def engine_from_config() -> AsyncGenerator[ReconciliationEngine, None]:
    """Build a reconciliation engine from configuration for one task run."""
    from notesync.clients.remote import RemoteNoteClient
    from notesync.core.config import get_app_config
    from notesync.core.database import get_session_factory, init_replica_schema

    await init_replica_schema()
    async with RemoteNoteClient.from_config() as remote:
        yield ReconciliationEngine(get_session_factory(), remote, get_app_config().sync)


async def sync_notes() -> dict[str, Any]:
    """
    Run one reconciliation cycle.

    A failed cycle is reported as a retry rather than raised, so the worker
    keeps running and the next scheduled run tries again.

    Returns:
        Cycle summary, or {"status": "retry", ...} on failure
    """
    log_with_source(logger, "tasks", "info", "Starting sync task")

    try:
        async with engine_from_config() as engine:
            report = await engine.run_cycle()
    except Exception as e:
        result = {
            "status": "retry",
            "error": str(e),
            "error_type": type(e).__name__,
            "completed_at": utc_now().isoformat(),
        }
        log_with_source(logger, "tasks", "warning", "Sync task failed", **result)
        return result

    result = {
        "status": "completed",
        **report.as_dict(),
        "completed_at": utc_now().isoformat(),
    }
    log_with_source(logger, "tasks", "info", "Sync task completed", **result)
    return result


SCHEDULED_TASKS = {
    "sync_notes": {
        "function": sync_notes,
        "schedule": [{"cron": "* * * * *"}],
        "retry_on_error": False,
        "description": "Reconcile the local replica with the remote service every minute",
    },
}


def register_tasks(broker: Any = None) -> dict[str, Any]:
    """
    Register sync task functions with the Taskiq broker.

    Args:
        broker: Broker to register on; the shared broker when omitted

    Returns:
        Dict mapping task names to registered task objects
    """
    if broker is None:
        from notesync.tasks.broker import get_broker

        broker = get_broker()

    registered = {}

    for task_name, config in SCHEDULED_TASKS.items():
        registered[task_name] = broker.task(
            task_name=task_name,
            schedule=config["schedule"],
            retry_on_error=config["retry_on_error"],
        )(config["function"])

    logger.info(
        "Sync tasks registered",
        extra={"task_count": len(registered), "tasks": list(registered.keys())},
    )

    return registered
