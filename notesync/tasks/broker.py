"""
Taskiq Broker Configuration.

Configures the message broker for running sync cycles in a worker
process. Uses Redis as the backend for task queue management.

Usage:
    taskiq worker notesync.tasks.broker:broker
"""

import os
from typing import TYPE_CHECKING

from notesync.core.logging import get_logger

logger = get_logger(__name__)

if TYPE_CHECKING:
    from taskiq_redis import ListQueueBroker

QUEUE_NAME = "notesync_tasks"
RESULT_EXPIRY_SECONDS = 3600


def get_redis_url() -> str:
    """
    Get Redis URL from the environment or config/.env.

    Raises:
        RuntimeError: If REDIS_URL is not configured
    """
    redis_url = os.environ.get("REDIS_URL")
    if not redis_url:
        from notesync.core.config import get_settings

        redis_url = get_settings().redis_url

    if not redis_url:
        raise RuntimeError(
            "REDIS_URL not configured. Set REDIS_URL environment variable "
            "or configure it in config/.env"
        )

    return redis_url


def create_broker() -> "ListQueueBroker":
    """
    Create and configure the Taskiq broker.

    Returns:
        Configured ListQueueBroker instance
    """
    from taskiq_redis import ListQueueBroker, RedisAsyncResultBackend

    redis_url = get_redis_url()

    result_backend = RedisAsyncResultBackend(
        redis_url=redis_url,
        result_ex_time=RESULT_EXPIRY_SECONDS,
    )

    broker = ListQueueBroker(
        url=redis_url,
        queue_name=QUEUE_NAME,
    ).with_result_backend(result_backend)

    logger.debug(
        "Taskiq broker configured",
        extra={"queue_name": QUEUE_NAME, "result_expiry": RESULT_EXPIRY_SECONDS},
    )

    return broker


_broker: "ListQueueBroker | None" = None


def get_broker() -> "ListQueueBroker":
    """Get the broker instance, creating it and registering its tasks if necessary."""
    global _broker
    if _broker is None:
        from notesync.tasks.sync import register_tasks

        _broker = create_broker()
        register_tasks(_broker)

        @_broker.on_event("startup")
        async def on_startup() -> None:
            logger.info("Taskiq worker starting up")

        @_broker.on_event("shutdown")
        async def on_shutdown() -> None:
            from notesync.core.database import dispose_engine

            await dispose_engine()
            logger.info("Taskiq worker shutting down")

    return _broker


def __getattr__(name: str):
    """Lazy attribute access for broker."""
    if name == "broker":
        return get_broker()
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
