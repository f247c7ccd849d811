"""
Sync Scheduler.

Triggers reconciliation cycles on demand and periodically, on top of an
injected scheduling port. The port guarantees that at most one job per
unique name runs at a time and coalesces requests that arrive while one is
waiting to start.

Usage:
    connectivity = ConnectivityMonitor()
    port = AsyncioSchedulingPort(CoalescePolicy.KEEP, gate=connectivity.wait_online)
    scheduler = SyncScheduler(engine, port, connectivity, config.sync)

    handle = scheduler.enqueue_immediate()
    outcome = await handle.wait()

    scheduler.schedule_periodic()
    ...
    await scheduler.shutdown()
"""

import asyncio
import enum
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Protocol

from notesync.core.config_schema import SyncSchema
from notesync.core.logging import get_logger, log_with_source
from notesync.schemas.result import CycleReport

logger = get_logger(__name__)

WORK_NAME = "note_sync"


class HandleState(str, enum.Enum):
    """Observable state of a scheduled sync request."""

    ENQUEUED = "enqueued"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    RETRY = "retry"
    CANCELLED = "cancelled"


class CoalescePolicy(str, enum.Enum):
    """What to do with a request when one with the same name is waiting."""

    KEEP = "keep"
    REPLACE = "replace"


@dataclass(frozen=True)
class SyncOutcome:
    """Final result of a scheduled job."""

    state: HandleState
    report: CycleReport | None = None
    error: BaseException | None = None


class SyncHandle:
    """Observable handle for one scheduled job."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._state = HandleState.ENQUEUED
        self._outcome = SyncOutcome(HandleState.ENQUEUED)
        self._done = asyncio.Event()

    @property
    def state(self) -> HandleState:
        return self._state

    @property
    def done(self) -> bool:
        return self._done.is_set()

    def _mark_running(self) -> None:
        self._state = HandleState.RUNNING

    def _finish(self, outcome: SyncOutcome) -> None:
        if self._done.is_set():
            return
        self._state = outcome.state
        self._outcome = outcome
        self._done.set()

    def _cancel(self) -> None:
        self._finish(SyncOutcome(HandleState.CANCELLED))

    async def wait(self) -> SyncOutcome:
        """Block until the job has finished or was cancelled."""
        await self._done.wait()
        return self._outcome

    def __repr__(self) -> str:
        return f"<SyncHandle(name={self.name!r}, state={self._state.value})>"


Job = Callable[[], Awaitable[SyncOutcome]]


class SchedulingPort(Protocol):
    """Background execution primitive the scheduler is built on."""

    def run_now(self, name: str, job: Job) -> SyncHandle: ...

    def run_periodic(self, name: str, interval: float, job: Job) -> bool: ...

    async def shutdown(self) -> None: ...


class _Slot:
    """Per-name execution state."""

    def __init__(self) -> None:
        self.pending: tuple[SyncHandle, Job] | None = None
        self.running: SyncHandle | None = None
        self.task: asyncio.Task | None = None


class AsyncioSchedulingPort:
    """
    Scheduling port on plain asyncio tasks.

    Per unique name there is at most one running job and at most one
    waiting job. A request made while a job is running becomes the waiting
    job, so changes made mid-cycle are picked up by a follow-up run.
    A request made while another one is already waiting is coalesced
    according to the policy.

    The optional gate is awaited before each job starts; while it blocks,
    the job counts as waiting and further requests coalesce into it.
    """

    def __init__(
        self,
        policy: CoalescePolicy = CoalescePolicy.KEEP,
        gate: Callable[[], Awaitable[None]] | None = None,
    ) -> None:
        self._policy = CoalescePolicy(policy)
        self._gate = gate
        self._slots: dict[str, _Slot] = {}
        self._periodic: dict[str, asyncio.Task] = {}

    @property
    def policy(self) -> CoalescePolicy:
        return self._policy

    def is_busy(self, name: str) -> bool:
        """True while a job with this name is running or waiting."""
        slot = self._slots.get(name)
        return slot is not None and slot.task is not None

    def run_now(self, name: str, job: Job) -> SyncHandle:
        """Request a run of job under the unique name."""
        slot = self._slots.setdefault(name, _Slot())

        if slot.pending is not None:
            existing, _ = slot.pending
            if self._policy == CoalescePolicy.KEEP:
                logger.debug("Request coalesced into waiting job", extra={"name": name})
                return existing
            existing._cancel()
            logger.debug("Waiting job replaced", extra={"name": name})

        handle = SyncHandle(name)
        slot.pending = (handle, job)
        if slot.task is None:
            slot.task = asyncio.create_task(self._drive(name, slot), name=f"sync:{name}")
        return handle

    async def _drive(self, name: str, slot: _Slot) -> None:
        """Run waiting jobs for one name until none is left."""
        try:
            while slot.pending is not None:
                if self._gate is not None:
                    await self._gate()
                if slot.pending is None:
                    break

                handle, job = slot.pending
                slot.pending = None
                slot.running = handle
                handle._mark_running()

                try:
                    outcome = await job()
                except asyncio.CancelledError:
                    handle._cancel()
                    raise
                except Exception as e:
                    logger.warning(
                        "Scheduled job raised",
                        extra={"name": name, "error": str(e), "error_type": type(e).__name__},
                    )
                    outcome = SyncOutcome(HandleState.RETRY, error=e)
                finally:
                    slot.running = None

                handle._finish(outcome)
        finally:
            slot.task = None
            if slot.pending is not None:
                slot.pending[0]._cancel()
                slot.pending = None

    def run_periodic(self, name: str, interval: float, job: Job) -> bool:
        """
        Run job under the unique name now and then every interval seconds.

        Returns:
            False if a periodic schedule with this name already exists
        """
        if name in self._periodic:
            return False
        if interval <= 0:
            raise ValueError("interval must be positive")

        async def _tick() -> None:
            while True:
                self.run_now(name, job)
                await asyncio.sleep(interval)

        self._periodic[name] = asyncio.create_task(_tick(), name=f"periodic:{name}")
        logger.info("Periodic job scheduled", extra={"name": name, "interval_seconds": interval})
        return True

    async def shutdown(self) -> None:
        """Cancel every periodic schedule and every running or waiting job."""
        tasks = list(self._periodic.values())
        self._periodic.clear()

        for slot in self._slots.values():
            if slot.pending is not None:
                slot.pending[0]._cancel()
                slot.pending = None
            if slot.task is not None:
                tasks.append(slot.task)

        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._slots.clear()


class ConnectivityMonitor:
    """Tracks whether the remote service is reachable."""

    def __init__(self, online: bool = True) -> None:
        self._online = asyncio.Event()
        if online:
            self._online.set()

    @property
    def is_online(self) -> bool:
        return self._online.is_set()

    def set_online(self) -> None:
        if not self._online.is_set():
            log_with_source(logger, "scheduler", "info", "Connectivity restored")
        self._online.set()

    def set_offline(self) -> None:
        if self._online.is_set():
            log_with_source(logger, "scheduler", "info", "Connectivity lost")
        self._online.clear()

    async def wait_online(self) -> None:
        """Block while offline."""
        await self._online.wait()


class CycleRunner(Protocol):
    async def run_cycle(self) -> CycleReport: ...


class SyncScheduler:
    """
    Immediate and periodic sync triggers.

    A cycle that raises is reported as a RETRY outcome, never as a crash,
    and an automatic re-run is scheduled with exponential back-off bounded
    by the retry_backoff settings.
    """

    def __init__(
        self,
        engine: CycleRunner,
        port: SchedulingPort,
        connectivity: ConnectivityMonitor,
        config: SyncSchema,
    ) -> None:
        self._engine = engine
        self._port = port
        self._connectivity = connectivity
        self._config = config
        self._consecutive_failures = 0
        self._retry_task: asyncio.Task | None = None

    @property
    def consecutive_failures(self) -> int:
        return self._consecutive_failures

    def retry_delay(self, failures: int) -> float:
        """Back-off delay before the re-run that follows the given failure count."""
        backoff = self._config.retry_backoff
        delay = backoff.initial_seconds * (2 ** max(failures - 1, 0))
        return float(min(delay, backoff.max_seconds))

    async def _run(self) -> SyncOutcome:
        await self._connectivity.wait_online()
        try:
            report = await self._engine.run_cycle()
        except Exception as e:
            self._consecutive_failures += 1
            delay = self.retry_delay(self._consecutive_failures)
            log_with_source(
                logger, "scheduler", "warning", "Sync cycle failed, will retry",
                error=str(e),
                error_type=type(e).__name__,
                failures=self._consecutive_failures,
                retry_in_seconds=delay,
            )
            self._schedule_retry(delay)
            return SyncOutcome(HandleState.RETRY, error=e)

        self._consecutive_failures = 0
        return SyncOutcome(HandleState.SUCCEEDED, report=report)

    def _schedule_retry(self, delay: float) -> None:
        if self._retry_task is not None and not self._retry_task.done():
            return

        async def _retry_later() -> None:
            await asyncio.sleep(delay)
            self.enqueue_immediate()

        self._retry_task = asyncio.create_task(_retry_later(), name="sync:retry")

    def enqueue_immediate(self) -> SyncHandle:
        """Request a sync cycle as soon as connectivity allows."""
        return self._port.run_now(WORK_NAME, self._run)

    def schedule_periodic(self, interval: float | None = None) -> bool:
        """
        Run a sync cycle every interval seconds.

        Returns:
            False if periodic sync was already scheduled
        """
        seconds = interval if interval is not None else self._config.periodic_interval_seconds
        return self._port.run_periodic(WORK_NAME, float(seconds), self._run)

    async def shutdown(self) -> None:
        """Stop pending retries and every scheduled job."""
        if self._retry_task is not None:
            self._retry_task.cancel()
            await asyncio.gather(self._retry_task, return_exceptions=True)
            self._retry_task = None
        await self._port.shutdown()
