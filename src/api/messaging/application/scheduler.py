"""In-process maintenance scheduler for the outbox.

Runs replay and retention on fixed intervals as background tasks. A
cron-style driver may call the services directly instead; this is the
driver used when the service runs as a long-lived process.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

from messaging.application.observability import (
    DefaultSchedulerProbe,
    SchedulerProbe,
)
from messaging.application.services.replay_worker import ReplayWorker
from messaging.application.services.retention_sweeper import RetentionSweeper

DEFAULT_REPLAY_INTERVAL_SECONDS = 30.0
DEFAULT_CLEANUP_INTERVAL_SECONDS = 3600.0


class MaintenanceScheduler:
    """Background driver for replay and retention.

    Each job runs in its own loop so a slow sweep never delays replay.
    A job that raises is logged and retried on its next tick.
    """

    def __init__(
        self,
        replay_worker: ReplayWorker,
        retention_sweeper: RetentionSweeper,
        replay_interval_seconds: float = DEFAULT_REPLAY_INTERVAL_SECONDS,
        cleanup_interval_seconds: float = DEFAULT_CLEANUP_INTERVAL_SECONDS,
        probe: SchedulerProbe | None = None,
    ) -> None:
        """Initialize the scheduler.

        Args:
            replay_worker: Worker whose replay_pending_events is run periodically
            retention_sweeper: Sweeper whose cleanup_old_events is run periodically
            replay_interval_seconds: Delay between replay runs
            cleanup_interval_seconds: Delay between retention sweeps
            probe: Optional domain probe for observability
        """
        self._replay_worker = replay_worker
        self._retention_sweeper = retention_sweeper
        self._replay_interval = replay_interval_seconds
        self._cleanup_interval = cleanup_interval_seconds
        self._probe = probe or DefaultSchedulerProbe()
        self._running = False
        self._tasks: list[asyncio.Task] = []

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the replay and cleanup loops. Calling start twice is a no-op."""
        if self._running:
            return

        self._running = True
        self._tasks.append(
            asyncio.create_task(
                self._run_periodically(
                    "replay",
                    self._replay_worker.replay_pending_events,
                    self._replay_interval,
                )
            )
        )
        self._tasks.append(
            asyncio.create_task(
                self._run_periodically(
                    "cleanup",
                    self._retention_sweeper.cleanup_old_events,
                    self._cleanup_interval,
                )
            )
        )
        self._probe.scheduler_started(
            replay_interval_seconds=self._replay_interval,
            cleanup_interval_seconds=self._cleanup_interval,
        )

    async def stop(self) -> None:
        """Gracefully stop the scheduler.

        Signals all loops to stop and waits for them to complete.
        """
        if not self._running and not self._tasks:
            return

        self._running = False
        for task in self._tasks:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        self._tasks.clear()
        self._probe.scheduler_stopped()

    async def run_once(self) -> tuple[int, int]:
        """Run one replay batch and one retention sweep.

        Returns:
            Tuple of (events replayed, events deleted)
        """
        replayed = await self._replay_worker.replay_pending_events()
        deleted = await self._retention_sweeper.cleanup_old_events()
        return replayed, deleted

    async def _run_periodically(
        self,
        job: str,
        action: Callable[[], Awaitable[Any]],
        interval: float,
    ) -> None:
        while self._running:
            try:
                await action()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self._probe.job_failed(job=job, error=str(e))
            await asyncio.sleep(interval)
