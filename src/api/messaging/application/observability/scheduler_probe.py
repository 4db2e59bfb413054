"""Protocol for maintenance scheduler observability.

Mirrors the worker lifecycle events: started, stopped, and a failure
inside one of the periodic jobs.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

import structlog

if TYPE_CHECKING:
    from shared_kernel.observability_context import ObservationContext


class SchedulerProbe(Protocol):
    """Domain probe for the maintenance scheduler."""

    def scheduler_started(
        self, replay_interval_seconds: float, cleanup_interval_seconds: float
    ) -> None:
        """Record that the scheduler loops were started."""
        ...

    def scheduler_stopped(self) -> None:
        """Record that the scheduler loops were stopped."""
        ...

    def job_failed(self, job: str, error: str) -> None:
        """Record that one run of a periodic job raised."""
        ...

    def with_context(self, context: ObservationContext) -> SchedulerProbe:
        """Create a new probe with observation context bound."""
        ...


class DefaultSchedulerProbe:
    """Default implementation of SchedulerProbe using structlog."""

    def __init__(
        self,
        logger: structlog.stdlib.BoundLogger | None = None,
        context: ObservationContext | None = None,
    ):
        self._logger = logger or structlog.get_logger()
        self._context = context
        self._log = self._logger.bind(component="maintenance_scheduler")

    def _get_context_kwargs(self) -> dict[str, Any]:
        """Get context metadata as kwargs for logging."""
        if self._context is None:
            return {}
        return self._context.as_dict()

    def with_context(self, context: ObservationContext) -> DefaultSchedulerProbe:
        """Create a new probe with observation context bound."""
        return DefaultSchedulerProbe(logger=self._logger, context=context)

    def scheduler_started(
        self, replay_interval_seconds: float, cleanup_interval_seconds: float
    ) -> None:
        self._log.info(
            "maintenance_scheduler_started",
            replay_interval_seconds=replay_interval_seconds,
            cleanup_interval_seconds=cleanup_interval_seconds,
            **self._get_context_kwargs(),
        )

    def scheduler_stopped(self) -> None:
        self._log.info(
            "maintenance_scheduler_stopped",
            **self._get_context_kwargs(),
        )

    def job_failed(self, job: str, error: str) -> None:
        self._log.error(
            "maintenance_job_failed",
            job=job,
            error=error,
            **self._get_context_kwargs(),
        )
