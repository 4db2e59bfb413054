"""Protocol for retention sweep observability."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any, Protocol

import structlog

if TYPE_CHECKING:
    from shared_kernel.observability_context import ObservationContext


class RetentionSweeperProbe(Protocol):
    """Domain probe for retention sweeps."""

    def events_cleaned_up(
        self,
        deleted: int,
        policy: str,
        terminal_cutoff: datetime,
        parked_cutoff: datetime,
    ) -> None:
        """Record how many records a sweep deleted."""
        ...

    def cleanup_failed(self, error: str) -> None:
        """Record that a sweep could not complete."""
        ...

    def with_context(self, context: ObservationContext) -> RetentionSweeperProbe:
        """Create a new probe with observation context bound."""
        ...


class DefaultRetentionSweeperProbe:
    """Default implementation of RetentionSweeperProbe using structlog."""

    def __init__(
        self,
        logger: structlog.stdlib.BoundLogger | None = None,
        context: ObservationContext | None = None,
    ):
        self._logger = logger or structlog.get_logger()
        self._context = context

    def _get_context_kwargs(self) -> dict[str, Any]:
        """Get context metadata as kwargs for logging."""
        if self._context is None:
            return {}
        return self._context.as_dict()

    def with_context(
        self, context: ObservationContext
    ) -> DefaultRetentionSweeperProbe:
        """Create a new probe with observation context bound."""
        return DefaultRetentionSweeperProbe(logger=self._logger, context=context)

    def events_cleaned_up(
        self,
        deleted: int,
        policy: str,
        terminal_cutoff: datetime,
        parked_cutoff: datetime,
    ) -> None:
        self._logger.info(
            "events_cleaned_up",
            deleted=deleted,
            policy=policy,
            terminal_cutoff=terminal_cutoff.isoformat(),
            parked_cutoff=parked_cutoff.isoformat(),
            **self._get_context_kwargs(),
        )

    def cleanup_failed(self, error: str) -> None:
        self._logger.error(
            "events_cleanup_failed",
            error=error,
            **self._get_context_kwargs(),
        )
