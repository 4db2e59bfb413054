"""Protocol for replay worker observability.

Defines the interface for domain probes that capture replay batch
outcomes.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

import structlog

if TYPE_CHECKING:
    from shared_kernel.observability_context import ObservationContext


class ReplayWorkerProbe(Protocol):
    """Domain probe for replay batch processing."""

    def replay_batch_selected(self, selected: int, batch_size: int) -> None:
        """Record how many records a batch locked."""
        ...

    def replay_publish_failed(self, event_id: str, error: str) -> None:
        """Record that a single broker call in a batch failed."""
        ...

    def replay_batch_completed(
        self, selected: int, succeeded: int, failed: int
    ) -> None:
        """Record the outcome of a batch."""
        ...

    def replay_batch_failed(self, error: str) -> None:
        """Record that a batch could not be stored."""
        ...

    def with_context(self, context: ObservationContext) -> ReplayWorkerProbe:
        """Create a new probe with observation context bound."""
        ...


class DefaultReplayWorkerProbe:
    """Default implementation of ReplayWorkerProbe using structlog."""

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

    def with_context(self, context: ObservationContext) -> DefaultReplayWorkerProbe:
        """Create a new probe with observation context bound."""
        return DefaultReplayWorkerProbe(logger=self._logger, context=context)

    def replay_batch_selected(self, selected: int, batch_size: int) -> None:
        self._logger.debug(
            "replay_batch_selected",
            selected=selected,
            batch_size=batch_size,
            **self._get_context_kwargs(),
        )

    def replay_publish_failed(self, event_id: str, error: str) -> None:
        self._logger.warning(
            "replay_publish_failed",
            event_id=event_id,
            error=error,
            **self._get_context_kwargs(),
        )

    def replay_batch_completed(
        self, selected: int, succeeded: int, failed: int
    ) -> None:
        """Record the outcome of a batch.

        Empty batches are logged at debug level to keep idle polling quiet.
        """
        log = self._logger.info if selected else self._logger.debug
        log(
            "replay_batch_completed",
            selected=selected,
            succeeded=succeeded,
            failed=failed,
            **self._get_context_kwargs(),
        )

    def replay_batch_failed(self, error: str) -> None:
        self._logger.error(
            "replay_batch_failed",
            error=error,
            **self._get_context_kwargs(),
        )
