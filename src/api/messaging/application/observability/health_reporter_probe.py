"""Protocol for health reporting observability."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

import structlog

if TYPE_CHECKING:
    from shared_kernel.observability_context import ObservationContext


class HealthReporterProbe(Protocol):
    """Domain probe for delivery health reporting."""

    def health_reported(
        self, tenant_id: str, report: str, status: str, failure_rate: str
    ) -> None:
        """Record that a health report was produced."""
        ...

    def health_query_failed(self, tenant_id: str, report: str, error: str) -> None:
        """Record that a health report fell back to zeroed output."""
        ...

    def with_context(self, context: ObservationContext) -> HealthReporterProbe:
        """Create a new probe with observation context bound."""
        ...


class DefaultHealthReporterProbe:
    """Default implementation of HealthReporterProbe using structlog."""

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

    def with_context(self, context: ObservationContext) -> DefaultHealthReporterProbe:
        """Create a new probe with observation context bound."""
        return DefaultHealthReporterProbe(logger=self._logger, context=context)

    def health_reported(
        self, tenant_id: str, report: str, status: str, failure_rate: str
    ) -> None:
        self._logger.debug(
            "health_reported",
            tenant_id=tenant_id,
            report=report,
            status=status,
            failure_rate=failure_rate,
            **self._get_context_kwargs(),
        )

    def health_query_failed(self, tenant_id: str, report: str, error: str) -> None:
        self._logger.error(
            "health_query_failed",
            tenant_id=tenant_id,
            report=report,
            error=error,
            **self._get_context_kwargs(),
        )
