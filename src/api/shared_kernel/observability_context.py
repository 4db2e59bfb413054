"""Observation context for domain-oriented observability.

Observation contexts collect and manage contextual metadata for instrumentation,
following the Domain Oriented Observability pattern.

See: https://martinfowler.com/articles/domain-oriented-observability.html
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any


@dataclass(frozen=True)
class ObservationContext:
    """Immutable context containing metadata for observability.

    Captures operation-scoped metadata that should be included with all
    instrumentation events, so that a replay run or a single event's
    lifecycle can be followed across log lines.

    Attributes:
        request_id: Identifier of the calling request or scheduled run.
        tenant_id: Tenant the operation is scoped to (if applicable).
        event_id: Outbox event the operation concerns (if applicable).
        extra: Additional contextual metadata.

    Example:
        context = ObservationContext(request_id="replay-42", tenant_id="t-1")
        probe = DefaultEventTrackingProbe().with_context(context)
    """

    request_id: str | None = None
    tenant_id: str | None = None
    event_id: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> dict[str, Any]:
        """Convert context to a dictionary for logging.

        Only includes non-None values to keep logs clean.
        """
        result: dict[str, Any] = {}
        if self.request_id is not None:
            result["request_id"] = self.request_id
        if self.tenant_id is not None:
            result["tenant_id"] = self.tenant_id
        if self.event_id is not None:
            result["event_id"] = self.event_id
        result.update(self.extra)
        return result

    def with_tenant(self, tenant_id: str) -> ObservationContext:
        """Create a new context with the tenant set."""
        return replace(self, tenant_id=tenant_id)

    def with_extra(self, **kwargs: Any) -> ObservationContext:
        """Create a new context with additional metadata."""
        return replace(self, extra={**self.extra, **kwargs})
