"""Exceptions for the messaging bounded context.

Storage errors are fatal to the operation that raised them. Publish
errors are raised around a single broker call and are always converted
into a failed record by the caller; they never escape a replay batch.
"""


class StorageError(Exception):
    """Raised when the outbox store cannot complete a read or write.

    The underlying driver exception is chained as ``__cause__``. Callers
    should treat the operation as not having happened.
    """

    pass


class DuplicateEventError(StorageError):
    """Raised when a record is tracked with an event_id that already exists.

    event_id is caller-supplied and globally unique, so a second insert of
    the same id is a caller bug rather than a transient failure.
    """

    def __init__(self, event_id: str):
        super().__init__(f"Event '{event_id}' is already tracked")
        self.event_id = event_id


class PublishError(Exception):
    """Raised when the broker rejects a publish."""

    def __init__(self, event_id: str, reason: str):
        super().__init__(reason)
        self.event_id = event_id
        self.reason = reason


class PublishTimeoutError(PublishError):
    """Raised when the broker does not answer within the publish timeout."""

    def __init__(self, event_id: str, timeout_seconds: float):
        super().__init__(
            event_id, f"Broker publish timed out after {timeout_seconds:g}s"
        )
        self.timeout_seconds = timeout_seconds
