"""Database-specific exceptions raised by the infrastructure layer."""


class DatabaseError(Exception):
    """Base exception for database operations."""

    pass


class DatabaseConnectionError(DatabaseError):
    """Raised when the database cannot be reached at startup."""

    def __init__(self, message: str, host: str | None = None):
        super().__init__(message)
        self.host = host
