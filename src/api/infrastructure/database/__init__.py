"""Database infrastructure - shared engine and model primitives."""

from infrastructure.database.engines import (
    build_async_url,
    create_engine,
    create_session_factory,
)
from infrastructure.database.exceptions import (
    DatabaseConnectionError,
    DatabaseError,
)
from infrastructure.database.models import Base, utc_now

__all__ = [
    "Base",
    "DatabaseConnectionError",
    "DatabaseError",
    "build_async_url",
    "create_engine",
    "create_session_factory",
    "utc_now",
]
