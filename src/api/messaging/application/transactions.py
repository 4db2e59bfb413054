"""Per-operation transaction scope for outbox services.

Every service operation opens its own session from the injected factory,
runs inside one transaction and commits before returning. Driver errors
raised while opening, executing or committing surface as StorageError.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from messaging.ports.exceptions import StorageError
from messaging.ports.repositories import IEventTrackingRepository

RepositoryFactory = Callable[[AsyncSession], IEventTrackingRepository]


@asynccontextmanager
async def repository_transaction(
    session_factory: async_sessionmaker[AsyncSession],
    repository_factory: RepositoryFactory,
) -> AsyncIterator[IEventTrackingRepository]:
    """Yield a repository bound to a fresh session inside one transaction.

    The transaction commits when the block exits normally and rolls back
    when it raises.
    """
    try:
        async with session_factory() as session:
            async with session.begin():
                yield repository_factory(session)
    except (SQLAlchemyError, OSError) as e:
        raise StorageError(f"Event store transaction failed: {e}") from e
