"""Outbox maintenance runner.

Runs the replay and retention loops as a standalone process until SIGINT
or SIGTERM.

Usage:
    EVENTSYNC_PUBLISHER_FACTORY=mybroker.publisher:create_publisher python main.py

The publisher factory is a zero-argument callable returning an object
with an async publish_inter_app_event(event) method.
"""

from __future__ import annotations

import asyncio
import importlib
import signal
import sys
from collections.abc import Callable

import structlog

from infrastructure.database.exceptions import DatabaseConnectionError
from infrastructure.logging import configure_logging
from infrastructure.settings import (
    Settings,
    get_database_settings,
    get_outbox_settings,
    get_settings,
)
from infrastructure.version import __version__
from messaging.dependencies import MessagingContainer
from messaging.ports.publisher import EventPublisher

logger = structlog.get_logger()


def load_publisher(import_path: str) -> EventPublisher:
    """Build the broker publisher from a 'module:callable' import path.

    Raises:
        ValueError: If the path is malformed or the callable does not
            return an EventPublisher
        ImportError: If the module cannot be imported
        AttributeError: If the module has no such callable
    """
    module_name, _, attribute = import_path.partition(":")
    if not module_name or not attribute:
        raise ValueError(
            f"Publisher factory must look like 'package.module:callable', got {import_path!r}"
        )

    factory: Callable[[], object] = getattr(
        importlib.import_module(module_name), attribute
    )
    publisher = factory()
    if not isinstance(publisher, EventPublisher):
        raise ValueError(f"{import_path} did not return an EventPublisher")
    return publisher


class OutboxRunner:
    """Owns the container and scheduler for the lifetime of the process."""

    def __init__(self, container: MessagingContainer) -> None:
        self._container = container
        self._shutdown_event = asyncio.Event()

    def request_shutdown(self, sig: signal.Signals | None = None) -> None:
        logger.info("outbox_shutdown_requested", signal=sig.name if sig else None)
        self._shutdown_event.set()

    async def run(self, run_scheduler: bool = True) -> None:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, self.request_shutdown, sig)

        try:
            await self._container.initialize()
            if run_scheduler:
                await self._container.scheduler.start()
            else:
                logger.info("outbox_scheduler_disabled")
            await self._shutdown_event.wait()
        finally:
            await self._container.close()


async def main(settings: Settings | None = None) -> int:
    settings = settings or get_settings()
    configure_logging(settings.log_level, service_name=settings.app_name)
    logger.info("outbox_runner_starting", version=__version__)

    if not settings.publisher_factory:
        logger.error(
            "outbox_publisher_not_configured",
            hint="Set EVENTSYNC_PUBLISHER_FACTORY",
        )
        return 2

    try:
        publisher = load_publisher(settings.publisher_factory)
    except (ImportError, AttributeError, ValueError) as e:
        logger.error(
            "outbox_publisher_load_failed",
            publisher_factory=settings.publisher_factory,
            error=str(e),
        )
        return 2

    outbox_settings = get_outbox_settings()
    container = MessagingContainer(
        database_settings=get_database_settings(),
        outbox_settings=outbox_settings,
        publisher=publisher,
    )
    runner = OutboxRunner(container)

    try:
        await runner.run(run_scheduler=outbox_settings.scheduler_enabled)
    except DatabaseConnectionError as e:
        logger.error("outbox_runner_failed", error=str(e))
        return 1

    logger.info("outbox_runner_stopped")
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
