"""
CMS Server - Main entry point.

This module starts the CMS server with all components:
- HTTP server (REST API, page delete-to-archive)
- Expiry scanner loop (expired banners -> banner archive)

Usage:
    python -m backend.cms_server.main

Configuration is entirely via environment variables.
See config.py for all available settings.

Invariants:
    - Database schema exists before the HTTP server accepts requests
    - Graceful shutdown lets an in-flight sweep finish
    - Scanner and HTTP handlers share the same stores

How to change safely:
    - Add new components with enable/disable flags
    - Test shutdown sequence thoroughly
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys

import json_log_formatter
from aiohttp import web

from .activity import SqliteActivityLog
from .api import CmsServicer, run_http_server
from .archive import (
    BANNER_KIND,
    PAGE_KIND,
    ArchivalTransfer,
    DeleteToArchiveHandler,
    ExpiryScanner,
)
from .config import ServerConfig
from .store import CmsStores, SqliteDatabase, create_sqlite_stores, open_database

logger = logging.getLogger(__name__)


def setup_logging(config: ServerConfig) -> None:
    """Configure logging based on configuration.

    Args:
        config: Server configuration
    """
    level = getattr(logging, config.observability.log_level.upper(), logging.INFO)

    if config.observability.log_format == "json":
        formatter: logging.Formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]

    # Reduce noise from libraries
    logging.getLogger("aiohttp.access").setLevel(logging.WARNING)


class Server:
    """CMS Server orchestrator.

    Manages the lifecycle of all server components:
    - SQLite database and stores
    - HTTP server
    - Expiry scanner background loop

    Attributes:
        config: Server configuration
        db: SQLite database handle
        stores: Live and archive collections
        activity: Activity log
        page_handler: Delete-to-archive handler for pages
        scanner: Banner expiry scanner

    Example:
        >>> server = Server()
        >>> await server.start()
        >>> # Server is running
        >>> await server.stop()
    """

    def __init__(self, config: ServerConfig | None = None) -> None:
        """Initialize the server.

        Args:
            config: Optional server configuration (loaded from env if not provided)
        """
        self.config = config or ServerConfig.from_env()
        self._running = False
        self._shutdown_event = asyncio.Event()

        # Components (initialized in start())
        self.db: SqliteDatabase | None = None
        self.stores: CmsStores | None = None
        self.activity: SqliteActivityLog | None = None
        self.page_handler: DeleteToArchiveHandler | None = None
        self.scanner: ExpiryScanner | None = None
        self.servicer: CmsServicer | None = None
        self.http_runner: web.AppRunner | None = None

        # Background tasks
        self._tasks: list[asyncio.Task] = []

    async def start(self) -> None:
        """Start the server and all components."""
        if self._running:
            logger.warning("Server already running")
            return

        logger.info("Starting CMS server")
        self.config.log_config()

        try:
            self.db = open_database(self.config.storage)
            await self.db.initialize()

            self.stores = create_sqlite_stores(self.db)
            self.activity = SqliteActivityLog(self.db)

            page_transfer = ArchivalTransfer(
                self.stores.pages, self.stores.archived_pages, self.activity, PAGE_KIND
            )
            self.page_handler = DeleteToArchiveHandler(self.stores.pages, page_transfer)

            if self.config.expiry.enabled:
                banner_transfer = ArchivalTransfer(
                    self.stores.banners, self.stores.archived_banners, self.activity, BANNER_KIND
                )
                self.scanner = ExpiryScanner(
                    self.stores.banners,
                    banner_transfer,
                    interval_seconds=self.config.expiry.interval_seconds,
                )

            self.servicer = CmsServicer(
                stores=self.stores,
                activity=self.activity,
                page_handler=self.page_handler,
                scanner=self.scanner,
                db=self.db,
            )

            self.http_runner = await run_http_server(self.servicer, self.config.http)

            if self.scanner is not None:
                self._tasks.append(asyncio.create_task(self.scanner.start()))

            self._running = True
            logger.info("CMS server started successfully")

            # Wait for shutdown signal
            await self._shutdown_event.wait()

        except Exception as e:
            logger.error(f"Server startup failed: {e}", exc_info=True)
            self._running = True
            await self.stop()
            raise

    async def stop(self) -> None:
        """Stop the server gracefully."""
        if not self._running:
            return

        logger.info("Stopping CMS server")

        # Let an in-flight sweep finish, then the loop exits on its own
        if self.scanner:
            await self.scanner.stop()

        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
            self._tasks.clear()

        if self.http_runner:
            await self.http_runner.cleanup()
            self.http_runner = None

        self._running = False
        logger.info("CMS server stopped")

    def request_shutdown(self) -> None:
        """Request graceful shutdown."""
        self._shutdown_event.set()


def main() -> None:
    """Main entry point."""
    # Load configuration
    try:
        config = ServerConfig.from_env()
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    # Setup logging
    setup_logging(config)

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    # Create server
    server = Server(config)

    def handle_signal(sig: int) -> None:
        logger.info(f"Received signal {sig}, initiating shutdown")
        server.request_shutdown()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, handle_signal, sig)

    # Run server
    try:
        loop.run_until_complete(server.start())
    except KeyboardInterrupt:
        pass
    finally:
        loop.run_until_complete(server.stop())
        loop.close()


if __name__ == "__main__":
    main()
