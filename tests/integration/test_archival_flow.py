"""
End-to-end archival tests against a real SQLite database.

Tests cover:
- Server startup running the first expiry sweep and shutting down cleanly
- Page delete-to-archive through SQLite stores
- The cms-sweep tool (dry run and real run)
- Logging setup
"""

import asyncio
import json
import logging
import sys
import tempfile

import json_log_formatter
import pytest

from backend.cms_server.activity import SqliteActivityLog
from backend.cms_server.archive import PAGE_KIND, ArchivalTransfer, DeleteToArchiveHandler
from backend.cms_server.config import (
    ExpiryConfig,
    HttpConfig,
    ObservabilityConfig,
    ServerConfig,
    StorageConfig,
)
from backend.cms_server.main import Server, setup_logging
from backend.cms_server.models import Banner, Page, now_ms
from backend.cms_server.store import SqliteDatabase, create_sqlite_stores
from backend.cms_server.tools import sweep as sweep_tool
from backend.cms_server.tools import run_sweep


@pytest.fixture
def temp_dir():
    """Create a temporary directory."""
    with tempfile.TemporaryDirectory() as d:
        yield d


@pytest.fixture
async def seeded(temp_dir):
    """Database with one expired, one future and one open-ended banner."""
    db = SqliteDatabase(temp_dir)
    await db.initialize()
    stores = create_sqlite_stores(db)
    now = now_ms()
    expired = await stores.banners.insert(Banner(title="Old Sale", expire_at=now - 60_000))
    await stores.banners.insert(Banner(title="Next Sale", expire_at=now + 3_600_000))
    await stores.banners.insert(Banner(title="Evergreen"))
    return db, stores, expired


async def wait_until(predicate, timeout=5.0):
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.01)


class TestServerLifecycle:
    """Tests for the Server orchestrator."""

    @pytest.mark.asyncio
    async def test_first_sweep_runs_on_start(self, temp_dir, seeded):
        db, stores, expired = seeded
        config = ServerConfig(
            storage=StorageConfig(data_dir=temp_dir),
            expiry=ExpiryConfig(enabled=True, interval_seconds=3600),
            http=HttpConfig(host="127.0.0.1", port=0),
            observability=ObservabilityConfig(log_format="text"),
        )
        server = Server(config)

        task = asyncio.create_task(server.start())
        await wait_until(
            lambda: server.scanner is not None and server.scanner.stats()["sweeps"] >= 1
        )
        server.request_shutdown()
        await asyncio.wait_for(task, timeout=5.0)
        await server.stop()

        remaining = sorted(b.title for b in await stores.banners.find())
        assert remaining == ["Evergreen", "Next Sale"]
        archived = await stores.archived_banners.find()
        assert [a.original_id for a in archived] == [expired.id]
        assert archived[0].archive_reason == "Expired"

        entries = await SqliteActivityLog(db).recent()
        assert [(e.action, e.content_id) for e in entries] == [("Expired Banner", expired.id)]

    @pytest.mark.asyncio
    async def test_scanner_disabled(self, temp_dir):
        config = ServerConfig(
            storage=StorageConfig(data_dir=temp_dir),
            expiry=ExpiryConfig(enabled=False),
            http=HttpConfig(host="127.0.0.1", port=0),
        )
        server = Server(config)

        task = asyncio.create_task(server.start())
        await wait_until(lambda: server.http_runner is not None)
        server.request_shutdown()
        await asyncio.wait_for(task, timeout=5.0)
        await server.stop()

        assert server.scanner is None
        assert server.http_runner is None


class TestSqlitePageArchive:
    """Page delete-to-archive over SQLite stores."""

    @pytest.mark.asyncio
    async def test_page_archived_with_defaults(self, temp_dir):
        db = SqliteDatabase(temp_dir)
        await db.initialize()
        stores = create_sqlite_stores(db)
        activity = SqliteActivityLog(db)
        handler = DeleteToArchiveHandler(
            stores.pages,
            ArchivalTransfer(stores.pages, stores.archived_pages, activity, PAGE_KIND),
        )
        page = await stores.pages.insert(Page(title="About", slug="about", tags=["a", "b"]))

        result = await handler.archive(page.id, actor="Admin")

        assert result.fully_removed
        assert await stores.pages.count() == 0
        archived = (await stores.archived_pages.find())[0]
        assert archived.original_id == page.id
        assert archived.tags == ("a", "b")
        assert archived.description == ""
        assert archived.publish_date == archived.archived_at


class TestSweepTool:
    """Tests for the cms-sweep tool."""

    @pytest.mark.asyncio
    async def test_dry_run_writes_nothing(self, temp_dir, seeded):
        _, stores, expired = seeded

        summary = await run_sweep(temp_dir, dry_run=True)

        assert summary["dry_run"] is True
        assert summary["found"] == 1
        assert summary["banners"][0]["id"] == expired.id
        assert await stores.banners.count() == 3
        assert await stores.archived_banners.count() == 0

    @pytest.mark.asyncio
    async def test_sweep_archives_expired(self, temp_dir, seeded):
        _, stores, expired = seeded

        summary = await run_sweep(temp_dir)

        assert summary["dry_run"] is False
        assert summary["found"] == 1
        assert summary["transfer"]["archived"] == 1
        assert summary["transfer"]["removed"] == 1
        assert await stores.banners.count() == 2
        assert await stores.archived_banners.count() == 1

    def test_cli_prints_summary(self, temp_dir, monkeypatch, capsys):
        monkeypatch.setattr(sys, "argv", ["cms-sweep", "--data-dir", temp_dir, "--dry-run"])

        sweep_tool.main()

        summary = json.loads(capsys.readouterr().out)
        assert summary == {"dry_run": True, "found": 0, "banners": []}


class TestSetupLogging:
    """Tests for setup_logging()."""

    @pytest.fixture(autouse=True)
    def restore_root_logger(self):
        root = logging.getLogger()
        handlers, level = list(root.handlers), root.level
        yield
        root.handlers = handlers
        root.setLevel(level)

    def test_json_format(self):
        setup_logging(ServerConfig(observability=ObservabilityConfig(log_format="json")))

        root = logging.getLogger()
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, json_log_formatter.JSONFormatter)

    def test_text_format_and_level(self):
        setup_logging(
            ServerConfig(observability=ObservabilityConfig(log_level="debug", log_format="text"))
        )

        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert not isinstance(root.handlers[0].formatter, json_log_formatter.JSONFormatter)
