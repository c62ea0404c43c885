"""
Unit tests for the banner ExpiryScanner.

Tests cover:
- Expired banner selection (set and passed; never unset or future)
- Sweep results and statistics
- Loop survival across failed sweeps
- Prompt stop and final state
"""

import asyncio
import itertools

import pytest

from backend.cms_server.activity import InMemoryActivityLog
from backend.cms_server.archive import (
    BANNER_KIND,
    ArchivalTransfer,
    ExpiryScanner,
    ScannerState,
)
from backend.cms_server.errors import ArchiveWriteError, StoreError
from backend.cms_server.models import Banner
from backend.cms_server.store import create_memory_stores

NOW = 1_700_000_000_000


@pytest.fixture
def stores():
    return create_memory_stores()


@pytest.fixture
def activity():
    return InMemoryActivityLog()


def make_scanner(stores, activity, interval_seconds=3600):
    transfer = ArchivalTransfer(
        stores.banners, stores.archived_banners, activity, BANNER_KIND, clock=lambda: NOW
    )
    return ExpiryScanner(
        stores.banners, transfer, interval_seconds=interval_seconds, clock=lambda: NOW
    )


async def wait_until(predicate, timeout=2.0):
    """Poll until predicate() is true or fail."""
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.01)


class TestSweep:
    """Tests for a single sweep."""

    @pytest.mark.asyncio
    async def test_expired_banner_archived(self, stores, activity):
        stores.banners.put(Banner(title="Spring Sale", expire_at=NOW - 1, id="b1"))
        scanner = make_scanner(stores, activity)

        result = await scanner.sweep()

        assert result.ok
        assert result.found == 1
        assert result.transfer.archived == 1
        assert stores.banners.ids() == []
        archived = stores.archived_banners.all()
        assert archived[0].original_id == "b1"
        assert archived[0].archive_reason == "Expired"
        assert activity.entries[0].action == "Expired Banner"
        assert activity.entries[0].user_name == "System"

    @pytest.mark.asyncio
    async def test_expiry_boundary_is_inclusive(self, stores, activity):
        stores.banners.put(Banner(title="Edge", expire_at=NOW, id="b1"))
        scanner = make_scanner(stores, activity)

        result = await scanner.sweep()

        assert result.found == 1

    @pytest.mark.asyncio
    async def test_future_and_unset_untouched(self, stores, activity):
        stores.banners.put(Banner(title="Later", expire_at=NOW + 60_000, id="b1"))
        stores.banners.put(Banner(title="Forever", id="b2"))
        scanner = make_scanner(stores, activity)

        result = await scanner.sweep()

        assert result.found == 0
        assert result.transfer is None
        assert sorted(stores.banners.ids()) == ["b1", "b2"]
        assert stores.archived_banners.call_count("insert_many") == 0
        assert activity.calls == 0

    @pytest.mark.asyncio
    async def test_archive_failure_propagates_from_sweep(self, stores, activity):
        stores.banners.put(Banner(title="Sale", expire_at=NOW - 1, id="b1"))
        stores.archived_banners.fail_next_insert_many()
        scanner = make_scanner(stores, activity)

        with pytest.raises(ArchiveWriteError):
            await scanner.sweep()
        assert stores.banners.ids() == ["b1"]

    @pytest.mark.asyncio
    async def test_query_failure_propagates_from_sweep(self, stores, activity):
        stores.banners.fail_next_find()
        scanner = make_scanner(stores, activity)

        with pytest.raises(StoreError):
            await scanner.sweep()


class TestScannerLoop:
    """Tests for the background loop."""

    @pytest.mark.asyncio
    async def test_loop_survives_failed_sweep(self, stores, activity):
        """A failed tick is logged and the next tick archives the banner."""
        stores.banners.put(Banner(title="Sale", expire_at=NOW - 1, id="b1"))
        stores.archived_banners.fail_next_insert_many()
        scanner = make_scanner(stores, activity, interval_seconds=0.01)

        task = asyncio.create_task(scanner.start())
        await wait_until(lambda: scanner.stats()["sweeps"] >= 2)
        await scanner.stop()
        await asyncio.wait_for(task, timeout=2.0)

        stats = scanner.stats()
        assert stats["failures"] == 1
        assert stats["archived_total"] == 1
        assert stats["removed_total"] == 1
        assert stores.banners.ids() == []
        assert len(stores.archived_banners.all()) == 1

    @pytest.mark.asyncio
    async def test_loop_survives_query_failure(self, stores, activity):
        stores.banners.fail_next_find()
        scanner = make_scanner(stores, activity, interval_seconds=0.01)

        task = asyncio.create_task(scanner.start())
        await wait_until(lambda: scanner.stats()["sweeps"] >= 2)
        await scanner.stop()
        await asyncio.wait_for(task, timeout=2.0)

        assert scanner.stats()["failures"] == 1
        assert scanner.last_result.ok

    @pytest.mark.asyncio
    async def test_failed_sweep_keeps_start_time(self, stores, activity):
        """started_at is the sweep's start, not the time it failed."""
        ticks = itertools.count(100, 100)
        transfer = ArchivalTransfer(
            stores.banners, stores.archived_banners, activity, BANNER_KIND
        )
        scanner = ExpiryScanner(
            stores.banners, transfer, interval_seconds=3600, clock=lambda: next(ticks)
        )
        stores.banners.fail_next_find()

        task = asyncio.create_task(scanner.start())
        await wait_until(lambda: scanner.stats()["sweeps"] == 1)
        await scanner.stop()
        await asyncio.wait_for(task, timeout=1.0)

        assert not scanner.last_result.ok
        assert scanner.last_result.started_at == 100

    @pytest.mark.asyncio
    async def test_archive_failure_traceback_logged_once(self, stores, activity, caplog):
        stores.banners.put(Banner(title="Sale", expire_at=NOW - 1, id="b1"))
        stores.archived_banners.fail_next_insert_many()
        scanner = make_scanner(stores, activity)

        task = asyncio.create_task(scanner.start())
        await wait_until(lambda: scanner.stats()["sweeps"] == 1)
        await scanner.stop()
        await asyncio.wait_for(task, timeout=1.0)

        with_traceback = [r for r in caplog.records if r.exc_info]
        assert len(with_traceback) == 1
        assert with_traceback[0].name == "backend.cms_server.archive.expiry"

    @pytest.mark.asyncio
    async def test_stop_interrupts_wait(self, stores, activity):
        """stop() during a long interval ends the loop promptly."""
        scanner = make_scanner(stores, activity, interval_seconds=3600)

        task = asyncio.create_task(scanner.start())
        await wait_until(lambda: scanner.stats()["sweeps"] == 1)
        assert scanner.state is ScannerState.IDLE

        await scanner.stop()
        await asyncio.wait_for(task, timeout=1.0)

        assert scanner.state is ScannerState.STOPPED
        assert scanner.stats()["running"] is False
        assert scanner.stats()["sweeps"] == 1

    @pytest.mark.asyncio
    async def test_stop_before_start(self, stores, activity):
        scanner = make_scanner(stores, activity)

        await scanner.stop()
        await asyncio.wait_for(scanner.start(), timeout=1.0)

        assert scanner.state is ScannerState.STOPPED
        assert scanner.stats()["sweeps"] == 0

    @pytest.mark.asyncio
    async def test_cancel_marks_stopped(self, stores, activity):
        scanner = make_scanner(stores, activity, interval_seconds=3600)

        task = asyncio.create_task(scanner.start())
        await wait_until(lambda: scanner.stats()["sweeps"] == 1)
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)

        assert scanner.state is ScannerState.STOPPED

    @pytest.mark.asyncio
    async def test_stats_shape(self, stores, activity):
        scanner = make_scanner(stores, activity, interval_seconds=5)

        stats = scanner.stats()

        assert stats["state"] == "idle"
        assert stats["interval_seconds"] == 5
        assert stats["sweeps"] == 0
        assert stats["last_result"] is None
