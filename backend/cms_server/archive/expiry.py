"""
Banner expiry scanner.

The ExpiryScanner runs as a background loop that:
1. Queries live banners whose expire_at is set and has passed
2. Archives the whole batch with reason "Expired"
3. Sleeps for a fixed interval and repeats until stopped

States:
    IDLE -> SCANNING -> IDLE ... -> STOPPED

Invariants:
    - A failed sweep never stops the loop; the same banners are retried
      on the next tick
    - stop() takes effect after at most one in-flight sweep or one wait
    - A sweep in progress is never aborted mid-transfer by stop()

How to change safely:
    - Keep the delay fixed; the sweep is cheap when nothing has expired
    - Do not archive pages from here without adding a per-record claim
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

from ..models import ArchiveReason, now_ms
from ..store.base import Condition, RecordStore
from .transfer import ArchivalTransfer, TransferResult

logger = logging.getLogger(__name__)


class ScannerState(Enum):
    """Lifecycle state of the scanner."""

    IDLE = "idle"
    SCANNING = "scanning"
    STOPPED = "stopped"


@dataclass
class SweepResult:
    """Outcome of one sweep.

    Attributes:
        started_at: When the sweep began (Unix ms)
        found: Expired banners discovered
        transfer: Transfer outcome, when anything was found
        error: Error message when the sweep failed
    """

    started_at: int
    found: int = 0
    transfer: Optional[TransferResult] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict[str, Any]:
        return {
            "started_at": self.started_at,
            "found": self.found,
            "transfer": self.transfer.to_dict() if self.transfer else None,
            "error": self.error,
        }


class ExpiryScanner:
    """Archives expired banners on a fixed interval.

    Attributes:
        banner_store: Live banner collection
        transfer: Banner archival transfer
        interval_seconds: Delay between sweeps

    Example:
        >>> scanner = ExpiryScanner(stores.banners, banner_transfer, interval_seconds=3600)
        >>> task = asyncio.create_task(scanner.start())
        >>> await scanner.stop()
        >>> await task
    """

    def __init__(
        self,
        banner_store: RecordStore,
        transfer: ArchivalTransfer,
        interval_seconds: float = 3600,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.banner_store = banner_store
        self.transfer = transfer
        self.interval_seconds = interval_seconds
        self._clock = clock

        self._state = ScannerState.IDLE
        self._stop_event = asyncio.Event()
        self._running = False
        self._sweep_count = 0
        self._failure_count = 0
        self._archived_total = 0
        self._removed_total = 0
        self._last_result: Optional[SweepResult] = None

    @property
    def state(self) -> ScannerState:
        return self._state

    @property
    def last_result(self) -> Optional[SweepResult]:
        return self._last_result

    async def start(self) -> None:
        """Run the sweep loop until stop() is called or the task is cancelled."""
        if self._running:
            logger.warning("Expiry scanner already running")
            return

        self._running = True
        self._state = ScannerState.IDLE
        logger.info(
            "Expiry scanner started",
            extra={"interval_seconds": self.interval_seconds},
        )

        try:
            while not self._stop_event.is_set():
                self._record(await self._safe_sweep())
                if await self._wait_interval():
                    break
        except asyncio.CancelledError:
            logger.info("Expiry scanner cancelled")
        finally:
            self._running = False
            self._state = ScannerState.STOPPED
            logger.info("Expiry scanner stopped")

    async def stop(self) -> None:
        """Ask the loop to exit after the current sweep or wait."""
        logger.info("Stopping expiry scanner")
        self._stop_event.set()

    async def sweep(self, started_at: Optional[int] = None) -> SweepResult:
        """Run one sweep.

        Args:
            started_at: Sweep start time (Unix ms); read from the clock if omitted

        Returns:
            SweepResult for this sweep

        Raises:
            ArchiveWriteError: If the archive insert failed
            StoreError: If the expired-banner query failed
        """
        now = started_at if started_at is not None else self._clock()
        result = SweepResult(started_at=now)
        expired = await self.banner_store.find(
            [
                Condition("expire_at", "not_null"),
                Condition("expire_at", "lte", now),
            ]
        )
        result.found = len(expired)
        logger.info(f"Found {len(expired)} expired banners")

        if expired:
            result.transfer = await self.transfer.transfer(expired, ArchiveReason.EXPIRED)
        return result

    async def _safe_sweep(self) -> SweepResult:
        self._state = ScannerState.SCANNING
        started_at = self._clock()
        try:
            return await self.sweep(started_at)
        except Exception as e:
            logger.error(f"Error processing expired banners: {e}", exc_info=True)
            return SweepResult(started_at=started_at, error=str(e))
        finally:
            if self._state is ScannerState.SCANNING:
                self._state = ScannerState.IDLE

    async def _wait_interval(self) -> bool:
        """Sleep for the interval. Returns True if stop was requested."""
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval_seconds)
            return True
        except asyncio.TimeoutError:
            return False

    def _record(self, result: SweepResult) -> None:
        self._sweep_count += 1
        self._last_result = result
        if not result.ok:
            self._failure_count += 1
        elif result.transfer is not None:
            self._archived_total += result.transfer.archived
            self._removed_total += result.transfer.removed

    def stats(self) -> dict[str, Any]:
        """Get scanner statistics."""
        return {
            "state": self._state.value,
            "running": self._running,
            "interval_seconds": self.interval_seconds,
            "sweeps": self._sweep_count,
            "failures": self._failure_count,
            "archived_total": self._archived_total,
            "removed_total": self._removed_total,
            "last_result": self._last_result.to_dict() if self._last_result else None,
        }
