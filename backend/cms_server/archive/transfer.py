"""
Archival transfer: move live records into the archive.

A transfer copies a batch of same-kind live records into the archive store
and then removes them from the live store. There is no transaction across
the two stores; the ordering below is what keeps the failure modes safe.

Protocol:
    1. Map every record to its archived form (one timestamp per batch)
    2. insert_many() into the archive store
         failure -> ArchiveWriteError, nothing removed, nothing notified
    3. delete_many() on the live store (best-effort cleanup)
         failure -> logged; live copies remain and are archived again
                    on rediscovery, producing a duplicate archive entry
    4. One activity entry per record, inside notification_guard()

Invariants:
    - Step 2 always completes before step 3 starts
    - A returned TransferResult means the archive copy is durable
    - Notification failures never reach the caller

How to change safely:
    - Never move the live delete ahead of the archive insert
    - Archiving one kind from two triggers needs a per-record claim first
    - Keep both triggers on this single code path
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, List, Optional

from ..activity import STATUS_PARTIAL, STATUS_SUCCESS, ActivityNotifier, notification_guard
from ..errors import ArchiveWriteError, LiveDeleteError
from ..models import ArchivedRecord, ArchiveReason, Banner, LiveRecord, Page, now_ms
from ..store.base import ArchiveStore, RecordStore
from .mapper import to_archived

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ArchiveKind:
    """A record kind that can be archived.

    Attributes:
        name: Content type label used in activity entries ("banner")
        label: Display label used in action names ("Banner")
        record_type: Live record class
    """

    name: str
    label: str
    record_type: type

    def action(self, reason: ArchiveReason) -> str:
        """Activity action name, e.g. "Deleted Page"."""
        return f"{reason.value} {self.label}"


BANNER_KIND = ArchiveKind(name="banner", label="Banner", record_type=Banner)
PAGE_KIND = ArchiveKind(name="page", label="Page", record_type=Page)


@dataclass
class TransferResult:
    """Outcome of one transfer.

    Attributes:
        kind: Content type label
        reason: Archive reason tag
        archived: Records written to the archive store
        removed: Records deleted from the live store
        archived_records: The stored archive entries (with archive ids)
        delete_error: Live delete failure, if cleanup failed
        notify_failures: Activity entries that could not be recorded
    """

    kind: str
    reason: str
    archived: int = 0
    removed: int = 0
    archived_records: List[ArchivedRecord] = field(default_factory=list)
    delete_error: Optional[LiveDeleteError] = None
    notify_failures: int = 0

    @property
    def committed(self) -> bool:
        """Archive copies are durable. True for every returned result."""
        return self.archived > 0

    @property
    def fully_removed(self) -> bool:
        """Every archived record was also removed from the live store."""
        return self.delete_error is None and self.removed == self.archived

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "reason": self.reason,
            "archived": self.archived,
            "removed": self.removed,
            "archived_ids": [r.id for r in self.archived_records],
            "delete_error": self.delete_error.message if self.delete_error else None,
            "notify_failures": self.notify_failures,
        }


class ArchivalTransfer:
    """Moves batches of one record kind from a live store to an archive store.

    Attributes:
        live_store: Live collection records are removed from
        archive_store: Archive collection records are written to
        notifier: Activity sink
        kind: Record kind this transfer handles

    Example:
        >>> transfer = ArchivalTransfer(stores.pages, stores.archived_pages, activity, PAGE_KIND)
        >>> result = await transfer.transfer([page], ArchiveReason.DELETED, actor="Admin")
        >>> result.archived, result.removed
        (1, 1)
    """

    def __init__(
        self,
        live_store: RecordStore,
        archive_store: ArchiveStore,
        notifier: ActivityNotifier,
        kind: ArchiveKind,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.live_store = live_store
        self.archive_store = archive_store
        self.notifier = notifier
        self.kind = kind
        self._clock = clock

    async def transfer(
        self,
        records: Iterable[LiveRecord],
        reason: ArchiveReason,
        actor: str = "System",
    ) -> TransferResult:
        """Archive a batch and remove it from the live store.

        Args:
            records: Non-empty batch of live records of this transfer's kind
            reason: Archive reason recorded on every archived entry
            actor: Who initiated the transfer (for the activity log)

        Returns:
            TransferResult; `removed` may be lower than `archived`

        Raises:
            ValueError: If the batch is empty, mixed, or has unsaved records
            ArchiveWriteError: If the archive insert failed
        """
        batch = self._check_batch(records)
        record_ids = [r.id for r in batch]
        archived_at = self._clock()

        mapped = [to_archived(r, reason, archived_at) for r in batch]

        try:
            stored = await self.archive_store.insert_many(mapped)
        except Exception as e:
            logger.error(
                f"Archive insert failed for {len(batch)} {self.kind.name}(s): {e}",
                extra={"kind": self.kind.name, "reason": reason.value},
            )
            raise ArchiveWriteError(
                f"Failed to archive {len(batch)} {self.kind.name}(s): {e}",
                kind=self.kind.name,
                record_ids=record_ids,
            ) from e

        result = TransferResult(
            kind=self.kind.name,
            reason=reason.value,
            archived=len(stored),
            archived_records=list(stored),
        )

        try:
            result.removed = await self.live_store.delete_many(record_ids)
        except Exception as e:
            result.delete_error = LiveDeleteError(
                f"Archived but failed to remove from live store: {e}",
                kind=self.kind.name,
                record_ids=record_ids,
            )
            logger.warning(
                result.delete_error.message,
                exc_info=True,
                extra={"kind": self.kind.name, "record_ids": record_ids},
            )

        status = STATUS_SUCCESS if result.delete_error is None else STATUS_PARTIAL
        action = self.kind.action(reason)
        for record in batch:
            async with notification_guard(action, record.id) as outcome:
                await self.notifier.log(
                    user_name=actor,
                    action=action,
                    content_type=self.kind.name,
                    content_title=record.title,
                    content_id=record.id,
                    status=status,
                )
            if outcome.failed:
                result.notify_failures += 1

        logger.info(
            f"Moved {result.archived} {self.kind.name}(s) to archive. "
            f"Deleted: {result.removed}",
            extra={
                "kind": self.kind.name,
                "reason": reason.value,
                "archived": result.archived,
                "removed": result.removed,
            },
        )
        return result

    def _check_batch(self, records: Iterable[LiveRecord]) -> List[LiveRecord]:
        batch = list(records)
        if not batch:
            raise ValueError("Transfer requires at least one record")
        for record in batch:
            if not isinstance(record, self.kind.record_type):
                raise ValueError(
                    f"Expected {self.kind.record_type.__name__}, got {type(record).__name__}"
                )
            if record.id is None:
                raise ValueError("Cannot archive a record that was never stored")
        return batch
