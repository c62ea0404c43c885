"""
In-memory store implementations for testing.

This module provides dictionary-backed live and archive stores for:
- Unit tests
- Integration tests of the transfer and scanner
- Local development without a data directory

Invariants:
    - All data is lost on process exit
    - Same atomicity as the SQLite backend (batches apply fully or not at all)
    - Stored objects are copies; callers cannot mutate store contents

How to change safely:
    - This is test-only code, changes don't affect production
    - Keep interface compatible with RecordStore / ArchiveStore
    - Add failure-injection helpers here rather than patching in tests
"""

from __future__ import annotations

import asyncio
import copy
import dataclasses
import logging
import uuid
from typing import Dict, List, Optional, Sequence

from ..errors import StoreError
from .base import Condition, validate_conditions

logger = logging.getLogger(__name__)


class _FailureInjector:
    """One-shot or persistent failure switches per operation name."""

    def __init__(self) -> None:
        self._pending: Dict[str, int] = {}
        self.calls: Dict[str, int] = {}

    def arm(self, operation: str, times: int) -> None:
        self._pending[operation] = times

    def check(self, operation: str, collection: str) -> None:
        self.calls[operation] = self.calls.get(operation, 0) + 1
        remaining = self._pending.get(operation, 0)
        if remaining == 0:
            return
        if remaining > 0:
            self._pending[operation] = remaining - 1
        raise StoreError(f"Injected {operation} failure", collection=collection)


class InMemoryRecordStore:
    """In-memory implementation of RecordStore.

    Attributes:
        collection: Collection name
        record_type: Dataclass type of the stored records

    Thread safety:
        Uses an asyncio lock; safe to use from multiple coroutines.

    Example:
        >>> banners = InMemoryRecordStore("banners", Banner)
        >>> banner = await banners.insert(Banner(title="Sale"))
        >>> banners.fail_next_delete_many()
    """

    def __init__(self, collection: str, record_type: type) -> None:
        self.collection = collection
        self.record_type = record_type
        self._records: Dict[str, object] = {}
        self._lock = asyncio.Lock()
        self._failures = _FailureInjector()

    async def get(self, record_id: str) -> Optional[object]:
        self._failures.check("get", self.collection)
        record = self._records.get(record_id)
        return copy.deepcopy(record) if record is not None else None

    async def find(self, conditions: Sequence[Condition] = ()) -> List[object]:
        checked = validate_conditions(self.record_type, conditions)
        self._failures.check("find", self.collection)
        async with self._lock:
            return [
                copy.deepcopy(r)
                for r in self._records.values()
                if all(c.matches(r) for c in checked)
            ]

    async def insert(self, record: object) -> object:
        self._failures.check("insert", self.collection)
        stored = dataclasses.replace(record, id=str(uuid.uuid4()))
        async with self._lock:
            self._records[stored.id] = copy.deepcopy(stored)
        return stored

    async def replace(self, record_id: str, record: object) -> bool:
        self._failures.check("replace", self.collection)
        async with self._lock:
            if record_id not in self._records:
                return False
            self._records[record_id] = copy.deepcopy(dataclasses.replace(record, id=record_id))
            return True

    async def delete_many(self, record_ids: Sequence[str]) -> int:
        self._failures.check("delete_many", self.collection)
        async with self._lock:
            deleted = 0
            for record_id in set(record_ids):
                if self._records.pop(record_id, None) is not None:
                    deleted += 1
            return deleted

    async def count(self) -> int:
        return len(self._records)

    # =========================================================================
    # Testing helpers
    # =========================================================================

    def put(self, record: object) -> object:
        """Store a record with its own id, bypassing id assignment."""
        if record.id is None:
            record = dataclasses.replace(record, id=str(uuid.uuid4()))
        self._records[record.id] = copy.deepcopy(record)
        return record

    def fail_next_find(self, times: int = 1) -> None:
        """Make the next `times` find() calls raise StoreError (-1 = always)."""
        self._failures.arm("find", times)

    def fail_next_delete_many(self, times: int = 1) -> None:
        """Make the next `times` delete_many() calls raise StoreError (-1 = always)."""
        self._failures.arm("delete_many", times)

    def call_count(self, operation: str) -> int:
        """How many times an operation was invoked."""
        return self._failures.calls.get(operation, 0)

    def ids(self) -> List[str]:
        return list(self._records)


class InMemoryArchiveStore:
    """In-memory implementation of ArchiveStore.

    Example:
        >>> archive = InMemoryArchiveStore("archived_banners", ArchivedBanner)
        >>> archive.fail_next_insert_many()
    """

    def __init__(self, collection: str, record_type: type) -> None:
        self.collection = collection
        self.record_type = record_type
        self._records: List[object] = []
        self._lock = asyncio.Lock()
        self._failures = _FailureInjector()

    async def insert_many(self, records: Sequence[object]) -> List[object]:
        self._failures.check("insert_many", self.collection)
        stored = [dataclasses.replace(r, id=str(uuid.uuid4())) for r in records]
        async with self._lock:
            self._records.extend(stored)
        return list(stored)

    async def insert(self, record: object) -> object:
        self._failures.check("insert", self.collection)
        stored = dataclasses.replace(record, id=str(uuid.uuid4()))
        async with self._lock:
            self._records.append(stored)
        return stored

    async def find(self, conditions: Sequence[Condition] = ()) -> List[object]:
        checked = validate_conditions(self.record_type, conditions)
        self._failures.check("find", self.collection)
        return [r for r in self._records if all(c.matches(r) for c in checked)]

    async def count(self) -> int:
        return len(self._records)

    # =========================================================================
    # Testing helpers
    # =========================================================================

    def fail_next_insert_many(self, times: int = 1) -> None:
        """Make the next `times` insert_many() calls raise StoreError (-1 = always)."""
        self._failures.arm("insert_many", times)

    def call_count(self, operation: str) -> int:
        return self._failures.calls.get(operation, 0)

    def all(self) -> List[object]:
        return list(self._records)
