"""
Base protocols and types for the record and archive stores.

This module defines the store capabilities the archival core depends on,
along with the backend-neutral Condition predicate used by find().

Invariants:
    - Live ids are assigned by insert() and never changed by replace()
    - delete_many() removes only the given ids and returns how many existed
    - insert_many() is atomic: either every record is stored or none is
    - Archive stores expose no update or delete

How to change safely:
    - Protocol changes require updating the memory and sqlite backends
    - New Condition ops must be supported by both backends
    - Keep error types wrapped in StoreError
"""

from __future__ import annotations

from abc import abstractmethod
from dataclasses import dataclass, fields
from typing import (
    Any,
    Iterable,
    List,
    Optional,
    Protocol,
    Sequence,
    TypeVar,
    runtime_checkable,
)
import logging

from ..errors import StoreError

logger = logging.getLogger(__name__)

T = TypeVar("T")

CONDITION_OPS = ("eq", "lte", "not_null")

# Collection names shared by every backend
BANNERS = "banners"
PAGES = "pages"
ARCHIVED_BANNERS = "archived_banners"
ARCHIVED_PAGES = "archived_pages"
ACTIVITY_LOGS = "activity_logs"


@dataclass(frozen=True)
class Condition:
    """A single predicate on a record field.

    Conditions passed together to find() are ANDed.

    Attributes:
        field: Record attribute name
        op: One of "eq", "lte", "not_null"
        value: Comparison value (ignored for "not_null")

    Example:
        >>> expired = [
        ...     Condition("expire_at", "not_null"),
        ...     Condition("expire_at", "lte", now),
        ... ]
        >>> banners = await store.find(expired)
    """

    field: str
    op: str
    value: Any = None

    def __post_init__(self) -> None:
        if self.op not in CONDITION_OPS:
            raise ValueError(f"Unsupported condition op '{self.op}'")

    def matches(self, record: Any) -> bool:
        """Evaluate this condition against a record object."""
        actual = getattr(record, self.field)
        if self.op == "not_null":
            return actual is not None
        if self.op == "eq":
            return actual == self.value
        # lte: a missing value never satisfies an ordering comparison
        return actual is not None and actual <= self.value


def validate_conditions(record_type: type, conditions: Iterable[Condition]) -> List[Condition]:
    """Check that every condition names a real field of record_type.

    Raises:
        ValueError: If a field is unknown
    """
    names = {f.name for f in fields(record_type)}
    checked = list(conditions)
    for cond in checked:
        if cond.field not in names:
            raise ValueError(
                f"Unknown field '{cond.field}' for {record_type.__name__}"
            )
    return checked


@runtime_checkable
class RecordStore(Protocol[T]):
    """Protocol for a live collection of one record kind.

    Consistency contract:
        - Single-record operations are atomic
        - delete_many() is atomic across the given id set
        - No multi-collection transactions are offered

    Example:
        >>> page = await pages.insert(Page(title="About", slug="about"))
        >>> await pages.get(page.id)
    """

    collection: str
    record_type: type

    @abstractmethod
    async def get(self, record_id: str) -> Optional[T]:
        """Point lookup by id. Returns None when absent."""
        ...

    @abstractmethod
    async def find(self, conditions: Sequence[Condition] = ()) -> List[T]:
        """Return all records matching every condition.

        Raises:
            StoreError: If the scan fails
        """
        ...

    @abstractmethod
    async def insert(self, record: T) -> T:
        """Insert a record, assigning a fresh id.

        Returns:
            The stored record with its id set
        """
        ...

    @abstractmethod
    async def replace(self, record_id: str, record: T) -> bool:
        """Replace the stored record; the id is kept. Returns False if absent."""
        ...

    @abstractmethod
    async def delete_many(self, record_ids: Sequence[str]) -> int:
        """Delete every record in the id set.

        Returns:
            Number of records actually deleted

        Raises:
            StoreError: If the delete fails (nothing is deleted)
        """
        ...

    @abstractmethod
    async def count(self) -> int:
        """Number of records in the collection."""
        ...


@runtime_checkable
class ArchiveStore(Protocol[T]):
    """Protocol for an append-mostly archive collection.

    Durability contract:
        - insert_many() returns only after every record is stored
        - A failed insert_many() stores nothing
    """

    collection: str
    record_type: type

    @abstractmethod
    async def insert_many(self, records: Sequence[T]) -> List[T]:
        """Insert a batch, assigning a fresh archive id to each.

        Raises:
            StoreError: If the batch could not be stored
        """
        ...

    @abstractmethod
    async def insert(self, record: T) -> T:
        """Insert a single archived record."""
        ...

    @abstractmethod
    async def find(self, conditions: Sequence[Condition] = ()) -> List[T]:
        """Return archived records matching every condition."""
        ...

    @abstractmethod
    async def count(self) -> int:
        """Number of archived records."""
        ...


__all__ = [
    "ACTIVITY_LOGS",
    "ARCHIVED_BANNERS",
    "ARCHIVED_PAGES",
    "ArchiveStore",
    "BANNERS",
    "CONDITION_OPS",
    "Condition",
    "PAGES",
    "RecordStore",
    "StoreError",
    "validate_conditions",
]
