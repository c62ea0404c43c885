"""
Store abstraction for the CMS server.

This module provides the live and archive collections supporting:
- SQLite (production, one file per data directory)
- In-memory (for testing)

Invariants:
    - Live and archive collections are separate stores with no shared transaction
    - Batch inserts and multi-id deletes are atomic within one store
    - Failed operations raise StoreError

How to change safely:
    - New backends must implement RecordStore and ArchiveStore
    - Keep the in-memory backend behaviourally identical for tests
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from ..models import ArchivedBanner, ArchivedPage, Banner, Page
from .base import (
    ACTIVITY_LOGS,
    ARCHIVED_BANNERS,
    ARCHIVED_PAGES,
    BANNERS,
    PAGES,
    ArchiveStore,
    Condition,
    RecordStore,
    StoreError,
)
from .memory import InMemoryArchiveStore, InMemoryRecordStore
from .sqlite import SqliteArchiveStore, SqliteDatabase, SqliteRecordStore

if TYPE_CHECKING:
    from ..config import StorageConfig


@dataclass
class CmsStores:
    """The four collections the archival core works with.

    Attributes:
        banners: Live banners
        pages: Live pages
        archived_banners: Archive of banners
        archived_pages: Archive of pages
    """

    banners: RecordStore
    pages: RecordStore
    archived_banners: ArchiveStore
    archived_pages: ArchiveStore


def create_sqlite_stores(db: SqliteDatabase) -> CmsStores:
    """Build SQLite-backed stores over one database."""
    return CmsStores(
        banners=SqliteRecordStore(db, BANNERS, Banner),
        pages=SqliteRecordStore(db, PAGES, Page),
        archived_banners=SqliteArchiveStore(db, ARCHIVED_BANNERS, ArchivedBanner),
        archived_pages=SqliteArchiveStore(db, ARCHIVED_PAGES, ArchivedPage),
    )


def create_memory_stores() -> CmsStores:
    """Build in-memory stores."""
    return CmsStores(
        banners=InMemoryRecordStore(BANNERS, Banner),
        pages=InMemoryRecordStore(PAGES, Page),
        archived_banners=InMemoryArchiveStore(ARCHIVED_BANNERS, ArchivedBanner),
        archived_pages=InMemoryArchiveStore(ARCHIVED_PAGES, ArchivedPage),
    )


def open_database(config: "StorageConfig") -> SqliteDatabase:
    """Create a database handle from storage configuration."""
    return SqliteDatabase(
        data_dir=config.data_dir,
        filename=config.db_filename,
        wal_mode=config.wal_mode,
        busy_timeout_ms=config.busy_timeout_ms,
    )


__all__ = [
    # Protocols and types
    "RecordStore",
    "ArchiveStore",
    "Condition",
    "StoreError",
    "CmsStores",
    # Collection names
    "ACTIVITY_LOGS",
    "ARCHIVED_BANNERS",
    "ARCHIVED_PAGES",
    "BANNERS",
    "PAGES",
    # Factories
    "create_memory_stores",
    "create_sqlite_stores",
    "open_database",
    # Implementations
    "InMemoryArchiveStore",
    "InMemoryRecordStore",
    "SqliteArchiveStore",
    "SqliteDatabase",
    "SqliteRecordStore",
]
