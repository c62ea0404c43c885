"""
SQLite-backed live and archive stores for the CMS server.

All collections live in one SQLite file. Each collection is a table holding
the record as a JSON payload keyed by id; find() conditions are compiled to
json_extract() predicates.

Invariants:
    - One SQLite file per server data directory
    - insert_many() and delete_many() each run in one transaction
    - Ids are UUID4 strings assigned at insert time
    - sqlite3 errors surface as StoreError

How to change safely:
    - Adding a collection means adding it to COLLECTIONS
    - Payload changes are additive (from_dict ignores unknown keys)
    - Use explicit transactions for every multi-row write

Table schema (one per collection):
    <collection>:
        - id TEXT PRIMARY KEY
        - payload_json TEXT (record.to_dict())
        - created_at INTEGER (Unix ms)
"""

from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
import uuid
import dataclasses
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any, List, Optional, Sequence

from ..errors import StoreError
from ..models import now_ms
from .base import (
    ACTIVITY_LOGS,
    ARCHIVED_BANNERS,
    ARCHIVED_PAGES,
    BANNERS,
    PAGES,
    Condition,
    validate_conditions,
)

logger = logging.getLogger(__name__)

COLLECTIONS = (BANNERS, PAGES, ARCHIVED_BANNERS, ARCHIVED_PAGES, ACTIVITY_LOGS)


class SqliteDatabase:
    """Shared SQLite database file for all CMS collections.

    Thread safety:
        Each operation opens its own connection. SQLite handles
        concurrent access via WAL mode; an asyncio lock serializes
        writers within the process.

    Example:
        >>> db = SqliteDatabase("/var/lib/cms")
        >>> await db.initialize()
        >>> pages = SqliteRecordStore(db, "pages", Page)
    """

    SCHEMA_VERSION = 1

    def __init__(
        self,
        data_dir: str,
        filename: str = "cms.db",
        wal_mode: bool = True,
        busy_timeout_ms: int = 5000,
    ) -> None:
        """Initialize the database handle.

        Args:
            data_dir: Directory holding the database file
            filename: Database file name
            wal_mode: Enable SQLite WAL mode
            busy_timeout_ms: SQLite busy timeout
        """
        self.data_dir = Path(data_dir)
        self.path = self.data_dir / filename
        self.wal_mode = wal_mode
        self.busy_timeout_ms = busy_timeout_ms
        self.lock = asyncio.Lock()

    @contextmanager
    def connect(self) -> Iterator[sqlite3.Connection]:
        """Open a configured connection.

        Yields:
            SQLite connection in autocommit mode (explicit transactions)
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(
            str(self.path),
            timeout=self.busy_timeout_ms / 1000.0,
            isolation_level=None,
        )
        conn.row_factory = sqlite3.Row
        try:
            conn.execute(f"PRAGMA busy_timeout = {self.busy_timeout_ms}")
            if self.wal_mode:
                conn.execute("PRAGMA journal_mode = WAL")
            conn.execute("PRAGMA synchronous = NORMAL")
            yield conn
        finally:
            conn.close()

    def _create_schema(self, conn: sqlite3.Connection) -> None:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY,
                applied_at INTEGER NOT NULL
            )
            """
        )
        for name in COLLECTIONS:
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {name} (
                    id TEXT PRIMARY KEY,
                    payload_json TEXT NOT NULL DEFAULT '{{}}',
                    created_at INTEGER NOT NULL
                )
                """
            )
            conn.execute(
                f"CREATE INDEX IF NOT EXISTS idx_{name}_created ON {name}(created_at)"
            )
        conn.execute(
            "INSERT OR IGNORE INTO schema_version (version, applied_at) VALUES (?, ?)",
            (self.SCHEMA_VERSION, now_ms()),
        )

    async def initialize(self) -> None:
        """Create the database file and every collection table."""
        async with self.lock:
            try:
                with self.connect() as conn:
                    self._create_schema(conn)
            except sqlite3.Error as e:
                raise StoreError(f"Failed to initialize database: {e}") from e
        logger.info(f"Initialized CMS database: {self.path}")

    async def ping(self) -> bool:
        """Check the database answers a trivial query."""
        try:
            with self.connect() as conn:
                conn.execute("SELECT 1").fetchone()
            return True
        except sqlite3.Error as e:
            logger.warning(f"Database ping failed: {e}")
            return False


def _compile(conditions: Sequence[Condition]) -> tuple[str, list[Any]]:
    """Build a WHERE clause from validated conditions."""
    clauses: list[str] = []
    params: list[Any] = []
    for cond in conditions:
        column = f"json_extract(payload_json, '$.{cond.field}')"
        if cond.op == "not_null":
            clauses.append(f"{column} IS NOT NULL")
        elif cond.op == "eq" and cond.value is None:
            clauses.append(f"{column} IS NULL")
        elif cond.op == "eq":
            clauses.append(f"{column} = ?")
            params.append(cond.value)
        else:
            clauses.append(f"{column} <= ?")
            params.append(cond.value)
    where = " AND ".join(clauses) if clauses else "1 = 1"
    return where, params


class _SqliteCollection:
    """Shared plumbing for one collection table."""

    def __init__(self, db: SqliteDatabase, collection: str, record_type: type) -> None:
        if collection not in COLLECTIONS:
            raise ValueError(f"Unknown collection '{collection}'")
        self.db = db
        self.collection = collection
        self.record_type = record_type

    def _decode(self, row: sqlite3.Row) -> Any:
        data = json.loads(row["payload_json"])
        data["id"] = row["id"]
        return self.record_type.from_dict(data)

    @staticmethod
    def _encode(record: Any) -> str:
        data = record.to_dict()
        data.pop("id", None)
        return json.dumps(data)

    async def find(self, conditions: Sequence[Condition] = ()) -> List[Any]:
        checked = validate_conditions(self.record_type, conditions)
        where, params = _compile(checked)
        try:
            with self.db.connect() as conn:
                rows = conn.execute(
                    f"SELECT id, payload_json FROM {self.collection} "
                    f"WHERE {where} ORDER BY created_at, rowid",
                    params,
                ).fetchall()
        except sqlite3.Error as e:
            raise StoreError(f"find failed: {e}", collection=self.collection) from e
        return [self._decode(row) for row in rows]

    async def count(self) -> int:
        try:
            with self.db.connect() as conn:
                row = conn.execute(f"SELECT COUNT(*) FROM {self.collection}").fetchone()
        except sqlite3.Error as e:
            raise StoreError(f"count failed: {e}", collection=self.collection) from e
        return int(row[0])

    async def insert(self, record: Any) -> Any:
        stored = dataclasses.replace(record, id=str(uuid.uuid4()))
        async with self.db.lock:
            try:
                with self.db.connect() as conn:
                    conn.execute(
                        f"INSERT INTO {self.collection} (id, payload_json, created_at) "
                        "VALUES (?, ?, ?)",
                        (stored.id, self._encode(stored), now_ms()),
                    )
            except sqlite3.Error as e:
                raise StoreError(f"insert failed: {e}", collection=self.collection) from e
        return stored


class SqliteRecordStore(_SqliteCollection):
    """Live collection backed by SQLite."""

    async def get(self, record_id: str) -> Optional[Any]:
        try:
            with self.db.connect() as conn:
                row = conn.execute(
                    f"SELECT id, payload_json FROM {self.collection} WHERE id = ?",
                    (record_id,),
                ).fetchone()
        except sqlite3.Error as e:
            raise StoreError(f"get failed: {e}", collection=self.collection) from e
        return self._decode(row) if row else None

    async def replace(self, record_id: str, record: Any) -> bool:
        stored = dataclasses.replace(record, id=record_id)
        async with self.db.lock:
            try:
                with self.db.connect() as conn:
                    cursor = conn.execute(
                        f"UPDATE {self.collection} SET payload_json = ? WHERE id = ?",
                        (self._encode(stored), record_id),
                    )
            except sqlite3.Error as e:
                raise StoreError(f"replace failed: {e}", collection=self.collection) from e
        return cursor.rowcount > 0

    async def delete_many(self, record_ids: Sequence[str]) -> int:
        ids = list(dict.fromkeys(record_ids))
        if not ids:
            return 0
        placeholders = ", ".join("?" for _ in ids)
        async with self.db.lock:
            try:
                with self.db.connect() as conn:
                    conn.execute("BEGIN IMMEDIATE")
                    try:
                        cursor = conn.execute(
                            f"DELETE FROM {self.collection} WHERE id IN ({placeholders})",
                            ids,
                        )
                        conn.execute("COMMIT")
                    except Exception:
                        conn.execute("ROLLBACK")
                        raise
            except sqlite3.Error as e:
                raise StoreError(f"delete_many failed: {e}", collection=self.collection) from e
        return cursor.rowcount


class SqliteArchiveStore(_SqliteCollection):
    """Archive collection backed by SQLite. Append-only."""

    async def insert_many(self, records: Sequence[Any]) -> List[Any]:
        stored = [dataclasses.replace(r, id=str(uuid.uuid4())) for r in records]
        created_at = now_ms()
        async with self.db.lock:
            try:
                with self.db.connect() as conn:
                    conn.execute("BEGIN IMMEDIATE")
                    try:
                        conn.executemany(
                            f"INSERT INTO {self.collection} (id, payload_json, created_at) "
                            "VALUES (?, ?, ?)",
                            [(r.id, self._encode(r), created_at) for r in stored],
                        )
                        conn.execute("COMMIT")
                    except Exception:
                        conn.execute("ROLLBACK")
                        raise
            except sqlite3.Error as e:
                raise StoreError(f"insert_many failed: {e}", collection=self.collection) from e
        return stored

    async def latest(self, limit: int) -> List[Any]:
        """Most recently inserted records, newest first.

        Raises:
            ValueError: If limit is negative
        """
        if limit < 0:
            raise ValueError("limit must not be negative")
        try:
            with self.db.connect() as conn:
                rows = conn.execute(
                    f"SELECT id, payload_json FROM {self.collection} "
                    "ORDER BY created_at DESC, rowid DESC LIMIT ?",
                    (limit,),
                ).fetchall()
        except sqlite3.Error as e:
            raise StoreError(f"latest failed: {e}", collection=self.collection) from e
        return [self._decode(row) for row in rows]
