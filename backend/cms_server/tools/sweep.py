"""
Expiry sweep CLI tool for the CMS server.

Runs a single banner expiry sweep against a data directory, outside the
server's background loop. Useful after downtime, or to check what the next
sweep would archive.

Usage:
    cms-sweep --data-dir <path> [--dry-run] [--verbose]

Invariants:
    - Uses the same transfer as the server; archive before delete
    - --dry-run never writes to any collection
    - Exit code 1 means nothing was removed from the live store

How to change safely:
    - Keep flags backward compatible; operators script this tool
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Any

from ..activity import SqliteActivityLog
from ..archive import BANNER_KIND, ArchivalTransfer, ExpiryScanner
from ..errors import ArchiveWriteError, StoreError
from ..models import now_ms
from ..store import Condition, SqliteDatabase, create_sqlite_stores

logger = logging.getLogger(__name__)


async def run_sweep(data_dir: str, db_filename: str = "cms.db", dry_run: bool = False) -> dict[str, Any]:
    """Run one sweep.

    Args:
        data_dir: Directory holding the CMS database
        db_filename: Database file name
        dry_run: Only report the expired banners

    Returns:
        Summary dictionary

    Raises:
        ArchiveWriteError: If the archive insert failed
    """
    db = SqliteDatabase(data_dir, filename=db_filename)
    await db.initialize()
    stores = create_sqlite_stores(db)

    if dry_run:
        now = now_ms()
        expired = await stores.banners.find(
            [Condition("expire_at", "not_null"), Condition("expire_at", "lte", now)]
        )
        return {
            "dry_run": True,
            "found": len(expired),
            "banners": [{"id": b.id, "title": b.title, "expire_at": b.expire_at} for b in expired],
        }

    transfer = ArchivalTransfer(
        stores.banners, stores.archived_banners, SqliteActivityLog(db), BANNER_KIND
    )
    scanner = ExpiryScanner(stores.banners, transfer)
    result = await scanner.sweep()
    return {"dry_run": False, **result.to_dict()}


def main() -> None:
    """CLI entry point for the sweep tool."""
    parser = argparse.ArgumentParser(description="Archive expired banners once")
    parser.add_argument("--data-dir", required=True, help="Directory holding the CMS database")
    parser.add_argument("--db-filename", default="cms.db", help="Database file name")
    parser.add_argument(
        "--dry-run", action="store_true", help="List expired banners without archiving"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        summary = asyncio.run(run_sweep(args.data_dir, args.db_filename, args.dry_run))
    except (ArchiveWriteError, StoreError) as e:
        logger.error(f"Sweep failed: {e}")
        sys.exit(1)

    print(json.dumps(summary, indent=2))


if __name__ == "__main__":
    main()
