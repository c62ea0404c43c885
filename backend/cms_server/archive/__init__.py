"""
Archive module for the CMS server.

This module moves records out of the live store into the archive:
- On explicit page deletion (DeleteToArchiveHandler)
- On banner expiry (ExpiryScanner background loop)

Both triggers share ArchivalTransfer.

Invariants:
    - Archived records are immutable once written
    - Archive write happens before live delete
    - Duplicates after a failed live delete are accepted; losses are not
"""

from .expiry import ExpiryScanner, ScannerState, SweepResult
from .handler import DeleteToArchiveHandler
from .mapper import map_banner, map_page, to_archived
from .transfer import (
    BANNER_KIND,
    PAGE_KIND,
    ArchivalTransfer,
    ArchiveKind,
    TransferResult,
)

__all__ = [
    "ArchivalTransfer",
    "ArchiveKind",
    "BANNER_KIND",
    "DeleteToArchiveHandler",
    "ExpiryScanner",
    "PAGE_KIND",
    "ScannerState",
    "SweepResult",
    "TransferResult",
    "map_banner",
    "map_page",
    "to_archived",
]
