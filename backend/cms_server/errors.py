"""
Error types for the CMS server.

This module defines the exceptions raised around archival:
- CmsError: Base exception
- StoreError: A live or archive store operation failed
- MappingError: A record could not be mapped to its archive form
- ArchiveWriteError: Archive batch insert failed, transfer aborted
- LiveDeleteError: Live delete failed after a committed archive write
- NotificationError: Activity logging failed
- NotFoundError: Record absent from the live store
- ValidationError: Request payload rejected

Invariants:
    - All errors inherit from CmsError
    - ArchiveWriteError and NotFoundError propagate to the caller
    - LiveDeleteError and NotificationError are absorbed where they occur
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class CmsError(Exception):
    """Base exception for all CMS server errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "CMS_ERROR"
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-ready error body."""
        return {
            "error": self.message,
            "error_code": self.code,
            "details": self.details,
        }


class StoreError(CmsError):
    """A store operation failed."""

    def __init__(self, message: str, collection: Optional[str] = None) -> None:
        super().__init__(
            message,
            code="STORE_ERROR",
            details={"collection": collection},
        )
        self.collection = collection


class MappingError(CmsError):
    """Live record has no archive mapping.

    Unreachable for the supported kinds; raised only for an unknown type.
    """

    def __init__(self, record_type: str) -> None:
        super().__init__(
            f"No archive mapping for record type '{record_type}'",
            code="MAPPING_ERROR",
            details={"record_type": record_type},
        )
        self.record_type = record_type


class ArchiveWriteError(CmsError):
    """Archive batch insert failed.

    The transfer was aborted: nothing was removed from the live store and
    the whole batch is retryable.
    """

    def __init__(self, message: str, kind: str, record_ids: list[str]) -> None:
        super().__init__(
            message,
            code="ARCHIVE_WRITE_ERROR",
            details={"kind": kind, "record_ids": record_ids},
        )
        self.kind = kind
        self.record_ids = record_ids


class LiveDeleteError(CmsError):
    """Live delete failed after the archive write committed.

    The live copies remain and will be archived again when rediscovered.
    """

    def __init__(self, message: str, kind: str, record_ids: list[str]) -> None:
        super().__init__(
            message,
            code="LIVE_DELETE_ERROR",
            details={"kind": kind, "record_ids": record_ids},
        )
        self.kind = kind
        self.record_ids = record_ids


class NotificationError(CmsError):
    """Activity notification failed."""

    def __init__(self, message: str, action: Optional[str] = None) -> None:
        super().__init__(
            message,
            code="NOTIFICATION_ERROR",
            details={"action": action},
        )
        self.action = action


class NotFoundError(CmsError):
    """Record does not exist in the live store."""

    def __init__(self, kind: str, record_id: str) -> None:
        super().__init__(
            f"{kind.capitalize()} not found: {record_id}",
            code="NOT_FOUND",
            details={"kind": kind, "id": record_id},
        )
        self.kind = kind
        self.record_id = record_id


class ValidationError(CmsError):
    """Request payload failed validation."""

    def __init__(self, message: str, field_name: Optional[str] = None) -> None:
        super().__init__(
            message,
            code="VALIDATION_ERROR",
            details={"field": field_name},
        )
        self.field_name = field_name
