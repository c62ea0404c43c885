"""
Activity log module for the CMS server.

Best-effort audit trail of content changes. Failures here never affect
the operation being reported.
"""

from .log import InMemoryActivityLog, SqliteActivityLog
from .notifier import (
    STATUS_PARTIAL,
    STATUS_SUCCESS,
    ActivityEntry,
    ActivityNotifier,
    GuardOutcome,
    notification_guard,
)

__all__ = [
    "ActivityEntry",
    "ActivityNotifier",
    "GuardOutcome",
    "InMemoryActivityLog",
    "STATUS_PARTIAL",
    "STATUS_SUCCESS",
    "SqliteActivityLog",
    "notification_guard",
]
