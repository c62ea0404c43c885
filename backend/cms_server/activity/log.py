"""
Activity log sinks backed by a store.

SqliteActivityLog persists entries into the activity_logs collection.
InMemoryActivityLog keeps them in a list and can be told to fail, for tests.
"""

from __future__ import annotations

import logging
from typing import List

from ..errors import NotificationError
from ..models import now_ms
from ..store.base import ACTIVITY_LOGS
from ..store.sqlite import SqliteArchiveStore, SqliteDatabase
from .notifier import ActivityEntry

logger = logging.getLogger(__name__)


class SqliteActivityLog:
    """Append-only activity log in the CMS database.

    Example:
        >>> activity = SqliteActivityLog(db)
        >>> await activity.log("Admin", "Created Page", "page", "About", page_id, "Success")
        >>> entries = await activity.recent(20)
    """

    def __init__(self, db: SqliteDatabase) -> None:
        self._entries = SqliteArchiveStore(db, ACTIVITY_LOGS, ActivityEntry)

    async def log(
        self,
        user_name: str,
        action: str,
        content_type: str,
        content_title: str,
        content_id: str,
        status: str,
    ) -> None:
        entry = ActivityEntry(
            user_name=user_name,
            action=action,
            content_type=content_type,
            content_title=content_title,
            content_id=content_id,
            status=status,
            timestamp=now_ms(),
        )
        await self._entries.insert(entry)
        logger.debug(f"Activity logged: {action} {content_id}")

    async def recent(self, limit: int = 50) -> List[ActivityEntry]:
        """Most recent entries, newest first.

        Raises:
            ValueError: If limit is negative
        """
        return await self._entries.latest(limit)


class InMemoryActivityLog:
    """In-memory activity log for tests.

    Attributes:
        entries: Recorded entries in call order
        fail_always: When True every log() call raises NotificationError
    """

    def __init__(self, fail_always: bool = False) -> None:
        self.entries: List[ActivityEntry] = []
        self.fail_always = fail_always
        self.calls = 0

    async def log(
        self,
        user_name: str,
        action: str,
        content_type: str,
        content_title: str,
        content_id: str,
        status: str,
    ) -> None:
        self.calls += 1
        if self.fail_always:
            raise NotificationError("activity log unavailable", action=action)
        self.entries.append(
            ActivityEntry(
                user_name=user_name,
                action=action,
                content_type=content_type,
                content_title=content_title,
                content_id=content_id,
                status=status,
                timestamp=now_ms(),
            )
        )

    async def recent(self, limit: int = 50) -> List[ActivityEntry]:
        if limit < 0:
            raise ValueError("limit must not be negative")
        return list(reversed(self.entries))[:limit]
