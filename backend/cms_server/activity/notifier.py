"""
Activity notifier interface and the error-absorbing call guard.

The activity log is a best-effort audit sink: every successful content
change is reported once, but a failure to record it must never fail or
undo the change itself.

Invariants:
    - Notifier calls are always made inside notification_guard()
    - The guard never re-raises; failures are logged at WARNING
    - Cancellation is not absorbed

How to change safely:
    - New call sites must use the guard, not a local try/except
    - Keep log() arguments in sync with ActivityEntry fields
"""

from __future__ import annotations

import logging
from abc import abstractmethod
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import asdict, dataclass, fields
from typing import Any, Protocol, runtime_checkable

from ..errors import NotificationError

logger = logging.getLogger(__name__)

STATUS_SUCCESS = "Success"
STATUS_PARTIAL = "Partial"


@dataclass(frozen=True)
class ActivityEntry:
    """One audit log entry.

    Attributes:
        user_name: Actor who performed the action
        action: Human-readable action ("Deleted Page", "Expired Banner")
        content_type: Content kind ("page", "banner")
        content_title: Title of the affected record
        content_id: Id of the affected record
        status: Outcome label
        timestamp: When the entry was recorded (Unix ms)
        id: Store-assigned id
    """

    user_name: str
    action: str
    content_type: str
    content_title: str
    content_id: str
    status: str
    timestamp: int = 0
    id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ActivityEntry:
        names = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in names})


@runtime_checkable
class ActivityNotifier(Protocol):
    """Protocol for activity log sinks."""

    @abstractmethod
    async def log(
        self,
        user_name: str,
        action: str,
        content_type: str,
        content_title: str,
        content_id: str,
        status: str,
    ) -> None:
        """Record one activity entry.

        Raises:
            Exception: Any failure; callers absorb it via notification_guard()
        """
        ...


@dataclass
class GuardOutcome:
    """What happened inside a notification_guard block."""

    failed: bool = False
    error: NotificationError | None = None


@asynccontextmanager
async def notification_guard(
    action: str, content_id: str | None = None
) -> AsyncIterator[GuardOutcome]:
    """Run a notifier call, absorbing and logging any failure.

    Example:
        >>> async with notification_guard("Deleted Page", page.id) as outcome:
        ...     await notifier.log("Admin", "Deleted Page", "page", page.title, page.id, "Success")
        >>> outcome.failed
        False
    """
    outcome = GuardOutcome()
    try:
        yield outcome
    except Exception as e:
        err = e if isinstance(e, NotificationError) else NotificationError(str(e), action=action)
        outcome.failed = True
        outcome.error = err
        logger.warning(
            f"Failed to log activity '{action}': {err.message}",
            exc_info=True,
            extra={"action": action, "content_id": content_id},
        )

