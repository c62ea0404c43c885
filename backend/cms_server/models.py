"""
Record types for the CMS server.

Live records (Banner, Page) are mutable and owned by their live store.
Archived records (ArchivedBanner, ArchivedPage) are immutable copies owned
by the archive store once written.

Invariants:
    - Live ids are assigned by the store at insert and never reassigned
    - Archived records never carry unresolved optional fields
    - All timestamps are Unix milliseconds

How to change safely:
    - New live fields must be optional or have defaults (old rows lack them)
    - New archived fields need a default rule in archive/mapper.py
    - Keep to_dict()/from_dict() symmetric
"""

from __future__ import annotations

import time
from dataclasses import asdict, dataclass, field, fields
from enum import Enum
from typing import Any, Union


def now_ms() -> int:
    """Current wall-clock time in Unix milliseconds."""
    return int(time.time() * 1000)


class ArchiveReason(Enum):
    """Why a record left the live store."""

    EXPIRED = "Expired"
    DELETED = "Deleted"


class PageStatus(Enum):
    """Publication status of a page."""

    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


def _known(cls: type, data: dict[str, Any]) -> dict[str, Any]:
    names = {f.name for f in fields(cls)}
    return {k: v for k, v in data.items() if k in names}


@dataclass
class Banner:
    """A time-bounded promotional banner.

    Attributes:
        id: Store-assigned identifier (None before insert)
        title: Display title
        image_url: Banner image location
        status: Free-form status label
        link: Optional click-through URL
        content: Optional body text
        publish_at: Optional publish time (Unix ms)
        expire_at: Optional expiry time (Unix ms); past expiry means archive
        created_at: Creation timestamp (Unix ms)
        updated_at: Last update timestamp (Unix ms)
    """

    title: str
    image_url: str = ""
    status: str = "active"
    link: str | None = None
    content: str | None = None
    publish_at: int | None = None
    expire_at: int | None = None
    id: str | None = None
    created_at: int = 0
    updated_at: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Banner:
        return cls(**_known(cls, data))


@dataclass
class Page:
    """A content page.

    Attributes:
        id: Store-assigned identifier (None before insert)
        title: Page title
        slug: URL slug
        description: Optional summary
        status: One of PageStatus values
        content: Optional body
        featured_image: Optional image URL
        tags: Optional tag list
        category: Optional category (Home, About Us, ...)
        publish_date: Optional publish time (Unix ms)
        author: Optional author name
        created_at: Creation timestamp (Unix ms)
        updated_at: Last update timestamp (Unix ms)
    """

    title: str
    slug: str
    description: str | None = None
    status: str = PageStatus.DRAFT.value
    content: str | None = None
    featured_image: str | None = None
    tags: list[str] | None = None
    category: str | None = None
    publish_date: int | None = None
    author: str | None = None
    id: str | None = None
    created_at: int = 0
    updated_at: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Page:
        return cls(**_known(cls, data))


@dataclass(frozen=True)
class ArchivedBanner:
    """Archived copy of a Banner."""

    original_id: str
    title: str
    image_url: str
    status: str
    link: str
    content: str
    publish_at: int
    expire_at: int
    archive_reason: str
    archived_at: int
    id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ArchivedBanner:
        return cls(**_known(cls, data))


@dataclass(frozen=True)
class ArchivedPage:
    """Archived copy of a Page."""

    original_id: str
    title: str
    slug: str
    description: str
    status: str
    content: str
    featured_image: str
    category: str
    publish_date: int
    author: str
    archive_reason: str
    archived_at: int
    tags: tuple[str, ...] = field(default_factory=tuple)
    id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["tags"] = list(self.tags)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ArchivedPage:
        known = _known(cls, data)
        known["tags"] = tuple(known.get("tags") or ())
        return cls(**known)


LiveRecord = Union[Banner, Page]
ArchivedRecord = Union[ArchivedBanner, ArchivedPage]
