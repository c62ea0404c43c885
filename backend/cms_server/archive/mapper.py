"""
Live-to-archive record mapping.

Pure functions. Every optional source field has a total default so an
archived record never carries a missing value:
    - absent text       -> ""
    - absent tags       -> ()
    - absent timestamps -> the transfer timestamp
"""

from __future__ import annotations

from ..errors import MappingError
from ..models import (
    ArchivedBanner,
    ArchivedPage,
    ArchivedRecord,
    ArchiveReason,
    Banner,
    LiveRecord,
    Page,
)


def map_banner(banner: Banner, reason: ArchiveReason, archived_at: int) -> ArchivedBanner:
    return ArchivedBanner(
        original_id=banner.id or "",
        title=banner.title,
        image_url=banner.image_url or "",
        status=banner.status or "",
        link=banner.link or "",
        content=banner.content or "",
        publish_at=banner.publish_at if banner.publish_at is not None else archived_at,
        expire_at=banner.expire_at if banner.expire_at is not None else archived_at,
        archive_reason=reason.value,
        archived_at=archived_at,
    )


def map_page(page: Page, reason: ArchiveReason, archived_at: int) -> ArchivedPage:
    return ArchivedPage(
        original_id=page.id or "",
        title=page.title,
        slug=page.slug,
        description=page.description or "",
        status=page.status,
        content=page.content or "",
        featured_image=page.featured_image or "",
        tags=tuple(page.tags or ()),
        category=page.category or "",
        publish_date=page.publish_date if page.publish_date is not None else archived_at,
        author=page.author or "",
        archive_reason=reason.value,
        archived_at=archived_at,
    )


def to_archived(record: LiveRecord, reason: ArchiveReason, archived_at: int) -> ArchivedRecord:
    """Map a live record to its archived form.

    Args:
        record: Banner or Page
        reason: Why the record is being archived
        archived_at: Transfer timestamp (Unix ms)

    Raises:
        MappingError: If the record type has no archive form
    """
    if isinstance(record, Banner):
        return map_banner(record, reason, archived_at)
    if isinstance(record, Page):
        return map_page(record, reason, archived_at)
    raise MappingError(type(record).__name__)
