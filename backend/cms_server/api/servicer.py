"""
Request-level service methods for the CMS server.

The servicer coordinates the stores, the activity log and the
delete-to-archive handler. Methods return JSON-ready dictionaries and
raise CmsError subclasses; the HTTP layer maps those to status codes.

Invariants:
    - Pages are never deleted directly; delete_page() archives them
    - create/update set created_at/updated_at; client values are ignored
    - Client-supplied ids on create are discarded
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from .._version import __version__
from ..activity import STATUS_SUCCESS, ActivityNotifier, notification_guard
from ..archive import DeleteToArchiveHandler, ExpiryScanner
from ..errors import NotFoundError, ValidationError
from ..models import Banner, Page, PageStatus, now_ms
from ..store import CmsStores, SqliteDatabase

logger = logging.getLogger(__name__)

_SERVER_FIELDS = ("id", "created_at", "updated_at")


def _require_text(body: Dict[str, Any], name: str) -> str:
    value = body.get(name)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{name.capitalize()} is required", field_name=name)
    return value


def _optional_timestamp(body: Dict[str, Any], name: str) -> None:
    value = body.get(name)
    if value is not None and (isinstance(value, bool) or not isinstance(value, int)):
        raise ValidationError(f"{name} must be a Unix timestamp in milliseconds", field_name=name)


def _client_fields(body: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in body.items() if k not in _SERVER_FIELDS}


class CmsServicer:
    """Service implementation behind the HTTP API.

    Attributes:
        stores: Live and archive collections
        activity: Activity log sink
        page_handler: Delete-to-archive handler for pages
        scanner: Expiry scanner, when running (reported by health())
        db: Database handle, when SQLite-backed (pinged by health())
    """

    def __init__(
        self,
        stores: CmsStores,
        activity: ActivityNotifier,
        page_handler: DeleteToArchiveHandler,
        scanner: Optional[ExpiryScanner] = None,
        db: Optional[SqliteDatabase] = None,
    ) -> None:
        self.stores = stores
        self.activity = activity
        self.page_handler = page_handler
        self.scanner = scanner
        self.db = db

    async def health(self) -> Dict[str, Any]:
        """Get server health status."""
        components: Dict[str, str] = {}

        if self.db is not None:
            components["database"] = "healthy" if await self.db.ping() else "unhealthy"
        else:
            components["database"] = "healthy"

        if self.scanner is not None:
            components["expiry_scanner"] = self.scanner.state.value

        healthy = components["database"] == "healthy"
        return {
            "healthy": healthy,
            "version": __version__,
            "timestamp": now_ms(),
            "components": components,
        }

    # =========================================================================
    # Pages
    # =========================================================================

    async def list_pages(self) -> Dict[str, Any]:
        pages = await self.stores.pages.find()
        return {"pages": [p.to_dict() for p in pages], "count": len(pages)}

    async def count_pages(self) -> Dict[str, Any]:
        return {"count": await self.stores.pages.count()}

    async def get_page(self, page_id: str) -> Dict[str, Any]:
        page = await self.stores.pages.get(page_id)
        if page is None:
            raise NotFoundError("page", page_id)
        return page.to_dict()

    async def create_page(self, body: Dict[str, Any], actor: str = "Admin") -> Dict[str, Any]:
        page = self._page_from_body(body)
        ts = now_ms()
        page.created_at = ts
        page.updated_at = ts

        stored = await self.stores.pages.insert(page)
        logger.info(f"Page created - ID: {stored.id}, Title: {stored.title}")

        async with notification_guard("Created Page", stored.id):
            await self.activity.log(actor, "Created Page", "page", stored.title, stored.id, STATUS_SUCCESS)
        return stored.to_dict()

    async def update_page(
        self, page_id: str, body: Dict[str, Any], actor: str = "Admin"
    ) -> Dict[str, Any]:
        existing = await self.stores.pages.get(page_id)
        if existing is None:
            raise NotFoundError("page", page_id)

        page = self._page_from_body(body)
        page.created_at = existing.created_at
        page.updated_at = now_ms()

        if not await self.stores.pages.replace(page_id, page):
            raise NotFoundError("page", page_id)
        page.id = page_id
        logger.info(f"Page updated: {page_id}")

        async with notification_guard("Updated Page", page_id):
            await self.activity.log(actor, "Updated Page", "page", page.title, page_id, STATUS_SUCCESS)
        return page.to_dict()

    async def delete_page(self, page_id: str, actor: str = "Admin") -> Dict[str, Any]:
        """Archive a page. See DeleteToArchiveHandler.archive()."""
        result = await self.page_handler.archive(page_id, actor=actor)
        return result.to_dict()

    def _page_from_body(self, body: Dict[str, Any]) -> Page:
        _require_text(body, "title")
        _require_text(body, "slug")
        _optional_timestamp(body, "publish_date")

        status = body.get("status", PageStatus.DRAFT.value)
        try:
            PageStatus(status)
        except ValueError:
            raise ValidationError(f"Invalid page status '{status}'", field_name="status")

        tags = body.get("tags")
        if tags is not None and (
            not isinstance(tags, list) or not all(isinstance(t, str) for t in tags)
        ):
            raise ValidationError("tags must be a list of strings", field_name="tags")

        return Page.from_dict(_client_fields(body))

    # =========================================================================
    # Banners
    # =========================================================================

    async def list_banners(self) -> Dict[str, Any]:
        banners = await self.stores.banners.find()
        return {"banners": [b.to_dict() for b in banners], "count": len(banners)}

    async def create_banner(self, body: Dict[str, Any], actor: str = "Admin") -> Dict[str, Any]:
        _require_text(body, "title")
        _optional_timestamp(body, "publish_at")
        _optional_timestamp(body, "expire_at")

        banner = Banner.from_dict(_client_fields(body))
        ts = now_ms()
        banner.created_at = ts
        banner.updated_at = ts

        stored = await self.stores.banners.insert(banner)
        logger.info(f"Banner created - ID: {stored.id}, Title: {stored.title}")

        async with notification_guard("Created Banner", stored.id):
            await self.activity.log(
                actor, "Created Banner", "banner", stored.title, stored.id, STATUS_SUCCESS
            )
        return stored.to_dict()

    # =========================================================================
    # Archives and activity
    # =========================================================================

    async def list_archived_pages(self) -> Dict[str, Any]:
        archived = await self.stores.archived_pages.find()
        return {"archived_pages": [a.to_dict() for a in archived], "count": len(archived)}

    async def list_archived_banners(self) -> Dict[str, Any]:
        archived = await self.stores.archived_banners.find()
        return {"archived_banners": [a.to_dict() for a in archived], "count": len(archived)}

    async def list_activity(self, limit: int = 50) -> Dict[str, Any]:
        if limit < 0:
            raise ValidationError("limit must not be negative", field_name="limit")
        entries = await self.activity.recent(limit)
        return {"entries": [e.to_dict() for e in entries], "count": len(entries)}

    def scanner_stats(self) -> Dict[str, Any]:
        return self.scanner.stats() if self.scanner is not None else {}
