"""
HTTP server implementation for the CMS server.

This module provides the REST API used by the admin frontend:
- Pages: list, count, get, create, update, delete (archives the page)
- Banners: list, create, expiry scanner stats
- Archives and activity log: read-only listings

Invariants:
    - DELETE on a page archives it; nothing is destroyed
    - Errors are returned as JSON {"error", "error_code", "details"}
    - The actor is taken from X-Actor, defaulting to "Admin"

How to change safely:
    - Keep route paths stable; the frontend depends on them
    - Map new CmsError subclasses in _STATUS_BY_ERROR
"""

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from aiohttp import web

from ..config import HttpConfig
from ..errors import (
    ArchiveWriteError,
    CmsError,
    NotFoundError,
    StoreError,
    ValidationError,
)
from .servicer import CmsServicer

logger = logging.getLogger(__name__)

SERVICER_KEY = web.AppKey("servicer", CmsServicer)

_STATUS_BY_ERROR: dict[type, int] = {
    NotFoundError: 404,
    ValidationError: 400,
    ArchiveWriteError: 500,
    StoreError: 503,
}

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]


def create_http_app(
    servicer: CmsServicer,
    config: HttpConfig | None = None,
) -> web.Application:
    """Create the HTTP application.

    Args:
        servicer: CmsServicer instance
        config: HTTP server configuration

    Returns:
        aiohttp Application instance
    """
    config = config or HttpConfig()
    app = web.Application(middlewares=[cors_middleware(config), error_middleware])
    app[SERVICER_KEY] = servicer

    app.router.add_get("/health", handle_health)

    app.router.add_get("/api/Pages", handle_list_pages)
    app.router.add_post("/api/Pages", handle_create_page)
    app.router.add_get("/api/Pages/count", handle_count_pages)
    app.router.add_get("/api/Pages/{id}", handle_get_page)
    app.router.add_put("/api/Pages/{id}", handle_update_page)
    app.router.add_delete("/api/Pages/{id}", handle_delete_page)

    app.router.add_get("/api/Banners", handle_list_banners)
    app.router.add_post("/api/Banners", handle_create_banner)
    app.router.add_get("/api/Banners/expiry", handle_expiry_stats)

    app.router.add_get("/api/ArchivedPages", handle_list_archived_pages)
    app.router.add_get("/api/ArchivedBanners", handle_list_archived_banners)
    app.router.add_get("/api/ActivityLogs", handle_list_activity)

    return app


@web.middleware
async def error_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    try:
        return await handler(request)
    except web.HTTPException:
        raise
    except CmsError as e:
        status = next(
            (code for cls, code in _STATUS_BY_ERROR.items() if isinstance(e, cls)),
            500,
        )
        if status >= 500:
            logger.error(f"HTTP handler error: {e.message}", exc_info=True)
        return web.json_response(e.to_dict(), status=status)
    except Exception as e:
        logger.error(f"HTTP handler error: {e}", exc_info=True)
        return web.json_response(
            {"error": "Internal server error", "error_code": "INTERNAL"},
            status=500,
        )


def cors_middleware(config: HttpConfig) -> Any:
    """Build the CORS middleware for the configured origins."""

    @web.middleware
    async def middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
        if request.method == "OPTIONS":
            response: web.StreamResponse = web.Response()
        else:
            try:
                response = await handler(request)
            except web.HTTPException as e:
                response = e

        origin = request.headers.get("Origin")
        if origin and ("*" in config.cors_origins or origin in config.cors_origins):
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Access-Control-Allow-Credentials"] = "true"
        response.headers["Access-Control-Allow-Methods"] = "GET, POST, PUT, DELETE, OPTIONS"
        response.headers["Access-Control-Allow-Headers"] = "Content-Type, Authorization, X-Actor"
        return response

    return middleware


def _servicer(request: web.Request) -> CmsServicer:
    return request.app[SERVICER_KEY]


def _actor(request: web.Request) -> str:
    return request.headers.get("X-Actor", "Admin")


async def _json_body(request: web.Request) -> dict[str, Any]:
    try:
        body = await request.json()
    except json.JSONDecodeError:
        raise ValidationError("Invalid JSON body")
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    return body


async def handle_health(request: web.Request) -> web.Response:
    """Handle GET /health - Health check."""
    result = await _servicer(request).health()
    return web.json_response(result, status=200 if result["healthy"] else 503)


async def handle_list_pages(request: web.Request) -> web.Response:
    """Handle GET /api/Pages - List live pages."""
    return web.json_response(await _servicer(request).list_pages())


async def handle_count_pages(request: web.Request) -> web.Response:
    """Handle GET /api/Pages/count - Count live pages."""
    return web.json_response(await _servicer(request).count_pages())


async def handle_get_page(request: web.Request) -> web.Response:
    """Handle GET /api/Pages/{id} - Get page by id."""
    return web.json_response(await _servicer(request).get_page(request.match_info["id"]))


async def handle_create_page(request: web.Request) -> web.Response:
    """Handle POST /api/Pages - Create page."""
    body = await _json_body(request)
    result = await _servicer(request).create_page(body, actor=_actor(request))
    return web.json_response(result, status=201)


async def handle_update_page(request: web.Request) -> web.Response:
    """Handle PUT /api/Pages/{id} - Replace page (204, no body)."""
    body = await _json_body(request)
    await _servicer(request).update_page(request.match_info["id"], body, actor=_actor(request))
    return web.Response(status=204)


async def handle_delete_page(request: web.Request) -> web.Response:
    """Handle DELETE /api/Pages/{id} - Archive page."""
    await _servicer(request).delete_page(request.match_info["id"], actor=_actor(request))
    return web.Response(status=204)


async def handle_list_banners(request: web.Request) -> web.Response:
    """Handle GET /api/Banners - List live banners."""
    return web.json_response(await _servicer(request).list_banners())


async def handle_create_banner(request: web.Request) -> web.Response:
    """Handle POST /api/Banners - Create banner."""
    body = await _json_body(request)
    result = await _servicer(request).create_banner(body, actor=_actor(request))
    return web.json_response(result, status=201)


async def handle_expiry_stats(request: web.Request) -> web.Response:
    """Handle GET /api/Banners/expiry - Expiry scanner statistics."""
    return web.json_response(_servicer(request).scanner_stats())


async def handle_list_archived_pages(request: web.Request) -> web.Response:
    """Handle GET /api/ArchivedPages - List archived pages."""
    return web.json_response(await _servicer(request).list_archived_pages())


async def handle_list_archived_banners(request: web.Request) -> web.Response:
    """Handle GET /api/ArchivedBanners - List archived banners."""
    return web.json_response(await _servicer(request).list_archived_banners())


async def handle_list_activity(request: web.Request) -> web.Response:
    """Handle GET /api/ActivityLogs - Recent activity entries."""
    try:
        limit = int(request.query.get("limit", 50))
    except ValueError:
        raise ValidationError("limit must be an integer", field_name="limit")
    return web.json_response(await _servicer(request).list_activity(limit=limit))


async def run_http_server(servicer: CmsServicer, config: HttpConfig) -> web.AppRunner:
    """Start the HTTP server.

    Returns:
        The started runner; call runner.cleanup() to stop it.
    """
    app = create_http_app(servicer, config)
    runner = web.AppRunner(app)
    await runner.setup()

    site = web.TCPSite(runner, config.host, config.port)
    await site.start()

    logger.info(f"HTTP server running on http://{config.host}:{config.port}")
    return runner


__all__ = [
    "create_http_app",
    "run_http_server",
]
