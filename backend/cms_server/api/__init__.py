"""
API module for the CMS server.

This module provides the external interface:
- CmsServicer (service logic, returns JSON-ready dicts)
- HTTP server (aiohttp REST API over the servicer)

Invariants:
    - Page deletion goes through the delete-to-archive handler
    - Errors are CmsError subclasses mapped to HTTP status codes

How to change safely:
    - Add service methods to the servicer first, then expose a route
    - Keep response shapes backward compatible
"""

from .http_server import create_http_app, run_http_server
from .servicer import CmsServicer

__all__ = [
    "CmsServicer",
    "create_http_app",
    "run_http_server",
]
