"""
CMS Server Test Suite.

This package contains:
- unit/: Unit tests (in-memory stores, temporary SQLite files)
- integration/: Integration tests (SQLite stores, HTTP API, sweep tool)
"""
