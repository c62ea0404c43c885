"""
CMS Server - content backend for pages and banners with durable archival.

This package implements a content-management backend built on:
- Live collections (pages, banners) mutated through a request API
- Archive collections that permanently retain records leaving the live store
- One archival transfer path shared by two triggers

Architecture:
    ┌─────────────┐     ┌─────────────┐     ┌───────────────────────┐
    │   Client    │────▶│ HTTP (REST) │────▶│ DeleteToArchiveHandler│
    └─────────────┘     └─────────────┘     └───────────┬───────────┘
                                                        │
                        ┌─────────────┐                 ▼
                        │   Expiry    │────▶┌───────────────────────┐
                        │   Scanner   │     │   ArchivalTransfer    │
                        └─────────────┘     └───────────┬───────────┘
                                                        │
                        ┌───────────────────┬───────────┴─────────┐
                        ▼                   ▼                     ▼
                   ┌─────────┐         ┌─────────┐         ┌──────────┐
                   │ Archive │ (1st)   │  Live   │ (2nd)   │ Activity │ (3rd)
                   │  Store  │         │  Store  │         │   Log    │
                   └─────────┘         └─────────┘         └──────────┘

Invariants:
    - Archive insert always precedes live delete within a transfer
    - A failed archive insert removes nothing from the live store
    - A failed live delete leaves a duplicate on the next sweep, never a loss
    - Activity logging failures never change a transfer outcome

How to change safely:
    - Archiving the same kind from two triggers needs a per-record claim
    - New archived fields must have a total default in the mapper
    - Never add a code path that deletes live records outside the transfer

Version: see _version.py.
"""

from ._version import __version__

__all__ = ["__version__"]
