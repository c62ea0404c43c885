"""
Operator tools for the CMS server.

- sweep: run one banner expiry sweep from the command line
"""

from .sweep import run_sweep

__all__ = ["run_sweep"]
