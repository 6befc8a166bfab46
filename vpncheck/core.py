from __future__ import annotations

"""Compatibility facade for the vpncheck engine.

Public imports remain stable while implementation lives in `vpncheck.engine.runtime`.
"""

from .engine.runtime import *  # noqa: F401,F403
from .engine.runtime import _run_async, _run_coro_sync

__all__ = [
    "DomainScanner",
    "VPNCHECK",
    "logger",
    "_run_async",
    "_run_coro_sync",
]
