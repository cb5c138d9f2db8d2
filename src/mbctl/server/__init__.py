"""Admin API server hosted by mb start.

Serves the /imposters administration resource from memory so the CLI's
load, save and replay flows have a live peer.
"""

from __future__ import annotations

from .app import create_admin_app
from .store import ImposterStore

__all__ = [
    "ImposterStore",
    "create_admin_app",
]
