"""Server lifecycle: state machine and start/stop/restart orchestration.

Lifecycle:
- Started via `mb start` (or `mb`), runs in the foreground
- Stopped via `mb stop`, SIGINT or SIGTERM
- `mb restart` stops any running instance, then starts
"""

from __future__ import annotations

from .controller import LifecycleController
from .state import LifecycleState, ServerLifecycle

__all__ = [
    "LifecycleController",
    "LifecycleState",
    "ServerLifecycle",
]
