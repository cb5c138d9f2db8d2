"""Lifecycle state machine for the server process.

    STOPPED -> STARTING -> RUNNING -> STOPPING -> STOPPED

request_shutdown() is the only way out of RUNNING (or STARTING). It is
guarded so that repeated signals trigger one shutdown.
"""

from __future__ import annotations

__all__ = [
    "InvalidTransitionError",
    "LifecycleState",
    "ServerLifecycle",
]

import asyncio
import logging
from enum import Enum

from mbctl.log_config import log_event
from mbctl.models import SystemEvent


class LifecycleState(str, Enum):
    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"


_TRANSITIONS: dict[LifecycleState, frozenset[LifecycleState]] = {
    LifecycleState.STOPPED: frozenset({LifecycleState.STARTING}),
    LifecycleState.STARTING: frozenset({LifecycleState.RUNNING, LifecycleState.STOPPING}),
    LifecycleState.RUNNING: frozenset({LifecycleState.STOPPING}),
    LifecycleState.STOPPING: frozenset({LifecycleState.STOPPED}),
}


class InvalidTransitionError(RuntimeError):
    """Raised on a transition the state machine does not allow."""


class ServerLifecycle:
    """Tracks the state of one server instance and its shutdown request.

    Attributes:
        state: Current LifecycleState.
        shutdown_requested: Event set once shutdown has been requested.
    """

    def __init__(self) -> None:
        self.state = LifecycleState.STOPPED
        self.shutdown_requested = asyncio.Event()

    def transition(self, target: LifecycleState) -> None:
        """Move to target state.

        Raises:
            InvalidTransitionError: If target is not reachable from the current state.
        """
        if target not in _TRANSITIONS[self.state]:
            raise InvalidTransitionError(f"Cannot go from {self.state.value} to {target.value}")
        self.state = target

    def request_shutdown(self, reason: str = "requested") -> bool:
        """Request a graceful shutdown.

        Safe to call any number of times, including from a signal handler.

        Args:
            reason: Why shutdown was requested, for the log.

        Returns:
            True if this call initiated the shutdown, False if one was already under way.
        """
        if self.shutdown_requested.is_set() or self.state in (LifecycleState.STOPPING, LifecycleState.STOPPED):
            return False

        self.shutdown_requested.set()
        log_event(
            logging.INFO,
            SystemEvent(
                event="shutdown_requested",
                message=f"Shutdown requested ({reason})",
                details={"state": self.state.value},
            ),
        )
        return True
