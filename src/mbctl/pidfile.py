"""PID file lock for single-instance coordination.

The PID file holds the decimal process identifier of the running server.
Absence means "not running". A PID that names no live process is a stale
lock: readers delete it and report "not running".

exists() followed by read() is advisory; another invocation may delete the
file in between, so read() returns None for a missing file.
"""

from __future__ import annotations

__all__ = [
    "PidLock",
    "is_process_running",
]

import logging
import os
from pathlib import Path

import psutil

from mbctl.log_config import log_event
from mbctl.models import SystemEvent


def is_process_running(pid: int) -> bool:
    """Check whether a process with this PID exists.

    Args:
        pid: Process identifier.

    Returns:
        True if the process exists.
    """
    if pid <= 0:
        return False
    return psutil.pid_exists(pid)


class PidLock:
    """PID file at a fixed path."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def __repr__(self) -> str:
        return f"PidLock({str(self.path)!r})"

    def exists(self) -> bool:
        return self.path.exists()

    def read(self) -> int | None:
        """Read the PID from the file.

        Returns:
            PID, or None if the file is missing or does not hold an integer.
        """
        try:
            return int(self.path.read_text(encoding="utf-8").strip())
        except FileNotFoundError:
            return None
        except ValueError:
            return None

    def write(self, pid: int | None = None) -> None:
        """Write a PID (the current process by default) to the file."""
        if pid is None:
            pid = os.getpid()
        self.path.parent.mkdir(parents=True, exist_ok=True)
        # Readers must never see an empty file, so write aside and rename
        tmp_path = self.path.with_name(f".{self.path.name}.{os.getpid()}.tmp")
        tmp_path.write_text(str(pid), encoding="utf-8")
        os.replace(tmp_path, self.path)

    def delete(self) -> None:
        """Remove the file. A missing file is not an error."""
        self.path.unlink(missing_ok=True)

    def read_live(self) -> int | None:
        """Read the PID of a live server, removing a stale lock.

        Returns:
            PID if the file exists and the process is running, None otherwise.
        """
        if not self.exists():
            return None

        pid = self.read()
        if pid is not None and is_process_running(pid):
            return pid

        # Stale or unreadable PID file, remove it
        self.delete()
        log_event(
            logging.DEBUG,
            SystemEvent(
                event="stale_pid_removed",
                message=f"Removed stale PID file: {self.path}",
                pid=pid,
                pidfile=str(self.path),
            ),
        )
        return None
