"""Custom exceptions for mbctl.

All user-facing failures derive from MbError, a click.ClickException, so
the CLI prints the message and exits with code 1. Usage errors are raised
as click.UsageError and exit with code 2.

Startup failures (server is closed, no PID file is written):
    - BindError: Admin port could not be bound
    - ConfigFileMissingError: --configfile points at nothing
    - ConfigReadError: --configfile exists but could not be read
    - ConfigParseError: Template or JSON is invalid

Admin API failures:
    - ServerNotRunningError: Nothing is listening on the admin port
    - AdminAPIError: Non-success status or other transport failure

Local failures:
    - SaveFileError: Export could not be written to --savefile

Usage:
    from mbctl.exceptions import ServerNotRunningError, AdminAPIError
"""

from __future__ import annotations

__all__ = [
    "AdminAPIError",
    "BindError",
    "ConfigFileMissingError",
    "ConfigParseError",
    "ConfigReadError",
    "MbError",
    "SaveFileError",
    "ServerNotRunningError",
]

from pathlib import Path

import click


class MbError(click.ClickException):
    """Base class for errors reported to the user with exit code 1."""

    exit_code = 1


# =============================================================================
# Startup failures
# =============================================================================


class BindError(MbError):
    """Raised when the admin port cannot be bound."""

    def __init__(self, host: str, port: int, reason: str) -> None:
        super().__init__(f"Cannot bind to {host}:{port}: {reason}")
        self.host = host
        self.port = port


class ConfigFileMissingError(MbError):
    """Raised when the configured config file does not exist."""

    def __init__(self, path: Path) -> None:
        super().__init__(f"Config file not found: {path}")
        self.path = path


class ConfigReadError(MbError):
    """Raised when the config file exists but cannot be read."""

    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"Cannot read config file {path}: {reason}")
        self.path = path


class ConfigParseError(MbError):
    """Raised when the config file fails to render or is not valid JSON."""

    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"Invalid config file {path}: {reason}")
        self.path = path


# =============================================================================
# Admin API failures
# =============================================================================


class ServerNotRunningError(MbError):
    """Raised when no server accepts connections on the admin port."""

    def __init__(self, port: int) -> None:
        super().__init__(f"No server running on port {port}")
        self.port = port


class AdminAPIError(MbError):
    """Raised when an admin request fails or returns an error status."""

    def __init__(self, message: str, status_code: int | None = None, body: str | None = None) -> None:
        if status_code:
            super().__init__(f"Admin API error ({status_code}): {message}")
        else:
            super().__init__(f"Admin API error: {message}")
        self.status_code = status_code
        self.body = body


# =============================================================================
# Local failures
# =============================================================================


class SaveFileError(MbError):
    """Raised when the export cannot be written to --savefile."""

    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"Cannot write save file {path}: {reason}")
        self.path = path
