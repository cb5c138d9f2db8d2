"""Command-line interface for mbctl.

Provides the `mb` command: start, stop, restart, save, replay.
"""

from .main import cli, main

__all__ = ["cli", "main"]
