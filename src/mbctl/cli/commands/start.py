"""Start command for mb CLI.

Runs the server in the foreground until SIGINT/SIGTERM or `mb stop`.
"""

from __future__ import annotations

__all__ = ["start"]

import asyncio

import click

from mbctl.lifecycle import LifecycleController

from ..params import options_from_context, server_options


@click.command("start")
@server_options
@click.pass_context
def start(ctx: click.Context, **_params: object) -> None:
    """Start the server (default command).

    Loads --configfile once the admin API is listening, then writes the
    PID file. Runs until interrupted or stopped with `mb stop`.
    """
    options = options_from_context(ctx)
    asyncio.run(LifecycleController(options).run())
