"""Stop command for mb CLI."""

from __future__ import annotations

__all__ = ["stop"]

import asyncio

import click

from mbctl.lifecycle import LifecycleController

from ..params import options_from_context, pidfile_options
from ..styling import style_dim, style_success


@click.command("stop")
@pidfile_options
@click.pass_context
def stop(ctx: click.Context, **_params: object) -> None:
    """Stop the server recorded in the PID file.

    Succeeds when nothing is running. If the server does not remove its
    PID file within a second, the file is removed anyway.
    """
    options = options_from_context(ctx)
    if asyncio.run(LifecycleController(options).stop()):
        click.echo(style_success("mb stopped"))
    else:
        click.echo(style_dim("mb is not running"))
