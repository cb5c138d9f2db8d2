"""Restart command for mb CLI."""

from __future__ import annotations

__all__ = ["restart"]

import asyncio

import click

from mbctl.lifecycle import LifecycleController

from ..params import options_from_context, server_options


@click.command("restart")
@server_options
@click.pass_context
def restart(ctx: click.Context, **_params: object) -> None:
    """Stop the running server (if any), then start a new one.

    Accepts the same options as start.
    """
    options = options_from_context(ctx)
    asyncio.run(LifecycleController(options).restart())
