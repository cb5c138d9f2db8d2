"""Replay command for mb CLI."""

from __future__ import annotations

__all__ = ["replay"]

import asyncio

import click

from mbctl.export import replay as replay_imposters

from ..params import admin_options, options_from_context
from ..styling import style_success


@click.command("replay")
@admin_options()
@click.pass_context
def replay(ctx: click.Context, **_params: object) -> None:
    """Switch recorded proxies to replay mode.

    Exports the running server's imposters without proxies and loads them
    back, so recorded responses are served as static stubs.
    """
    options = options_from_context(ctx)
    asyncio.run(replay_imposters(options))
    click.echo(style_success(f"Imposters on port {options.port} now replay recorded responses"))
