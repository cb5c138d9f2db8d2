"""Save command for mb CLI."""

from __future__ import annotations

__all__ = ["save"]

import asyncio

import click

from mbctl.export import save as save_imposters

from ..params import admin_options, options_from_context
from ..styling import style_success


@click.command("save")
@admin_options(savefile=True)
@click.pass_context
def save(ctx: click.Context, **_params: object) -> None:
    """Save the running server's imposters to --savefile.

    The file can be loaded back with `mb start --configfile`.
    """
    options = options_from_context(ctx)
    path = asyncio.run(save_imposters(options))
    click.echo(style_success(f"Imposters saved to {path}"))
