"""Main CLI entry point for mb.

Defines the CLI group and registers all subcommands.

Commands:
    start    - Start the server (default when no command is given)
    stop     - Stop the server recorded in the PID file
    restart  - Stop, then start
    save     - Save the running server's imposters to a file
    replay   - Turn recorded proxies into static stubs
    help     - Show this help

Subcommand help:
    mb COMMAND -h         Show help for a specific command
"""

from __future__ import annotations

__all__ = ["cli"]

import click

from mbctl import __version__
from mbctl.constants import APP_NAME

from .commands.replay import replay
from .commands.restart import restart
from .commands.save import save
from .commands.start import start
from .commands.stop import stop

# Arguments handled by the group itself rather than the default command
_GROUP_ARGS = frozenset({"-h", "--help", "-v", "--version"})


class DefaultCommandGroup(click.Group):
    """Group that runs a default command when none is named.

    `mb` and `mb --port 3000` both run `mb start`. An unknown command
    token is still a usage error.
    """

    default_command = "start"

    def parse_args(self, ctx: click.Context, args: list[str]) -> list[str]:
        """Insert the default command ahead of bare options."""
        if not args or (args[0].startswith("-") and args[0] not in _GROUP_ARGS):
            args = [self.default_command, *args]
        return super().parse_args(ctx, args)

    def format_epilog(self, ctx: click.Context, formatter: click.HelpFormatter) -> None:
        """Add examples after the commands section."""
        formatter.write(
            """
Examples:
  mb                                      Start on port 2525
  mb start --port 3000 --configfile imposters.json
  mb stop --pidfile /var/run/mb.pid
  mb restart --configfile imposters.json --noParse
  mb save --savefile saved.json --removeProxies
  mb replay --port 3000

Config files are rendered as templates before loading (disable with
--noParse). Include another file as an escaped JSON string with:
  "body": "<%= stringify('responses/body.html') %>"
"""
        )


def _print_version(ctx: click.Context, param: click.Parameter, value: bool) -> None:
    if not value or ctx.resilient_parsing:
        return
    click.echo(f"{APP_NAME} {__version__}")
    ctx.exit(0)


@click.group(
    cls=DefaultCommandGroup,
    context_settings={"help_option_names": ["-h", "--help"]},
)
@click.option(
    "--version",
    "-v",
    is_flag=True,
    is_eager=True,
    expose_value=False,
    callback=_print_version,
    help="Show version",
)
def cli() -> None:
    """mb: control an mb mock server."""


@cli.command("help")
@click.pass_context
def help_command(ctx: click.Context) -> None:
    """Show this help."""
    click.echo(ctx.find_root().get_help())


# Register commands
cli.add_command(start)
cli.add_command(stop)
cli.add_command(restart)
cli.add_command(save)
cli.add_command(replay)


def main() -> None:
    """CLI entry point."""
    cli()
