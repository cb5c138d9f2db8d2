"""Shared click options for mb commands.

Long option names match the mb command line (``--allowInjection``,
``--noParse``) and are kept verbatim as parameter names. Short aliases are
separate parameters folded into their canonical option by
mbctl.options.resolve_aliases, where the alias wins.

Only options given explicitly on the command line reach build_options;
everything else comes from --rcfile or the Options defaults.
"""

from __future__ import annotations

__all__ = [
    "admin_options",
    "options_from_context",
    "pidfile_options",
    "rcfile_option",
    "server_options",
]

from collections.abc import Callable
from pathlib import Path
from typing import Any, TypeVar

import click
from click.core import ParameterSource

from mbctl.constants import (
    DEFAULT_LOG_FILE,
    DEFAULT_LOG_LEVEL,
    DEFAULT_PID_FILE,
    DEFAULT_PORT,
    DEFAULT_SAVE_FILE,
    LOG_LEVELS,
)
from mbctl.options import Options, build_options, load_rc_defaults

F = TypeVar("F", bound=Callable[..., Any])

_FILE = click.Path(dir_okay=False, path_type=Path)


def _apply(decorators: list[Callable[[F], F]], func: F) -> F:
    for decorator in reversed(decorators):
        func = decorator(func)
    return func


def rcfile_option(func: F) -> F:
    return click.option(
        "--rcfile",
        "rcfile",
        type=_FILE,
        help="JSON file of option defaults, keyed by option name",
    )(func)


def _port_options() -> list[Callable[[F], F]]:
    return [
        click.option("--port", "port", type=int, help=f"Admin API port (default: {DEFAULT_PORT})"),
        click.option("-p", "p", type=int, help="Alias for --port"),
        click.option("--host", "host", help="Admin API host name or address"),
        click.option("--apikey", "apikey", help="API key required in the x-api-key header"),
    ]


def pidfile_options(func: F) -> F:
    """Options for commands that only need the PID file."""
    return _apply(
        [
            click.option("--pidfile", "pidfile", type=_FILE, help=f"PID file path (default: {DEFAULT_PID_FILE})"),
            click.option("-f", "f", type=_FILE, help="Alias for --pidfile"),
            rcfile_option,
        ],
        func,
    )


def server_options(func: F) -> F:
    """Options for start and restart."""
    return _apply(
        [
            *_port_options(),
            click.option("--configfile", "configfile", type=_FILE, help="Imposter config file to load after start"),
            click.option("-c", "c", type=_FILE, help="Alias for --configfile"),
            click.option(
                "--noParse",
                "noParse",
                is_flag=True,
                help="Load --configfile verbatim, without template rendering",
            ),
            click.option("--logfile", "logfile", type=_FILE, help=f"Log file path (default: {DEFAULT_LOG_FILE})"),
            click.option("--nologfile", "nologfile", is_flag=True, help="Do not write a log file"),
            click.option(
                "--loglevel",
                "loglevel",
                type=click.Choice(LOG_LEVELS),
                help=f"Log level (default: {DEFAULT_LOG_LEVEL})",
            ),
            click.option("--allowInjection", "allowInjection", is_flag=True, help="Allow JavaScript injection"),
            click.option("--localOnly", "localOnly", is_flag=True, help="Only accept requests from localhost"),
            click.option(
                "--ipWhitelist",
                "ipWhitelist",
                help="Pipe-delimited client address patterns allowed to connect (e.g. '127.0.0.1|10.0.*')",
            ),
            click.option("--mock", "mock", is_flag=True, help="Remember requests for mock verification"),
            click.option("--debug", "debug", is_flag=True, help="Include debug information and logging"),
            pidfile_options,
        ],
        func,
    )


def admin_options(*, savefile: bool = False) -> Callable[[F], F]:
    """Options for commands that talk to a running server (save, replay)."""
    decorators = _port_options()
    if savefile:
        decorators += [
            click.option("--savefile", "savefile", type=_FILE, help=f"Output file (default: {DEFAULT_SAVE_FILE})"),
            click.option("-s", "s", type=_FILE, help="Alias for --savefile"),
            click.option(
                "--removeProxies",
                "removeProxies",
                is_flag=True,
                help="Leave proxy responses out of the saved file",
            ),
        ]
    decorators.append(rcfile_option)

    def decorator(func: F) -> F:
        return _apply(decorators, func)

    return decorator


def options_from_context(ctx: click.Context) -> Options:
    """Build the invocation's Options from a command context.

    Args:
        ctx: Context of the command being invoked.

    Returns:
        Immutable Options.

    Raises:
        click.UsageError: If the rc file or an option value is invalid.
    """
    explicit = {
        name: value
        for name, value in ctx.params.items()
        if name != "rcfile" and ctx.get_parameter_source(name) is not ParameterSource.DEFAULT
    }
    rcfile = ctx.params.get("rcfile")
    rc_defaults = load_rc_defaults(rcfile) if rcfile is not None else None
    return build_options(ctx.command.name, explicit, rc_defaults)
