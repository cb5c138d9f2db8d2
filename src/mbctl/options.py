"""Per-invocation options for mbctl.

One immutable Options value is built per CLI invocation and passed to
every component. Building it is a chain of pure steps:

    rc file defaults  <  command-line values  <  short aliases

followed by command-specific shaping (the --ipWhitelist split applies to
start and restart only) and pydantic validation.

Example usage:
    options = build_options("start", {"port": 9999, "configfile": "imposters.json"})
    options.port            # 9999
    options.parse_templates # True
"""

from __future__ import annotations

__all__ = [
    "ALIAS_TO_OPTION",
    "OPTION_FIELDS",
    "Options",
    "build_options",
    "load_rc_defaults",
    "resolve_aliases",
]

import json
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import click
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from mbctl.constants import (
    DEFAULT_IP_WHITELIST,
    DEFAULT_LOG_FILE,
    DEFAULT_LOG_LEVEL,
    DEFAULT_PID_FILE,
    DEFAULT_PORT,
    DEFAULT_SAVE_FILE,
    IP_WHITELIST_DELIMITER,
    LOG_LEVELS,
)

# Commands whose --ipWhitelist is split into patterns
SERVER_COMMANDS = ("start", "restart")

# Canonical CLI option name -> Options field name
OPTION_FIELDS: dict[str, str] = {
    "port": "port",
    "host": "host",
    "configfile": "configfile",
    "noParse": "no_parse",
    "pidfile": "pidfile",
    "logfile": "logfile",
    "nologfile": "nologfile",
    "loglevel": "loglevel",
    "allowInjection": "allow_injection",
    "localOnly": "local_only",
    "ipWhitelist": "ip_whitelist",
    "mock": "mock",
    "debug": "debug",
    "savefile": "savefile",
    "removeProxies": "remove_proxies",
    "apikey": "apikey",
}

# Short alias (as parsed by click) -> canonical option name
ALIAS_TO_OPTION: dict[str, str] = {
    "p": "port",
    "c": "configfile",
    "f": "pidfile",
    "s": "savefile",
}


class Options(BaseModel):
    """Immutable options for one mb invocation.

    Attributes:
        command: Command being run (start, stop, restart, save, replay).
        port: Admin API port.
        host: Bind address for start; target host for admin requests.
        ip_whitelist: fnmatch patterns of client addresses allowed to connect.
        local_only: Only admit loopback clients.
        allow_injection: Reported to the server; permits JavaScript injection.
        mock: Reported to the server; records requests for verification.
        debug: Reported to the server; also forces debug logging.
        configfile: Imposter config file loaded after start.
        no_parse: Load configfile verbatim instead of rendering it as a template.
        pidfile: PID lock file path.
        logfile: JSONL log file path.
        nologfile: Disable the log file.
        loglevel: One of debug, info, warn, error.
        savefile: Output path for save.
        remove_proxies: Strip proxy responses from saved configuration.
        apikey: Required x-api-key header value for the admin API.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    command: str = "start"
    port: int = Field(default=DEFAULT_PORT, ge=1, le=65535)
    host: str | None = None
    ip_whitelist: tuple[str, ...] = DEFAULT_IP_WHITELIST
    local_only: bool = False
    allow_injection: bool = False
    mock: bool = False
    debug: bool = False
    configfile: Path | None = None
    no_parse: bool = False
    pidfile: Path = Path(DEFAULT_PID_FILE)
    logfile: Path = Path(DEFAULT_LOG_FILE)
    nologfile: bool = False
    loglevel: str = DEFAULT_LOG_LEVEL
    savefile: Path = Path(DEFAULT_SAVE_FILE)
    remove_proxies: bool = False
    apikey: str | None = None

    @field_validator("loglevel")
    @classmethod
    def _check_loglevel(cls, value: str) -> str:
        if value not in LOG_LEVELS:
            raise ValueError(f"loglevel must be one of: {', '.join(LOG_LEVELS)}")
        return value

    @property
    def parse_templates(self) -> bool:
        """Whether configfile is rendered as a template before parsing."""
        return not self.no_parse

    @property
    def admin_host(self) -> str:
        """Host the CLI uses to reach the admin API."""
        if self.host in (None, "", "0.0.0.0", "::"):
            return "127.0.0.1"
        return self.host

    @property
    def bind_host(self) -> str:
        """Address the server binds to."""
        return self.host or "0.0.0.0"


def resolve_aliases(
    params: Mapping[str, Any],
    aliases: Mapping[str, str] = ALIAS_TO_OPTION,
) -> dict[str, Any]:
    """Return a copy of params with aliases folded into canonical names.

    An alias supplied alongside its canonical option overwrites it.

    Args:
        params: Parsed option values keyed by option or alias name.
        aliases: Alias name to canonical name mapping.

    Returns:
        New dict without alias keys.
    """
    resolved = {name: value for name, value in params.items() if name not in aliases}
    for alias, canonical in aliases.items():
        value = params.get(alias)
        if value is not None:
            resolved[canonical] = value
    return resolved


def load_rc_defaults(path: Path) -> dict[str, Any]:
    """Load option defaults from an rc file.

    The rc file is a JSON object keyed by canonical option name.

    Args:
        path: Path to the rc file.

    Returns:
        Option defaults.

    Raises:
        click.UsageError: If the file is missing, invalid, or not an object.
    """
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise click.UsageError(f"rc file not found: {path}") from e
    except (OSError, json.JSONDecodeError) as e:
        raise click.UsageError(f"Cannot read rc file {path}: {e}") from e

    if not isinstance(data, dict):
        raise click.UsageError(f"rc file {path} must contain a JSON object")
    return data


def _split_whitelist(value: Any) -> Any:
    if isinstance(value, str):
        return tuple(pattern for pattern in value.split(IP_WHITELIST_DELIMITER) if pattern)
    return value


def build_options(
    command: str,
    params: Mapping[str, Any],
    rc_defaults: Mapping[str, Any] | None = None,
) -> Options:
    """Build the Options for one invocation.

    Args:
        command: Command name.
        params: Options given on the command line, keyed by canonical or
            alias name. None values are treated as not given.
        rc_defaults: Defaults loaded from --rcfile.

    Returns:
        Validated, immutable Options.

    Raises:
        click.UsageError: If a value is unknown or invalid.
    """
    merged: dict[str, Any] = dict(rc_defaults or {})
    merged.update(resolve_aliases(params))
    merged = {name: value for name, value in merged.items() if value is not None}

    if "ipWhitelist" in merged:
        if command in SERVER_COMMANDS:
            merged["ipWhitelist"] = _split_whitelist(merged["ipWhitelist"])
        else:
            del merged["ipWhitelist"]

    unknown = sorted(set(merged) - set(OPTION_FIELDS))
    if unknown:
        raise click.UsageError(f"Unknown option(s): {', '.join(unknown)}")

    fields = {OPTION_FIELDS[name]: value for name, value in merged.items()}
    try:
        return Options(command=command, **fields)
    except ValidationError as e:
        errors = "; ".join(f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors())
        raise click.UsageError(f"Invalid options: {errors}") from e
