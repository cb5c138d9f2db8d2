"""Config file loading for mb start.

Reads --configfile, optionally renders it as a Jinja2 template, parses the
result as JSON, normalizes it to {"imposters": [...]} and PUTs it to the
admin API.

Templates use EJS-style delimiters (``<%= expr %>``, ``<% stmt %>``,
``<%# comment %>``), so ``{{ }}`` inside response bodies is left alone.
Templates can splice other files into a JSON string with the inclusion
helper (exposed as ``stringify`` and, for older configs, ``inject``):

    {
      "imposters": [{
        "protocol": "http",
        "stubs": [{"responses": [{"is": {"body": "<%= stringify('body.html') %>"}}]}]
      }]
    }

The included path is resolved against the directory of the file doing the
including. The included file is itself rendered with the same helper, so
inclusions nest to any depth; a file that includes itself, directly or
through other files, is an error. Its rendered text is JSON-escaped and the
surrounding quotes are dropped so it drops straight into a string literal.
"""

from __future__ import annotations

__all__ = [
    "load_config",
    "normalize_config",
    "parse_config",
    "read_config_text",
    "render_template",
]

import asyncio
import functools
import json
import logging
from pathlib import Path
from typing import Any

from jinja2 import Environment, StrictUndefined, TemplateError

from mbctl.api_client import AdminClient
from mbctl.constants import TEMPLATE_HELPER_NAMES
from mbctl.exceptions import ConfigFileMissingError, ConfigParseError, ConfigReadError
from mbctl.log_config import log_event
from mbctl.models import SystemEvent
from mbctl.options import Options

# Jinja2 delimiters; EJS style keeps {{ }} in JSON strings literal
TEMPLATE_DELIMITERS: dict[str, str] = {
    "block_start_string": "<%",
    "block_end_string": "%>",
    "variable_start_string": "<%=",
    "variable_end_string": "%>",
    "comment_start_string": "<%#",
    "comment_end_string": "%>",
}


def _read_text(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError as e:
        raise ConfigFileMissingError(path) from e
    except IsADirectoryError as e:
        raise ConfigReadError(path, "is a directory") from e
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigReadError(path, str(e)) from e


def _stringify(relative_path: Any, *, includer: Path, chain: tuple[Path, ...]) -> str:
    if not isinstance(relative_path, str):
        raise ConfigParseError(
            includer,
            f"include path must be a string, got {type(relative_path).__name__}",
        )

    path = includer.parent / relative_path
    if path.resolve() in chain:
        cycle = " -> ".join(str(p) for p in (*chain, path.resolve()))
        raise ConfigParseError(path, f"circular include: {cycle}")

    rendered = _render(path, chain)
    return json.dumps(rendered)[1:-1]


def _build_environment(path: Path, chain: tuple[Path, ...]) -> Environment:
    env = Environment(
        autoescape=False,
        keep_trailing_newline=True,
        undefined=StrictUndefined,
        **TEMPLATE_DELIMITERS,
    )
    helper = functools.partial(_stringify, includer=path, chain=chain)
    for name in TEMPLATE_HELPER_NAMES:
        env.globals[name] = helper
    return env


def _render(path: Path, chain: tuple[Path, ...]) -> str:
    text = _read_text(path)
    env = _build_environment(path, (*chain, path.resolve()))
    try:
        return env.from_string(text).render()
    except TemplateError as e:
        raise ConfigParseError(path, f"template error: {e}") from e


def render_template(path: Path) -> str:
    """Render a config template.

    Args:
        path: Template file. Inclusions resolve relative to its directory.

    Returns:
        Rendered text.

    Raises:
        ConfigFileMissingError: If path (or an included file) does not exist.
        ConfigReadError: If a file cannot be read.
        ConfigParseError: If the template is invalid, an include argument is
            not a string, or a file includes itself.
    """
    return _render(path, ())


def read_config_text(path: Path, *, parse_templates: bool = True) -> str:
    """Read the config file, rendering it as a template unless disabled."""
    if parse_templates:
        return render_template(path)
    return _read_text(path)


def parse_config(text: str, path: Path) -> Any:
    """Parse config text as JSON.

    Raises:
        ConfigParseError: If text is not valid JSON.
    """
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise ConfigParseError(path, f"invalid JSON: {e}") from e


def normalize_config(config: Any) -> dict[str, Any]:
    """Normalize a parsed config document to {"imposters": [...]}.

    - An object with an "imposters" key is returned unchanged.
    - A bare list is taken as the imposter list.
    - Anything else is taken as a single imposter.

    The input is never mutated.
    """
    if isinstance(config, dict) and "imposters" in config:
        return config
    if isinstance(config, list):
        return {"imposters": config}
    return {"imposters": [config]}


async def load_config(options: Options, client: AdminClient) -> Any:
    """Load --configfile into the running server.

    No-op when no config file was given.

    Args:
        options: Options for this invocation.
        client: Admin client for the server being started.

    Returns:
        Decoded PUT response, or None when there is no config file.

    Raises:
        ConfigFileMissingError: If the config file does not exist.
        ConfigReadError: If the config file cannot be read.
        ConfigParseError: If the template or JSON is invalid.
        ServerNotRunningError, AdminAPIError: If the PUT fails.
    """
    if options.configfile is None:
        return None

    path = Path(options.configfile)
    text = await asyncio.to_thread(read_config_text, path, parse_templates=options.parse_templates)
    document = normalize_config(parse_config(text, path))
    result = await client.put_config(document)

    log_event(
        logging.INFO,
        SystemEvent(
            event="config_loaded",
            message=f"Loaded {len(document['imposters'])} imposter(s) from {path}",
            configfile=str(path),
            imposter_count=len(document["imposters"]),
        ),
    )
    return result
