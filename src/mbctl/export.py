"""save and replay: export and re-apply a running server's imposters.

save    GET a replayable export and write the body verbatim to --savefile.
replay  GET a replayable export with proxies removed and PUT it straight
        back, turning recorded proxy responses into static stubs.
"""

from __future__ import annotations

__all__ = [
    "replay",
    "save",
]

import asyncio
import json
import logging
from pathlib import Path
from typing import Any

from mbctl.api_client import AdminClient
from mbctl.config_loader import normalize_config
from mbctl.exceptions import AdminAPIError, SaveFileError
from mbctl.log_config import log_event
from mbctl.models import SystemEvent
from mbctl.options import Options


def _write_body(path: Path, body: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(body, encoding="utf-8")


async def save(options: Options, client: AdminClient | None = None) -> Path:
    """Save the server's imposters to options.savefile.

    Args:
        options: Options for this invocation.
        client: Admin client; built from options when omitted.

    Returns:
        Path written.

    Raises:
        ServerNotRunningError: If no server is listening on the port.
        AdminAPIError: If the export fails.
        SaveFileError: If the export cannot be written to savefile.
    """
    client = client or AdminClient.for_options(options)
    response = await client.get_config(remove_proxies=options.remove_proxies)
    if not response.ok:
        raise AdminAPIError(response.body, response.status_code, body=response.body)

    savefile = Path(options.savefile)
    try:
        await asyncio.to_thread(_write_body, savefile, response.body)
    except OSError as e:
        raise SaveFileError(savefile, str(e)) from e

    log_event(
        logging.DEBUG,
        SystemEvent(
            event="config_saved",
            message=f"Saved imposters from port {options.port} to {savefile}",
            port=options.port,
        ),
    )
    return savefile


async def replay(options: Options, client: AdminClient | None = None) -> Any:
    """Replace recorded proxies with the responses they captured.

    Proxy removal is always requested, whatever --removeProxies says.

    Args:
        options: Options for this invocation.
        client: Admin client; built from options when omitted.

    Returns:
        Decoded PUT response.

    Raises:
        ServerNotRunningError: If no server is listening on the port.
        AdminAPIError: If the export does not succeed (no PUT is sent) or the PUT fails.
    """
    client = client or AdminClient.for_options(options)
    response = await client.get_config(remove_proxies=True)
    if not response.ok:
        raise AdminAPIError(response.body, response.status_code, body=response.body)

    try:
        document = normalize_config(json.loads(response.body))
    except json.JSONDecodeError as e:
        raise AdminAPIError(f"Invalid JSON in export: {e}", response.status_code, body=response.body) from e

    result = await client.put_config(document)

    log_event(
        logging.DEBUG,
        SystemEvent(
            event="config_replayed",
            message=f"Replayed {len(document['imposters'])} imposter(s) on port {options.port}",
            port=options.port,
            imposter_count=len(document["imposters"]),
        ),
    )
    return result
