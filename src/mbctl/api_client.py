"""Admin API client for a running mb server.

Two operations against the server's /imposters resource:

    put_config(document)   PUT the normalized config, return decoded JSON
    get_config(...)        GET a replayable export, return status + raw body

Each request uses its own httpx.AsyncClient with "Connection: close" and
is closed when the request completes, so no sockets outlive the CLI
invocation.

A refused connection raises ServerNotRunningError so callers can report
"No server running on port P" instead of a generic network error.
"""

from __future__ import annotations

__all__ = [
    "AdminClient",
    "AdminResponse",
]

import json
from dataclasses import dataclass
from typing import Any

import httpx

from mbctl.constants import API_KEY_HEADER, DEFAULT_HTTP_TIMEOUT_SECONDS, IMPOSTERS_PATH
from mbctl.exceptions import AdminAPIError, ServerNotRunningError
from mbctl.options import Options


@dataclass(frozen=True)
class AdminResponse:
    """Status code and undecoded body of an admin API response."""

    status_code: int
    body: str

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


class AdminClient:
    """Client for one server's admin API.

    Args:
        host: Admin API host.
        port: Admin API port.
        apikey: Value sent as the x-api-key header, if any.
        timeout: Request timeout in seconds.
        transport: Optional httpx transport (tests use httpx.MockTransport).
    """

    def __init__(
        self,
        host: str,
        port: int,
        *,
        apikey: str | None = None,
        timeout: float = DEFAULT_HTTP_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.host = host
        self.port = port
        self.apikey = apikey
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def for_options(cls, options: Options, **kwargs: Any) -> AdminClient:
        """Create a client for the server described by Options."""
        return cls(options.admin_host, options.port, apikey=options.apikey, **kwargs)

    @property
    def base_url(self) -> str:
        host = f"[{self.host}]" if ":" in self.host else self.host
        return f"http://{host}:{self.port}"

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, str] | None = None,
        content: str | None = None,
    ) -> httpx.Response:
        headers = {"Connection": "close", "Accept": "application/json"}
        if content is not None:
            headers["Content-Type"] = "application/json"
        if self.apikey:
            headers[API_KEY_HEADER] = self.apikey

        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            ) as client:
                response = await client.request(method, path, params=params, content=content, headers=headers)
                return response
        except httpx.ConnectError as e:
            raise ServerNotRunningError(self.port) from e
        except httpx.HTTPError as e:
            raise AdminAPIError(str(e) or type(e).__name__) from e

    async def put_config(self, document: dict[str, Any]) -> Any:
        """Replace the server's imposters with document.

        Args:
            document: Normalized config document ({"imposters": [...]}).

        Returns:
            Decoded JSON response body.

        Raises:
            ServerNotRunningError: If nothing is listening on the admin port.
            AdminAPIError: If the server returns an error status or invalid JSON.
        """
        response = await self._request("PUT", IMPOSTERS_PATH, content=json.dumps(document))
        if response.is_error:
            raise AdminAPIError(response.text, response.status_code, body=response.text)

        try:
            return response.json()
        except json.JSONDecodeError as e:
            raise AdminAPIError(f"Invalid JSON in response: {e}", response.status_code, body=response.text) from e

    async def get_config(self, *, remove_proxies: bool = False) -> AdminResponse:
        """Fetch the server's imposters in replayable form.

        Args:
            remove_proxies: Ask the server to strip proxy responses.

        Returns:
            AdminResponse with the undecoded body.

        Raises:
            ServerNotRunningError: If nothing is listening on the admin port.
            AdminAPIError: On other transport failures.
        """
        params = {"replayable": "true"}
        if remove_proxies:
            params["removeProxies"] = "true"

        response = await self._request("GET", IMPOSTERS_PATH, params=params)
        return AdminResponse(status_code=response.status_code, body=response.text)
