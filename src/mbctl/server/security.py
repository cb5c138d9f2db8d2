"""Access control middleware for the admin API.

Checks, in order:
    1. --localOnly: client address must be loopback
    2. --ipWhitelist: client address must match one of the fnmatch patterns
    3. --apikey: x-api-key header must match (constant-time comparison)
"""

from __future__ import annotations

__all__ = [
    "AccessControlMiddleware",
    "is_allowed_address",
    "validate_api_key",
]

import fnmatch
import hmac
import logging

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp

from mbctl.constants import API_KEY_HEADER, DEFAULT_IP_WHITELIST, LOCAL_HOSTS
from mbctl.log_config import log_event
from mbctl.models import SystemEvent


def is_allowed_address(
    address: str | None,
    *,
    local_only: bool = False,
    whitelist: tuple[str, ...] = DEFAULT_IP_WHITELIST,
) -> bool:
    """Decide whether a client address may use the admin API.

    Args:
        address: Client IP address (None when unknown, e.g. in-process tests).
        local_only: Only admit loopback addresses.
        whitelist: fnmatch patterns; "*" admits everyone.

    Returns:
        True if the client is admitted.
    """
    if address is None:
        return not local_only and "*" in whitelist

    if local_only and address not in LOCAL_HOSTS:
        return False

    # IPv4-mapped IPv6 addresses match IPv4 patterns too
    candidates = {address}
    if address.startswith("::ffff:"):
        candidates.add(address[len("::ffff:") :])

    return any(fnmatch.fnmatch(candidate, pattern) for candidate in candidates for pattern in whitelist)


def validate_api_key(provided: str, expected: str) -> bool:
    """Compare API keys in constant time."""
    return hmac.compare_digest(provided.encode(), expected.encode())


class AccessControlMiddleware(BaseHTTPMiddleware):
    """Reject clients that the server's options do not admit."""

    def __init__(
        self,
        app: ASGIApp,
        *,
        local_only: bool = False,
        whitelist: tuple[str, ...] = DEFAULT_IP_WHITELIST,
        apikey: str | None = None,
    ) -> None:
        super().__init__(app)
        self.local_only = local_only
        self.whitelist = whitelist
        self.apikey = apikey

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        address = request.client.host if request.client else None

        if not is_allowed_address(address, local_only=self.local_only, whitelist=self.whitelist):
            log_event(
                logging.WARNING,
                SystemEvent(
                    event="client_rejected",
                    message=f"Blocked request from {address}: not in allowed addresses",
                    details={"address": address, "path": request.url.path},
                ),
            )
            return JSONResponse(
                status_code=403,
                content={"errors": [{"code": "forbidden", "message": f"{address} is not allowed"}]},
            )

        if self.apikey is not None:
            provided = request.headers.get(API_KEY_HEADER, "")
            if not validate_api_key(provided, self.apikey):
                log_event(
                    logging.WARNING,
                    SystemEvent(
                        event="unauthorized_request_rejected",
                        message=f"Rejected request without valid API key: {request.method} {request.url.path}",
                        details={"address": address},
                    ),
                )
                return JSONResponse(
                    status_code=401,
                    content={"errors": [{"code": "unauthorized", "message": "Invalid or missing API key"}]},
                )

        return await call_next(request)
