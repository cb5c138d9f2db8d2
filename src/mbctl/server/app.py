"""Admin API application served by mb start.

Endpoints:
    GET    /            Links to the other resources
    GET    /config      Version, options and process information
    GET    /imposters   All imposters (?replayable=true, ?removeProxies=true)
    PUT    /imposters   Replace all imposters with {"imposters": [...]}
    POST   /imposters   Add one imposter
    DELETE /imposters   Remove all imposters, returning them in replayable form

Errors use the {"errors": [{"code": ..., "message": ...}]} shape.
"""

from __future__ import annotations

__all__ = ["create_admin_app"]

import json
import logging
import os
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from mbctl import __version__
from mbctl.constants import IMPOSTERS_PATH
from mbctl.log_config import log_event
from mbctl.models import SystemEvent
from mbctl.options import Options

from .security import AccessControlMiddleware
from .store import ImposterStore, InvalidImposterError, export_imposter


def _bad_data(message: str) -> JSONResponse:
    return JSONResponse(status_code=400, content={"errors": [{"code": "bad data", "message": message}]})


def _flag(request: Request, name: str) -> bool:
    return request.query_params.get(name, "false").lower() == "true"


def _base_url(request: Request) -> str:
    return str(request.base_url).rstrip("/")


async def _read_json(request: Request) -> Any:
    body = await request.body()
    return json.loads(body or b"null")


def create_admin_app(options: Options, store: ImposterStore | None = None) -> FastAPI:
    """Create the FastAPI application for the admin API.

    Args:
        options: Options the server was started with.
        store: Imposter store (a fresh one by default).

    Returns:
        Configured FastAPI application.
    """
    app = FastAPI(title="mb", version=__version__, docs_url=None, redoc_url=None, openapi_url=None)
    app.state.options = options
    app.state.store = store if store is not None else ImposterStore()

    app.add_middleware(
        AccessControlMiddleware,
        local_only=options.local_only,
        whitelist=options.ip_whitelist,
        apikey=options.apikey,
    )

    def export_all(request: Request, *, replayable: bool, without_proxies: bool) -> dict[str, Any]:
        base_url = _base_url(request)
        imposters = [
            export_imposter(
                imposter,
                index=index,
                base_url=base_url,
                replayable=replayable,
                without_proxies=without_proxies,
            )
            for index, imposter in enumerate(request.app.state.store.all())
        ]
        return {"imposters": imposters}

    @app.get("/")
    async def home(request: Request) -> dict[str, Any]:
        base_url = _base_url(request)
        return {
            "_links": {
                "imposters": {"href": f"{base_url}{IMPOSTERS_PATH}"},
                "config": {"href": f"{base_url}/config"},
            }
        }

    @app.get("/config")
    async def config(request: Request) -> dict[str, Any]:
        opts = request.app.state.options
        return {
            "version": __version__,
            "options": {
                "port": opts.port,
                "host": opts.host,
                "allowInjection": opts.allow_injection,
                "localOnly": opts.local_only,
                "ipWhitelist": list(opts.ip_whitelist),
                "mock": opts.mock,
                "debug": opts.debug,
                "loglevel": opts.loglevel,
            },
            "process": {"pid": os.getpid(), "cwd": os.getcwd()},
        }

    @app.get(IMPOSTERS_PATH)
    async def get_imposters(request: Request) -> dict[str, Any]:
        return export_all(
            request,
            replayable=_flag(request, "replayable"),
            without_proxies=_flag(request, "removeProxies"),
        )

    @app.put(IMPOSTERS_PATH)
    async def put_imposters(request: Request) -> Any:
        try:
            body = await _read_json(request)
        except ValueError as e:
            return _bad_data(f"Unable to parse body as JSON: {e}")
        if not isinstance(body, dict) or "imposters" not in body:
            return _bad_data("Body must be an object with an 'imposters' list")

        try:
            imposters = request.app.state.store.replace(body["imposters"])
        except InvalidImposterError as e:
            return _bad_data(str(e))

        log_event(
            logging.INFO,
            SystemEvent(
                event="imposters_replaced",
                message=f"PUT {IMPOSTERS_PATH}: {len(imposters)} imposter(s)",
                imposter_count=len(imposters),
            ),
        )
        return export_all(request, replayable=False, without_proxies=False)

    @app.post(IMPOSTERS_PATH, status_code=201)
    async def post_imposter(request: Request) -> Any:
        try:
            body = await _read_json(request)
        except ValueError as e:
            return _bad_data(f"Unable to parse body as JSON: {e}")

        try:
            imposter = request.app.state.store.add(body)
        except InvalidImposterError as e:
            return _bad_data(str(e))

        log_event(
            logging.INFO,
            SystemEvent(event="imposter_added", message=f"POST {IMPOSTERS_PATH}: added imposter"),
        )
        return export_imposter(
            imposter,
            index=len(request.app.state.store) - 1,
            base_url=_base_url(request),
        )

    @app.delete(IMPOSTERS_PATH)
    async def delete_imposters(request: Request) -> dict[str, Any]:
        without_proxies = _flag(request, "removeProxies")
        removed = request.app.state.store.clear()
        base_url = _base_url(request)
        return {
            "imposters": [
                export_imposter(
                    imposter,
                    index=index,
                    base_url=base_url,
                    replayable=True,
                    without_proxies=without_proxies,
                )
                for index, imposter in enumerate(removed)
            ]
        }

    return app
