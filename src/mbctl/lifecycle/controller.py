"""Lifecycle controller for the mb server process.

start    bind -> serve -> wait until listening -> load config -> write PID file
stop     signal the PID in the PID file, wait up to 1s for the file to go,
         then remove it ourselves
restart  stop, then start once the PID file is gone

The PID file is written last so that anything polling for it as a
readiness signal only sees it once the admin API is accepting requests
and the configured imposters are loaded.
"""

from __future__ import annotations

__all__ = [
    "LifecycleController",
]

import asyncio
import errno
import logging
import os
import signal
import socket
from typing import Any

import psutil
import uvicorn

from mbctl.api_client import AdminClient
from mbctl.config_loader import load_config
from mbctl.constants import (
    HTTP_LISTEN_BACKLOG,
    SERVER_SHUTDOWN_TIMEOUT_SECONDS,
    SERVER_STARTUP_TIMEOUT_SECONDS,
    STOP_POLL_INTERVAL_SECONDS,
    STOP_TIMEOUT_SECONDS,
)
from mbctl.exceptions import BindError, MbError
from mbctl.log_config import configure_logging, log_event
from mbctl.models import SystemEvent
from mbctl.options import Options
from mbctl.pidfile import PidLock
from mbctl.server import create_admin_app
from mbctl.utils import wait_for_condition

from .state import LifecycleState, ServerLifecycle

# Signals that trigger a graceful shutdown
SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)

# Poll interval while waiting for uvicorn to report started (seconds)
STARTUP_POLL_INTERVAL_SECONDS = 0.01


class LifecycleController:
    """Starts, stops and restarts one mb server.

    Args:
        options: Options for this invocation.
        client: Admin client used to load the config file (built from options by default).
        pid_lock: PID file lock (options.pidfile by default).
        install_signal_handlers: Register SIGINT/SIGTERM during start.
        setup_logging: Configure the mbctl logger from options during start.
    """

    def __init__(
        self,
        options: Options,
        *,
        client: AdminClient | None = None,
        pid_lock: PidLock | None = None,
        install_signal_handlers: bool = True,
        setup_logging: bool = True,
    ) -> None:
        self.options = options
        self.client = client or AdminClient.for_options(options)
        self.pid_lock = pid_lock or PidLock(options.pidfile)
        self.lifecycle = ServerLifecycle()
        self._install_signal_handlers = install_signal_handlers
        self._setup_logging = setup_logging
        self._socket: socket.socket | None = None
        self._server: uvicorn.Server | None = None
        self._server_task: asyncio.Task[None] | None = None
        self._previous_handlers: dict[int, Any] = {}
        self._loop: asyncio.AbstractEventLoop | None = None

    @property
    def state(self) -> LifecycleState:
        return self.lifecycle.state

    # =========================================================================
    # start
    # =========================================================================

    def _bind(self) -> socket.socket:
        host = self.options.bind_host
        port = self.options.port
        family = socket.AF_INET6 if ":" in host else socket.AF_INET
        sock = socket.socket(family, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind((host, port))
        except OSError as e:
            sock.close()
            if e.errno == errno.EADDRINUSE:
                raise BindError(host, port, "port is already in use") from e
            raise BindError(host, port, e.strerror or str(e)) from e
        sock.listen(HTTP_LISTEN_BACKLOG)
        sock.setblocking(False)
        return sock

    def _handle_signal(self, signum: int, frame: object) -> None:
        """Handle shutdown signals (SIGTERM, SIGINT)."""
        if self._loop is not None:
            self._loop.call_soon_threadsafe(self.lifecycle.request_shutdown, f"signal {signum}")

    def _register_signals(self) -> None:
        self._loop = asyncio.get_running_loop()
        for signum in SHUTDOWN_SIGNALS:
            self._previous_handlers[signum] = signal.signal(signum, self._handle_signal)

    def _restore_signals(self) -> None:
        for signum, handler in self._previous_handlers.items():
            signal.signal(signum, handler)
        self._previous_handlers.clear()

    async def _wait_until_listening(self) -> None:
        assert self._server is not None and self._server_task is not None
        loop = asyncio.get_running_loop()
        deadline = loop.time() + SERVER_STARTUP_TIMEOUT_SECONDS
        while not self._server.started:
            if self._server_task.done():
                raise MbError("Server exited during startup")
            if loop.time() >= deadline:
                raise MbError(f"Server did not start within {SERVER_STARTUP_TIMEOUT_SECONDS:g}s")
            await asyncio.sleep(STARTUP_POLL_INTERVAL_SECONDS)

    def _refuse_if_running(self) -> None:
        pid = self.pid_lock.read_live()
        if pid is not None and pid != os.getpid():
            raise MbError(f"mb is already running (pid: {pid}, pidfile: {self.pid_lock.path}). Use 'mb restart'.")

    async def start(self) -> None:
        """Start the server and load the config file.

        Returns once the instance is RUNNING and the PID file is written.

        Raises:
            MbError: If another instance owns the PID file or startup fails.
            BindError: If the admin port cannot be bound.
            ConfigFileMissingError, ConfigReadError, ConfigParseError: If
                the config file cannot be loaded. The server is closed first.
        """
        if self._setup_logging:
            configure_logging(self.options)

        self._refuse_if_running()
        self.lifecycle.transition(LifecycleState.STARTING)

        try:
            self._socket = self._bind()
        except BindError:
            self.lifecycle.transition(LifecycleState.STOPPING)
            self.lifecycle.transition(LifecycleState.STOPPED)
            raise

        try:
            app = create_admin_app(self.options)
            config = uvicorn.Config(app, log_config=None, access_log=False, lifespan="off")
            self._server = uvicorn.Server(config)
            self._server_task = asyncio.create_task(self._server._serve(sockets=[self._socket]))

            if self._install_signal_handlers:
                self._register_signals()

            await self._wait_until_listening()
            await load_config(self.options, self.client)
        except BaseException:
            self.lifecycle.transition(LifecycleState.STOPPING)
            await self._close_server()
            self.lifecycle.transition(LifecycleState.STOPPED)
            raise

        self.pid_lock.write(os.getpid())
        self.lifecycle.transition(LifecycleState.RUNNING)

        url = f"http://{self.options.admin_host}:{self.options.port}/"
        log_event(
            logging.INFO,
            SystemEvent(
                event="server_started",
                message=f"mb now taking orders - point your browser to {url} for help",
                pid=os.getpid(),
                pidfile=str(self.pid_lock.path),
                port=self.options.port,
            ),
        )

    async def _close_server(self) -> None:
        if self._server is not None:
            self._server.should_exit = True

        if self._server_task is not None:
            try:
                await asyncio.wait_for(self._server_task, timeout=SERVER_SHUTDOWN_TIMEOUT_SECONDS)
            except asyncio.TimeoutError:
                log_event(
                    logging.WARNING,
                    SystemEvent(event="shutdown_timeout", message="Server shutdown timed out, cancelling"),
                )
                self._server_task.cancel()
            except asyncio.CancelledError:
                pass
            except Exception as e:
                log_event(
                    logging.WARNING,
                    SystemEvent(
                        event="server_error",
                        message="Server task failed during shutdown",
                        error_type=type(e).__name__,
                        error_message=str(e),
                    ),
                )

        if self._socket is not None:
            try:
                self._socket.close()
            except OSError:
                pass  # Non-critical cleanup

        self._restore_signals()
        self._server = None
        self._server_task = None
        self._socket = None

    async def wait_closed(self) -> None:
        """Serve until shutdown is requested, then close and remove the PID file.

        Also returns if the server stops on its own.
        """
        if self.state is not LifecycleState.RUNNING:
            return

        assert self._server_task is not None
        shutdown_wait = asyncio.create_task(self.lifecycle.shutdown_requested.wait())
        try:
            await asyncio.wait({shutdown_wait, self._server_task}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            shutdown_wait.cancel()

        self.lifecycle.transition(LifecycleState.STOPPING)
        log_event(logging.INFO, SystemEvent(event="server_stopping", message="Adios - see you soon?"))
        await self._close_server()

        # Only remove the PID file if it is still ours
        if self.pid_lock.read() == os.getpid():
            self.pid_lock.delete()

        self.lifecycle.transition(LifecycleState.STOPPED)
        log_event(
            logging.INFO,
            SystemEvent(event="server_stopped", message="Server shutdown complete", port=self.options.port),
        )

    async def run(self) -> None:
        """Start the server and serve until shutdown."""
        await self.start()
        await self.wait_closed()

    # =========================================================================
    # stop / restart
    # =========================================================================

    async def stop(self) -> bool:
        """Stop the server named by the PID file.

        Idempotent: no PID file, or a stale one, is success.

        Returns:
            True if a running server was signalled, False if none was running.

        Raises:
            MbError: If the process exists but may not be signalled.
        """
        pid = self.pid_lock.read_live()
        if pid is None:
            return False

        try:
            psutil.Process(pid).terminate()
        except psutil.NoSuchProcess:
            # Exited between the liveness check and the signal
            self.pid_lock.delete()
            return True
        except psutil.AccessDenied as e:
            raise MbError(f"Not permitted to stop process {pid}") from e

        log_event(
            logging.DEBUG,
            SystemEvent(event="stop_requested", message=f"Sent termination request to {pid}", pid=pid),
        )

        stopped = await wait_for_condition(
            lambda: not self.pid_lock.exists(),
            STOP_TIMEOUT_SECONDS,
            STOP_POLL_INTERVAL_SECONDS,
        )
        if not stopped:
            # Termination is not delivered to a handler on every platform
            log_event(
                logging.WARNING,
                SystemEvent(
                    event="pidfile_forced",
                    message=f"PID file still present after {STOP_TIMEOUT_SECONDS:g}s, removing {self.pid_lock.path}",
                    pid=pid,
                    pidfile=str(self.pid_lock.path),
                ),
            )
            self.pid_lock.delete()
        return True

    async def restart(self) -> None:
        """Stop any running server, then start and serve until shutdown."""
        await self.stop()
        await self.run()
