"""Tests for LifecycleController.

start/wait_closed run a real server in-process on a free port, without
signal handlers or logging setup. stop is tested against fake processes.
"""

from __future__ import annotations

import asyncio
import json
import os
import socket
import time
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import psutil
import pytest

from mbctl.exceptions import BindError, ConfigFileMissingError, MbError
from mbctl.lifecycle import LifecycleController, LifecycleState
from mbctl.options import build_options
from mbctl.pidfile import PidLock


def make_controller(tmp_path: Path, port: int, **params) -> LifecycleController:
    """Controller for an in-process server on 127.0.0.1."""
    options = build_options(
        "start",
        {"port": port, "host": "127.0.0.1", "pidfile": tmp_path / "mb.pid", "nologfile": True, **params},
    )
    return LifecycleController(options, install_signal_handlers=False, setup_logging=False)


class TestStart:
    """Tests for LifecycleController.start and wait_closed."""

    async def test_start_then_shutdown(self, tmp_path: Path, free_port: int):
        """PID file exists while running and is removed on shutdown."""
        # Arrange
        controller = make_controller(tmp_path, free_port)

        # Act
        await controller.start()

        # Assert
        try:
            assert controller.state is LifecycleState.RUNNING
            assert controller.pid_lock.read() == os.getpid()
            async with httpx.AsyncClient() as client:
                response = await client.get(f"http://127.0.0.1:{free_port}/imposters")
            assert response.status_code == 200
            assert response.json() == {"imposters": []}
        finally:
            controller.lifecycle.request_shutdown("test")
            await controller.wait_closed()

        assert controller.state is LifecycleState.STOPPED
        assert not controller.pid_lock.exists()

    async def test_loads_config_file(self, tmp_path: Path, free_port: int):
        """Imposters from --configfile are loaded before start returns."""
        # Arrange
        configfile = tmp_path / "imposters.json"
        configfile.write_text(json.dumps({"protocol": "http", "port": 4545}))
        controller = make_controller(tmp_path, free_port, configfile=configfile)

        # Act
        await controller.start()

        # Assert
        try:
            async with httpx.AsyncClient() as client:
                response = await client.get(f"http://127.0.0.1:{free_port}/imposters?replayable=true")
            assert response.json() == {"imposters": [{"protocol": "http", "port": 4545}]}
        finally:
            controller.lifecycle.request_shutdown("test")
            await controller.wait_closed()

    async def test_port_in_use(self, tmp_path: Path, free_port: int):
        """Bind failure raises BindError and writes no PID file."""
        # Arrange
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as blocker:
            blocker.bind(("127.0.0.1", free_port))
            blocker.listen(1)
            controller = make_controller(tmp_path, free_port)

            # Act
            with pytest.raises(BindError, match=str(free_port)):
                await controller.start()

        # Assert
        assert controller.state is LifecycleState.STOPPED
        assert not controller.pid_lock.exists()

    async def test_missing_config_file(self, tmp_path: Path, free_port: int):
        """Config failure closes the server and writes no PID file."""
        # Arrange
        controller = make_controller(tmp_path, free_port, configfile=tmp_path / "missing.json")

        # Act
        with pytest.raises(ConfigFileMissingError):
            await controller.start()

        # Assert
        assert controller.state is LifecycleState.STOPPED
        assert not controller.pid_lock.exists()
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as client_sock:
            assert client_sock.connect_ex(("127.0.0.1", free_port)) != 0

    async def test_refuses_when_another_instance_runs(self, tmp_path: Path, free_port: int):
        """A live PID of another process blocks start."""
        # Arrange
        controller = make_controller(tmp_path, free_port)
        controller.pid_lock.write(os.getppid())

        # Act / Assert
        with pytest.raises(MbError, match="already running"):
            await controller.start()

        assert controller.state is LifecycleState.STOPPED
        assert controller.pid_lock.read() == os.getppid()

    async def test_wait_closed_without_start(self, tmp_path: Path, free_port: int):
        """wait_closed returns at once when nothing was started."""
        controller = make_controller(tmp_path, free_port)

        await controller.wait_closed()

        assert controller.state is LifecycleState.STOPPED


class TestStop:
    """Tests for LifecycleController.stop."""

    @pytest.fixture
    def controller(self, tmp_path: Path) -> LifecycleController:
        options = build_options("stop", {"pidfile": tmp_path / "mb.pid"})
        return LifecycleController(options, setup_logging=False)

    async def test_no_pid_file(self, controller: LifecycleController):
        """Nothing running is success."""
        assert await controller.stop() is False

    async def test_stale_pid_file(self, controller: LifecycleController):
        """A stale lock is removed and reported as not running."""
        # Arrange
        controller.pid_lock.write(424242)

        # Act
        with patch("mbctl.pidfile.is_process_running", return_value=False):
            result = await controller.stop()

        # Assert
        assert result is False
        assert not controller.pid_lock.exists()

    async def test_terminates_and_waits_for_pid_file(self, controller: LifecycleController):
        """Stop returns once the server removes its PID file."""
        # Arrange
        controller.pid_lock.write(424242)
        process = MagicMock()
        process.terminate.side_effect = controller.pid_lock.delete

        # Act
        with (
            patch("mbctl.pidfile.is_process_running", return_value=True),
            patch("mbctl.lifecycle.controller.psutil.Process", return_value=process) as process_cls,
        ):
            result = await controller.stop()

        # Assert
        assert result is True
        process_cls.assert_called_once_with(424242)
        process.terminate.assert_called_once()
        assert not controller.pid_lock.exists()

    async def test_forces_pid_file_removal_after_timeout(self, controller: LifecycleController):
        """A PID file left behind is removed after the timeout."""
        # Arrange
        controller.pid_lock.write(424242)

        # Act
        with (
            patch("mbctl.pidfile.is_process_running", return_value=True),
            patch("mbctl.lifecycle.controller.psutil.Process", return_value=MagicMock()),
            patch("mbctl.lifecycle.controller.STOP_TIMEOUT_SECONDS", 0.2),
        ):
            result = await controller.stop()

        # Assert
        assert result is True
        assert not controller.pid_lock.exists()

    async def test_pid_file_gone_within_one_second(self, controller: LifecycleController):
        """Even a server that ignores termination loses its PID file within the 1 s budget."""
        # Arrange
        controller.pid_lock.write(424242)

        # Act
        with (
            patch("mbctl.pidfile.is_process_running", return_value=True),
            patch("mbctl.lifecycle.controller.psutil.Process", return_value=MagicMock()),
        ):
            started = time.monotonic()
            await controller.stop()
            elapsed = time.monotonic() - started

        # Assert
        assert not controller.pid_lock.exists()
        assert elapsed < 1.0 + 0.25

    async def test_process_gone_before_signal(self, controller: LifecycleController):
        """Process exiting between check and signal still counts as stopped."""
        controller.pid_lock.write(424242)

        with (
            patch("mbctl.pidfile.is_process_running", return_value=True),
            patch("mbctl.lifecycle.controller.psutil.Process", side_effect=psutil.NoSuchProcess(424242)),
        ):
            result = await controller.stop()

        assert result is True
        assert not controller.pid_lock.exists()

    async def test_access_denied(self, controller: LifecycleController):
        """Not being allowed to signal the process is an error."""
        controller.pid_lock.write(424242)

        with (
            patch("mbctl.pidfile.is_process_running", return_value=True),
            patch("mbctl.lifecycle.controller.psutil.Process", side_effect=psutil.AccessDenied(424242)),
        ):
            with pytest.raises(MbError, match="Not permitted"):
                await controller.stop()

    async def test_stop_is_idempotent(self, controller: LifecycleController):
        """Stopping twice succeeds both times."""
        assert await controller.stop() is False
        assert await controller.stop() is False


class TestRestart:
    """Tests for LifecycleController.restart."""

    FAKE_PID = 424242

    @pytest.fixture
    def controller(self, tmp_path: Path) -> LifecycleController:
        """Controller whose PID file names a live (fake) server."""
        options = build_options("restart", {"pidfile": tmp_path / "mb.pid"})
        controller = LifecycleController(options, pid_lock=PidLock(tmp_path / "mb.pid"), setup_logging=False)
        controller.pid_lock.write(self.FAKE_PID)
        return controller

    def _run_checking_lock(self, controller: LifecycleController) -> AsyncMock:
        def check_lock_gone() -> None:
            assert not controller.pid_lock.exists(), "start phase began while the old PID file existed"

        return AsyncMock(side_effect=check_lock_gone)

    async def test_waits_for_server_to_remove_pid_file(self, controller: LifecycleController):
        """run starts only after the terminated server removed its PID file."""
        # Arrange
        process = MagicMock()
        loop = asyncio.get_running_loop()
        # The old server removes its PID file a little after the signal
        process.terminate.side_effect = lambda: loop.call_later(0.25, controller.pid_lock.delete)
        controller.run = self._run_checking_lock(controller)

        # Act
        with (
            patch("mbctl.pidfile.is_process_running", return_value=True),
            patch("mbctl.lifecycle.controller.psutil.Process", return_value=process),
        ):
            await controller.restart()

        # Assert
        process.terminate.assert_called_once()
        controller.run.assert_awaited_once()

    async def test_forced_pid_file_removal_before_run(self, controller: LifecycleController):
        """run starts only after a stuck PID file was removed by force."""
        # Arrange
        controller.run = self._run_checking_lock(controller)

        # Act
        with (
            patch("mbctl.pidfile.is_process_running", return_value=True),
            patch("mbctl.lifecycle.controller.psutil.Process", return_value=MagicMock()),
            patch("mbctl.lifecycle.controller.STOP_TIMEOUT_SECONDS", 0.3),
        ):
            await controller.restart()

        # Assert
        controller.run.assert_awaited_once()
        assert not controller.pid_lock.exists()
