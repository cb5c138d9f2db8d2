"""End-to-end tests running the mb CLI in subprocesses.

Starts a real server, loads a config file, saves and replays through the
admin API, and stops it again through the PID file.
"""

from __future__ import annotations

import json
import subprocess
import sys
import time
from collections.abc import Iterator
from pathlib import Path

import httpx
import pytest

STARTUP_TIMEOUT_SECONDS = 15.0


def run_mb(*args: str, cwd: Path) -> subprocess.CompletedProcess[str]:
    """Run an mb command to completion."""
    return subprocess.run(
        [sys.executable, "-m", "mbctl.cli", *args],
        cwd=cwd,
        capture_output=True,
        text=True,
        timeout=30,
    )


def wait_for_file(path: Path, process: subprocess.Popen[str], timeout: float) -> None:
    """Wait for the server to write its PID file."""
    deadline = time.monotonic() + timeout
    while not path.exists():
        if process.poll() is not None:
            _, stderr = process.communicate()
            pytest.fail(f"mb exited with {process.returncode}: {stderr}")
        if time.monotonic() > deadline:
            pytest.fail(f"{path} not written within {timeout}s")
        time.sleep(0.05)


@pytest.fixture
def workdir(tmp_path: Path) -> Path:
    """Directory holding a config file that includes a body from another file."""
    (tmp_path / "body.html").write_text("<h1>hello</h1>\n")
    (tmp_path / "imposters.json").write_text(
        json.dumps(
            {
                "protocol": "http",
                "port": 4545,
                "stubs": [
                    {
                        "responses": [
                            {"is": {"body": "<%= stringify('body.html') %>"}},
                            {"proxy": {"to": "http://origin.example"}},
                        ]
                    }
                ],
            }
        )
    )
    return tmp_path


@pytest.fixture
def server(workdir: Path, free_port: int) -> Iterator[tuple[int, Path]]:
    """A running mb server; yields (port, pidfile)."""
    pidfile = workdir / "mb.pid"
    process = subprocess.Popen(
        [
            sys.executable,
            "-m",
            "mbctl.cli",
            "start",
            "--port",
            str(free_port),
            "--host",
            "127.0.0.1",
            "--configfile",
            "imposters.json",
            "--pidfile",
            str(pidfile),
            "--nologfile",
        ],
        cwd=workdir,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
    )
    try:
        wait_for_file(pidfile, process, STARTUP_TIMEOUT_SECONDS)
        yield free_port, pidfile
    finally:
        if process.poll() is None:
            process.terminate()
            try:
                process.wait(timeout=10)
            except subprocess.TimeoutExpired:
                process.kill()
                process.wait()
        process.communicate()


class TestEndToEnd:
    """Full lifecycle through the CLI."""

    def test_start_loads_config_and_stop_removes_pidfile(self, server: tuple[int, Path], workdir: Path) -> None:
        """Imposters are loaded before the PID file appears; stop removes it."""
        # Arrange
        port, pidfile = server

        # Act
        response = httpx.get(f"http://127.0.0.1:{port}/imposters", params={"replayable": "true"})

        # Assert
        assert response.status_code == 200
        (imposter,) = response.json()["imposters"]
        assert imposter["protocol"] == "http"
        assert imposter["stubs"][0]["responses"][0]["is"]["body"] == "<h1>hello</h1>\n"

        # Act
        result = run_mb("stop", "--pidfile", str(pidfile), cwd=workdir)

        # Assert
        assert result.returncode == 0, result.stderr
        assert not pidfile.exists()

    def test_save_and_replay(self, server: tuple[int, Path], workdir: Path) -> None:
        """save writes the export; replay strips proxies on the server."""
        port, pidfile = server

        # save
        result = run_mb("save", "--port", str(port), "--savefile", "saved.json", cwd=workdir)
        assert result.returncode == 0, result.stderr
        saved = json.loads((workdir / "saved.json").read_text())
        assert len(saved["imposters"][0]["stubs"][0]["responses"]) == 2

        # replay
        result = run_mb("replay", "--port", str(port), cwd=workdir)
        assert result.returncode == 0, result.stderr
        response = httpx.get(f"http://127.0.0.1:{port}/imposters", params={"replayable": "true"})
        responses = response.json()["imposters"][0]["stubs"][0]["responses"]
        assert responses == [{"is": {"body": "<h1>hello</h1>\n"}}]

        run_mb("stop", "--pidfile", str(pidfile), cwd=workdir)

    def test_second_start_is_refused(self, server: tuple[int, Path], workdir: Path, free_port: int) -> None:
        """A second start against the same PID file fails."""
        _, pidfile = server

        result = run_mb("start", "--port", str(free_port), "--pidfile", str(pidfile), "--nologfile", cwd=workdir)

        assert result.returncode == 1
        assert "already running" in result.stderr

    def test_stop_without_server(self, workdir: Path) -> None:
        """Stopping when nothing runs is success."""
        result = run_mb("stop", "--pidfile", str(workdir / "mb.pid"), cwd=workdir)

        assert result.returncode == 0


class TestBareListConfig:
    """A config file holding a bare imposter list."""

    def test_bare_list_is_loaded(self, tmp_path: Path, free_port: int) -> None:
        """[{"protocol": "http"}] loads as one imposter."""
        # Arrange
        (tmp_path / "cfg.json").write_text('[{"protocol":"http"}]')
        pidfile = tmp_path / "mb.pid"
        process = subprocess.Popen(
            [sys.executable, "-m", "mbctl.cli", "--port", str(free_port), "--configfile", "cfg.json", "--nologfile"],
            cwd=tmp_path,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
        )
        try:
            wait_for_file(pidfile, process, STARTUP_TIMEOUT_SECONDS)

            # Act
            response = httpx.get(f"http://127.0.0.1:{free_port}/imposters")
            result = run_mb("stop", cwd=tmp_path)

            # Assert
            (imposter,) = response.json()["imposters"]
            assert imposter["protocol"] == "http"
            assert result.returncode == 0, result.stderr
            assert not pidfile.exists()
            assert process.wait(timeout=10) == 0
        finally:
            if process.poll() is None:
                process.kill()
            process.communicate()
