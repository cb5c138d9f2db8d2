"""Shared fixtures for mbctl tests."""

from __future__ import annotations

import socket

import pytest


def find_free_port() -> int:
    """Return a TCP port nothing is listening on right now."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


@pytest.fixture
def free_port() -> int:
    """A free TCP port on the loopback interface."""
    return find_free_port()
