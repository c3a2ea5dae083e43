"""Shared pytest fixtures for all tests."""

from __future__ import annotations

import threading

import pytest

from udpchat.client import Client
from udpchat.hub import Hub

PEER = ("10.0.0.7", 40001)


class FakeEndpoint:
    """In-memory stand-in for UdpEndpoint that records what is sent."""

    def __init__(self):
        self.sent: list[tuple[bytes, tuple[str, int]]] = []
        self.replies: list[bytes] = []
        self.closed = False
        self._lock = threading.Lock()

    @property
    def address(self):
        return ("127.0.0.1", 3000)

    def sendto(self, data, addr):
        with self._lock:
            self.sent.append((data, addr))

    def recvfrom(self, bufsize=65535):
        if not self.replies:
            raise TimeoutError("timed out")
        return self.replies.pop(0), ("127.0.0.1", 3000)

    def close(self):
        self.closed = True


@pytest.fixture
def peer():
    return PEER


@pytest.fixture
def endpoint():
    return FakeEndpoint()


@pytest.fixture
def hub(endpoint, tmp_path):
    """
    Hub wired to a FakeEndpoint, writing files under tmp_path.

    Datagrams are fed with ``hub.dispatch(raw, peer).result()``.
    """
    h = Hub(endpoint, out_dir=tmp_path, max_workers=8)
    yield h
    h.close()


@pytest.fixture
def live_hub(tmp_path):
    """Hub bound to an ephemeral loopback port and serving in a thread."""
    h = Hub.bind("127.0.0.1", 0, out_dir=tmp_path)
    t = threading.Thread(target=h.serve_forever, daemon=True)
    t.start()
    yield h
    h.close()
    t.join(timeout=5)


@pytest.fixture
def client(live_hub):
    host, port = live_hub.address
    c = Client.connect(host, port, timeout_s=2.0)
    yield c
    c.close()
