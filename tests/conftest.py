from __future__ import annotations

import threading

import pytest

from filexfer.errors import TransportError
from filexfer.net import Transport
from filexfer.server import FileServer


class FakeStream:
    """In-memory stand-in for net.Stream.

    ``incoming`` is handed out in the given pieces (split further by
    ``max_bytes``); once exhausted, recv returns b"" or raises if ``reset``.
    ``send_limit`` makes send_all fail once that many bytes were written.
    """

    def __init__(self, incoming=(), *, reset=False, send_limit=None):
        self.pieces = [bytes(p) for p in incoming]
        self.reset = reset
        self.send_limit = send_limit
        self.sent = bytearray()
        self.recv_calls = 0
        self.closed = False
        self.aborted = False
        self.peer_label = "fake:0"

    def recv(self, max_bytes):
        self.recv_calls += 1
        while self.pieces and not self.pieces[0]:
            self.pieces.pop(0)
        if not self.pieces:
            if self.reset:
                raise TransportError("connection reset")
            return b""
        head = self.pieces[0]
        out, self.pieces[0] = head[:max_bytes], head[max_bytes:]
        return out

    def send_all(self, data):
        if self.send_limit is not None and len(self.sent) + len(data) > self.send_limit:
            raise TransportError("broken pipe")
        self.sent.extend(data)

    def settimeout(self, timeout_ms):
        pass

    def abort(self):
        self.aborted = True

    def close(self):
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()


@pytest.fixture
def fake_stream():
    return FakeStream


@pytest.fixture
def transport():
    with Transport() as t:
        yield t


@pytest.fixture
def served(tmp_path, transport):
    """A running FileServer on loopback serving ``tmp_path / "srv"``."""
    root = tmp_path / "srv"
    root.mkdir()
    server = FileServer(transport, root, "127.0.0.1", 0, poll_ms=50)
    server.bind()
    t = threading.Thread(target=server.serve_forever, daemon=True)
    t.start()
    yield server, root
    server.shutdown(timeout=5.0)
    t.join(timeout=5.0)
