from __future__ import annotations

import logging
import socket
import threading
from typing import Set, Tuple

from .constants import DEFAULT_BACKLOG
from .errors import TransportError

logger = logging.getLogger(__name__)

Address = Tuple[str, int]


class Stream:
    """Blocking byte stream over one connected TCP socket.

    Every socket failure, timeouts included, surfaces as ``TransportError``.
    """

    def __init__(self, sock: socket.socket, peer: Address | None = None):
        self.sock = sock
        self.peer = peer

    def __repr__(self) -> str:
        return f"Stream(peer={self.peer!r})"

    @property
    def peer_label(self) -> str:
        if self.peer is None:
            return "?"
        return f"{self.peer[0]}:{self.peer[1]}"

    def settimeout(self, timeout_ms: int) -> None:
        self.sock.settimeout(timeout_ms / 1000.0 if timeout_ms > 0 else None)

    def send_all(self, data: bytes) -> None:
        try:
            self.sock.sendall(data)
        except OSError as e:
            raise TransportError(f"send to {self.peer_label}: {e}") from e

    def recv(self, max_bytes: int) -> bytes:
        try:
            return self.sock.recv(max_bytes)
        except OSError as e:
            raise TransportError(f"recv from {self.peer_label}: {e}") from e

    def abort(self) -> None:
        """Unblock a pending send/recv in another thread; the owner still closes."""
        try:
            self.sock.shutdown(socket.SHUT_RDWR)
        except OSError as e:
            # already disconnected or closed
            logger.debug("abort %s: %s", self.peer_label, e)

    def close(self) -> None:
        self.sock.close()

    def __enter__(self) -> "Stream":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class Listener:
    def __init__(self, sock: socket.socket, owner: "Transport | None" = None):
        self.sock = sock
        self._owner = owner

    @property
    def address(self) -> Address:
        host, port = self.sock.getsockname()[:2]
        return host, port

    def accept(self, timeout_ms: int = 0) -> Stream | None:
        """Wait for the next connection; returns None if ``timeout_ms`` elapses first."""
        self.sock.settimeout(timeout_ms / 1000.0 if timeout_ms > 0 else None)
        try:
            conn, addr = self.sock.accept()
        except TimeoutError:
            return None
        except OSError as e:
            raise TransportError(f"accept: {e}") from e
        conn.settimeout(None)
        return Stream(conn, (addr[0], addr[1]))

    def close(self) -> None:
        self.sock.close()
        if self._owner is not None:
            self._owner._forget(self)


class Transport:
    """Explicit lifecycle around the process's use of sockets.

    ``connect`` and ``listen`` refuse to run outside ``startup()``/``cleanup()``;
    ``cleanup()`` closes any listener still open.
    """

    def __init__(self) -> None:
        self._started = False
        self._lock = threading.Lock()
        self._listeners: Set[Listener] = set()

    @property
    def started(self) -> bool:
        return self._started

    def startup(self) -> None:
        self._started = True
        logger.debug("transport started")

    def cleanup(self) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            listener.close()
        self._started = False
        logger.debug("transport cleaned up")

    def __enter__(self) -> "Transport":
        self.startup()
        return self

    def __exit__(self, *exc_info) -> None:
        self.cleanup()

    def _require_started(self) -> None:
        if not self._started:
            raise TransportError("transport used before startup()")

    def _forget(self, listener: Listener) -> None:
        with self._lock:
            self._listeners.discard(listener)

    def connect(self, host: str, port: int, timeout_ms: int = 0) -> Stream:
        self._require_started()
        timeout = timeout_ms / 1000.0 if timeout_ms > 0 else None
        try:
            sock = socket.create_connection((host, port), timeout=timeout)
        except OSError as e:
            raise TransportError(f"connect to {host}:{port}: {e}") from e
        return Stream(sock, (host, port))

    def listen(self, host: str, port: int, backlog: int = DEFAULT_BACKLOG) -> Listener:
        self._require_started()
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((host, port))
            sock.listen(backlog)
        except OSError as e:
            sock.close()
            raise TransportError(f"listen on {host}:{port}: {e}") from e
        listener = Listener(sock, owner=self)
        with self._lock:
            self._listeners.add(listener)
        return listener
