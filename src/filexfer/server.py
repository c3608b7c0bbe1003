from __future__ import annotations

import logging
import os
import threading
import time
from pathlib import Path
from typing import Dict, Union

from .constants import (
    DEFAULT_BACKLOG,
    DEFAULT_CHUNK_SIZE,
    DEFAULT_POLL_MS,
    DEFAULT_PORT,
    DEFAULT_SHUTDOWN_GRACE_MS,
    DEFAULT_TIMEOUT_MS,
)
from .errors import TransferError
from .net import Address, Listener, Stream, Transport
from .responder import Responder

logger = logging.getLogger(__name__)


class FileServer:
    """Accepts connections and hands each one to its own Responder thread.

    Only bind/listen/accept failures escape ``serve_forever``; anything a
    session raises is logged and the loop keeps going.
    """

    def __init__(
        self,
        transport: Transport,
        root: Union[str, "os.PathLike[str]"] = ".",
        host: str = "0.0.0.0",
        port: int = DEFAULT_PORT,
        *,
        backlog: int = DEFAULT_BACKLOG,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        poll_ms: int = DEFAULT_POLL_MS,
    ):
        self.transport = transport
        self.root = Path(root)
        self.host = host
        self.port = port
        self.backlog = backlog
        self.chunk_size = chunk_size
        self.timeout_ms = timeout_ms
        self.poll_ms = poll_ms

        self._listener: Listener | None = None
        self._stop = threading.Event()
        self._idle = threading.Event()
        self._idle.set()
        self._lock = threading.Lock()
        self._sessions: Dict[threading.Thread, Stream] = {}

    @property
    def address(self) -> Address:
        if self._listener is None:
            raise RuntimeError("server is not bound")
        return self._listener.address

    @property
    def active_sessions(self) -> int:
        with self._lock:
            return len(self._sessions)

    def bind(self) -> Address:
        if self._listener is None:
            self._listener = self.transport.listen(self.host, self.port, self.backlog)
        return self._listener.address

    def serve_forever(self) -> None:
        self.bind()
        listener = self._listener
        assert listener is not None
        host, port = listener.address
        logger.info("server is ready at %s:%d serving %s", host, port, self.root)

        self._idle.clear()
        try:
            while not self._stop.is_set():
                stream = listener.accept(self.poll_ms)
                if stream is None:
                    continue
                logger.info("new connection: %s", stream.peer_label)
                self._dispatch(stream)
        finally:
            listener.close()
            self._listener = None
            self._idle.set()
            logger.info("server stopped accepting")

    def shutdown(
        self,
        wait: bool = True,
        timeout: float | None = None,
        grace_ms: int = DEFAULT_SHUTDOWN_GRACE_MS,
    ) -> None:
        """Stop accepting, give live sessions ``grace_ms`` to finish, then abort the rest."""
        self._stop.set()
        if not wait:
            return
        self._idle.wait(timeout)

        deadline = time.monotonic() + grace_ms / 1000.0
        with self._lock:
            sessions = list(self._sessions)
        for t in sessions:
            t.join(max(0.0, deadline - time.monotonic()))

        with self._lock:
            leftover = dict(self._sessions)
        for stream in leftover.values():
            logger.warning("aborting session with %s", stream.peer_label)
            stream.abort()
        for t in leftover:
            t.join(timeout)

    def __enter__(self) -> "FileServer":
        self.bind()
        return self

    def __exit__(self, *exc_info) -> None:
        self.shutdown()
        if self._listener is not None:
            self._listener.close()
            self._listener = None

    def _dispatch(self, stream: Stream) -> None:
        if self.timeout_ms > 0:
            stream.settimeout(self.timeout_ms)
        t = threading.Thread(
            target=self._run_session,
            args=(stream,),
            name=f"session-{stream.peer_label}",
            daemon=True,
        )
        with self._lock:
            self._sessions[t] = stream
        try:
            t.start()
        except RuntimeError as e:
            logger.error("cannot start session for %s: %s", stream.peer_label, e)
            with self._lock:
                self._sessions.pop(t, None)
            stream.close()

    def _run_session(self, stream: Stream) -> None:
        peer = stream.peer_label
        try:
            metrics = Responder(stream, self.root, chunk_size=self.chunk_size).run()
            if metrics.found:
                logger.info(
                    "sent %r to %s: %d bytes, speed = %.2f Mbits/sec",
                    metrics.name,
                    peer,
                    metrics.bytes_moved,
                    metrics.throughput_mbps,
                )
        except TransferError as e:
            logger.warning("session with %s failed: %s", peer, e)
        except Exception:
            logger.exception("session with %s crashed", peer)
        finally:
            with self._lock:
                self._sessions.pop(threading.current_thread(), None)
