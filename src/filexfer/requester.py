from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Union

from .constants import DEFAULT_CHUNK_SIZE, DEFAULT_TIMEOUT_MS
from .errors import RemoteFileNotFound
from .framing import FileRequest, SizeHeader
from .net import Stream, Transport
from .session import Metrics, TransferCursor, recv_into_file

logger = logging.getLogger(__name__)

PathLike = Union[str, "os.PathLike[str]"]


@dataclass(slots=True)
class Requester:
    """Client side of one session: request ``remote_name`` and write it to ``dest``.

    The destination is only created once the responder has reported a size,
    so a not-found answer leaves nothing behind. On ``IncompleteTransfer`` the
    partial destination is kept.
    """

    stream: Stream
    remote_name: bytes
    dest: PathLike
    chunk_size: int = DEFAULT_CHUNK_SIZE

    def run(self) -> Metrics:
        metrics = Metrics(name=self.remote_name)
        with self.stream:
            self.stream.send_all(FileRequest(self.remote_name).to_bytes())

            header = SizeHeader.read_from(self.stream)
            if not header.found:
                raise RemoteFileNotFound(self.remote_name)
            metrics.total = header.size
            logger.debug("size header for %r: %d bytes", self.remote_name, header.size)

            cursor = TransferCursor(header.size)
            try:
                with open(self.dest, "wb") as out:
                    recv_into_file(self.stream, out, cursor, self.chunk_size)
            finally:
                metrics.finish(cursor)

        logger.info(
            "received %r -> %s: %d bytes, %.2f Mbits/sec",
            self.remote_name,
            os.fspath(self.dest),
            metrics.bytes_moved,
            metrics.throughput_mbps,
        )
        return metrics


def fetch(
    transport: Transport,
    host: str,
    port: int,
    remote_name: Union[str, bytes],
    dest: PathLike,
    *,
    timeout_ms: int = DEFAULT_TIMEOUT_MS,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> Metrics:
    if isinstance(remote_name, str):
        remote_name = os.fsencode(remote_name)
    stream = transport.connect(host, port, timeout_ms=timeout_ms)
    return Requester(stream, remote_name, dest, chunk_size=chunk_size).run()
