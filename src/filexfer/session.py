from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import BinaryIO

from .errors import IncompleteTransfer, TransportError
from .net import Stream


@dataclass(slots=True)
class TransferCursor:
    total: int
    offset: int = 0

    def __post_init__(self) -> None:
        if self.total < 0:
            raise ValueError(f"negative transfer size: {self.total}")
        if not 0 <= self.offset <= self.total:
            raise ValueError(f"offset {self.offset} outside [0, {self.total}]")

    @property
    def remaining(self) -> int:
        return self.total - self.offset

    @property
    def done(self) -> bool:
        return self.offset == self.total

    def advance(self, n: int) -> None:
        if n < 0 or n > self.remaining:
            raise ValueError(f"cannot advance by {n} with {self.remaining} bytes remaining")
        self.offset += n


@dataclass(slots=True)
class Metrics:
    name: bytes = b""
    total: int = 0
    bytes_moved: int = 0
    start_ts: float = field(default_factory=time.monotonic)
    end_ts: float | None = None

    @property
    def found(self) -> bool:
        return self.total >= 0

    @property
    def duration_s(self) -> float:
        if self.end_ts is None:
            return 0.0
        return max(0.0, self.end_ts - self.start_ts)

    @property
    def throughput_mbps(self) -> float:
        if self.duration_s <= 0:
            return 0.0
        return (self.bytes_moved * 8 / 1_000_000) / self.duration_s

    def finish(self, cursor: TransferCursor | None = None) -> "Metrics":
        if cursor is not None:
            self.bytes_moved = cursor.offset
        self.end_ts = time.monotonic()
        return self


def recv_into_file(stream: Stream, out: BinaryIO, cursor: TransferCursor, chunk_size: int) -> None:
    """Move ``cursor.remaining`` bytes from the stream into ``out``.

    The peer closing early, or the transport failing, raises
    ``IncompleteTransfer`` carrying the offset reached.
    """
    while not cursor.done:
        try:
            chunk = stream.recv(min(chunk_size, cursor.remaining))
        except TransportError as e:
            raise IncompleteTransfer(cursor.offset, cursor.total) from e
        if not chunk:
            raise IncompleteTransfer(cursor.offset, cursor.total)
        out.write(chunk)
        cursor.advance(len(chunk))
    out.flush()


def send_from_file(stream: Stream, f: BinaryIO, cursor: TransferCursor, chunk_size: int) -> None:
    """Move ``cursor.remaining`` bytes from ``f`` into the stream.

    Transport failures propagate as ``TransportError``; a file that shrinks
    under us raises ``IncompleteTransfer``.
    """
    while not cursor.done:
        chunk = f.read(min(chunk_size, cursor.remaining))
        if not chunk:
            raise IncompleteTransfer(cursor.offset, cursor.total, "file shrank during transfer")
        stream.send_all(chunk)
        cursor.advance(len(chunk))
