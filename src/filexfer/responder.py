from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO

from .constants import DEFAULT_CHUNK_SIZE
from .framing import FileRequest, SizeHeader
from .net import Stream
from .session import Metrics, TransferCursor, send_from_file

logger = logging.getLogger(__name__)


def resolve(root: Path, name: bytes) -> Path | None:
    """Map a requested name onto a regular file under ``root``, or None."""
    text = os.fsdecode(name)
    if not text or "\x00" in text:
        return None
    try:
        base = root.resolve()
        candidate = (base / text).resolve()
        if not candidate.is_relative_to(base) or not candidate.is_file():
            return None
    except (OSError, RuntimeError) as e:
        # name too long, unreadable parent, symlink loop
        logger.debug("cannot resolve %r: %s", name, e)
        return None
    return candidate


def open_requested(root: Path, name: bytes) -> BinaryIO | None:
    path = resolve(root, name)
    if path is None:
        return None
    try:
        return open(path, "rb")
    except OSError as e:
        logger.debug("cannot open %s: %s", path, e)
        return None


@dataclass(slots=True)
class Responder:
    """Server side of one session, bound to a single accepted stream.

    Framing and transport errors propagate to the caller; the stream and the
    file are closed on every path.
    """

    stream: Stream
    root: Path
    chunk_size: int = DEFAULT_CHUNK_SIZE

    def run(self) -> Metrics:
        with self.stream:
            request = FileRequest.read_from(self.stream)
            metrics = Metrics(name=request.name)

            f = open_requested(self.root, request.name)
            if f is None:
                logger.info("no such file %r requested by %s", request.name, self.stream.peer_label)
                self.stream.send_all(SizeHeader.not_found().to_bytes())
                metrics.total = SizeHeader.not_found().size
                return metrics.finish()

            with f:
                total = os.fstat(f.fileno()).st_size
                metrics.total = total
                self.stream.send_all(SizeHeader(total).to_bytes())

                cursor = TransferCursor(total)
                try:
                    send_from_file(self.stream, f, cursor, self.chunk_size)
                finally:
                    metrics.finish(cursor)

        return metrics
