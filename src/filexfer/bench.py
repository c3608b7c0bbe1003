from __future__ import annotations

import os
import tempfile
import threading
from dataclasses import dataclass
from pathlib import Path

from .constants import DEFAULT_CHUNK_SIZE, DEFAULT_TIMEOUT_MS
from .net import Transport
from .requester import fetch
from .server import FileServer

BENCH_FILE = "bench.bin"


@dataclass(frozen=True, slots=True)
class BenchmarkResult:
    bytes_transferred: int
    duration_s: float
    throughput_mbps: float
    chunk_size: int


def run_benchmark(
    *,
    size_bytes: int,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    timeout_ms: int = DEFAULT_TIMEOUT_MS,
) -> BenchmarkResult:
    with tempfile.TemporaryDirectory() as tmp:
        root = Path(tmp) / "served"
        root.mkdir()
        (root / BENCH_FILE).write_bytes(os.urandom(size_bytes))
        out_path = Path(tmp) / "received.bin"

        with Transport() as transport:
            server = FileServer(transport, root, "127.0.0.1", 0, chunk_size=chunk_size, poll_ms=50)
            host, port = server.bind()
            t = threading.Thread(target=server.serve_forever, daemon=True)
            t.start()
            try:
                metrics = fetch(
                    transport,
                    host,
                    port,
                    BENCH_FILE,
                    out_path,
                    timeout_ms=timeout_ms,
                    chunk_size=chunk_size,
                )
            finally:
                server.shutdown(timeout=10.0)
                t.join(timeout=10.0)

        actual_size = out_path.stat().st_size
        assert actual_size == size_bytes

    duration_s = max(0.001, metrics.duration_s)
    throughput_mbps = (size_bytes * 8 / 1_000_000) / duration_s

    return BenchmarkResult(
        bytes_transferred=size_bytes,
        duration_s=duration_s,
        throughput_mbps=throughput_mbps,
        chunk_size=chunk_size,
    )
