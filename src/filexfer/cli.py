from __future__ import annotations

import argparse
import dataclasses
import json
import logging
import os

from .bench import run_benchmark
from .constants import DEFAULT_BACKLOG, DEFAULT_CHUNK_SIZE, DEFAULT_PORT, DEFAULT_TIMEOUT_MS
from .errors import RemoteFileNotFound, TransferError
from .net import Transport
from .requester import fetch
from .server import FileServer

logger = logging.getLogger(__name__)


def cmd_serve(args: argparse.Namespace) -> int:
    with Transport() as transport:
        server = FileServer(
            transport,
            args.root,
            args.host,
            args.port,
            backlog=args.backlog,
            chunk_size=args.chunk_size,
            timeout_ms=args.timeout_ms,
        )
        try:
            server.bind()
        except TransferError as e:
            logger.error("cannot start server: %s", e)
            return 1
        try:
            server.serve_forever()
        except KeyboardInterrupt:
            logger.info("interrupted; waiting for %d session(s)", server.active_sessions)
        except TransferError as e:
            logger.error("server stopped: %s", e)
            return 1
        finally:
            server.shutdown()
    return 0


def cmd_fetch(args: argparse.Namespace) -> int:
    with Transport() as transport:
        try:
            metrics = fetch(
                transport,
                args.host,
                args.port,
                args.remote,
                args.local,
                timeout_ms=args.timeout_ms,
                chunk_size=args.chunk_size,
            )
        except RemoteFileNotFound as e:
            logger.error("%s", e)
            return 1
        except TransferError as e:
            logger.error("fetch %s failed: %s", args.remote, e)
            return 1
        except OSError as e:
            logger.error("cannot write %s: %s", args.local, e)
            return 1

    payload = {
        "role": "requester",
        "name": os.fsdecode(metrics.name),
        "bytes": metrics.bytes_moved,
        "seconds": metrics.duration_s,
        "mbps": metrics.throughput_mbps,
    }
    print(json.dumps(payload, indent=2) if args.json else payload)
    return 0


def cmd_bench(args: argparse.Namespace) -> int:
    r = run_benchmark(
        size_bytes=args.size_bytes,
        chunk_size=args.chunk_size,
        timeout_ms=args.timeout_ms,
    )
    payload = {"role": "bench", **dataclasses.asdict(r)}
    print(json.dumps(payload, indent=2) if args.json else payload)
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="filexfer", description="One-file-per-connection transfer over TCP.")
    p.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])
    sub = p.add_subparsers(dest="cmd", required=True)

    def add_common(x: argparse.ArgumentParser) -> None:
        x.add_argument("--timeout-ms", type=int, default=DEFAULT_TIMEOUT_MS, help="idle timeout, 0 for none")
        x.add_argument("--chunk-size", type=int, default=DEFAULT_CHUNK_SIZE)

    serve = sub.add_parser("serve", help="serve files from a directory")
    add_common(serve)
    serve.add_argument("--host", default="0.0.0.0")
    serve.add_argument("--port", type=int, default=DEFAULT_PORT)
    serve.add_argument("--root", default=".")
    serve.add_argument("--backlog", type=int, default=DEFAULT_BACKLOG)
    serve.set_defaults(func=cmd_serve)

    get = sub.add_parser("fetch", help="request one file from a server")
    add_common(get)
    get.add_argument("host")
    get.add_argument("port", type=int)
    get.add_argument("remote")
    get.add_argument("local")
    get.add_argument("--json", action="store_true")
    get.set_defaults(func=cmd_fetch)

    bench = sub.add_parser("bench", help="loopback throughput benchmark")
    add_common(bench)
    bench.add_argument("--size-bytes", type=int, default=5_000_000)
    bench.add_argument("--json", action="store_true")
    bench.set_defaults(func=cmd_bench)

    return p


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(asctime)s [%(levelname)s] %(message)s")
    return int(args.func(args))


if __name__ == "__main__":
    raise SystemExit(main())
