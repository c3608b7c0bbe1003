from __future__ import annotations

NAME_LEN_FORMAT = "!i"  # signed 32-bit, network byte order
SIZE_FORMAT = "!q"  # signed 64-bit, network byte order

MAX_NAME_LEN = 4096
NOT_FOUND = -1

DEFAULT_PORT = 9000
DEFAULT_BACKLOG = 10
DEFAULT_CHUNK_SIZE = 64 * 1024
DEFAULT_TIMEOUT_MS = 0  # no idle timeout
DEFAULT_POLL_MS = 500
DEFAULT_SHUTDOWN_GRACE_MS = 2000
