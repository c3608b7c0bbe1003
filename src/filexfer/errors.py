from __future__ import annotations


class TransferError(Exception):
    """Base class for failures that abort a single session."""


class TransportError(TransferError):
    """Raised when a connect/send/recv/accept/close primitive fails."""


class FramingError(TransferError):
    """Raised when the stream ends (or lies) before a header field is complete."""

    def __init__(self, field: str, expected: int, received: int, message: str | None = None):
        self.field = field
        self.expected = expected
        self.received = received
        if message is None:
            message = f"short read on {field}: expected {expected} bytes, got {received}"
        super().__init__(message)


class RemoteFileNotFound(TransferError):
    """Raised when the responder answers with the not-found size sentinel."""

    def __init__(self, name: bytes):
        self.name = name
        super().__init__(f"no such file {name!r} on the server")


class IncompleteTransfer(TransferError):
    """Raised when fewer bytes than the agreed size were moved."""

    def __init__(self, offset: int, total: int, message: str | None = None):
        self.offset = offset
        self.total = total
        if message is None:
            message = f"transfer stopped at offset {offset} of {total} bytes"
        super().__init__(message)
