from __future__ import annotations

import struct
from dataclasses import dataclass

from .constants import MAX_NAME_LEN, NAME_LEN_FORMAT, NOT_FOUND, SIZE_FORMAT
from .errors import FramingError
from .net import Stream

_NAME_LEN = struct.Struct(NAME_LEN_FORMAT)
_SIZE = struct.Struct(SIZE_FORMAT)


def recv_exact(stream: Stream, n: int, field: str) -> bytes:
    """Read exactly ``n`` bytes, retrying short reads until the peer closes."""
    buf = bytearray()
    while len(buf) < n:
        chunk = stream.recv(n - len(buf))
        if not chunk:
            raise FramingError(field, n, len(buf))
        buf.extend(chunk)
    return bytes(buf)


def encode_request(name: bytes) -> bytes:
    if len(name) > MAX_NAME_LEN:
        raise ValueError(f"file name too long: {len(name)} > {MAX_NAME_LEN}")
    return _NAME_LEN.pack(len(name)) + name


def decode_request(stream: Stream) -> bytes:
    (length,) = _NAME_LEN.unpack(recv_exact(stream, _NAME_LEN.size, "name length"))
    if length < 0 or length > MAX_NAME_LEN:
        raise FramingError("name length", MAX_NAME_LEN, length, f"bad name length: {length}")
    return recv_exact(stream, length, "name")


def encode_size(n: int) -> bytes:
    try:
        return _SIZE.pack(n)
    except struct.error as e:
        raise ValueError(f"size out of range: {n}") from e


def decode_size(stream: Stream) -> int:
    (size,) = _SIZE.unpack(recv_exact(stream, _SIZE.size, "size header"))
    return size


@dataclass(frozen=True, slots=True)
class FileRequest:
    name: bytes

    def to_bytes(self) -> bytes:
        return encode_request(self.name)

    @staticmethod
    def read_from(stream: Stream) -> "FileRequest":
        return FileRequest(decode_request(stream))


@dataclass(frozen=True, slots=True)
class SizeHeader:
    size: int

    @property
    def found(self) -> bool:
        return self.size >= 0

    def to_bytes(self) -> bytes:
        return encode_size(self.size)

    @staticmethod
    def read_from(stream: Stream) -> "SizeHeader":
        return SizeHeader(decode_size(stream))

    @staticmethod
    def not_found() -> "SizeHeader":
        return SizeHeader(NOT_FOUND)
