"""filexfer: one file per connection over a reliable byte stream.

A requester sends a length-prefixed file name, the responder answers with a
signed 64-bit size (negative means "not found") and then exactly that many
bytes. Framing, per-session logic and the accept loop live in separate
modules so each can be tested on its own.
"""

from .errors import FramingError, IncompleteTransfer, RemoteFileNotFound, TransferError, TransportError
from .net import Transport
from .requester import Requester, fetch
from .responder import Responder
from .server import FileServer

__all__ = [
    "FileServer",
    "FramingError",
    "IncompleteTransfer",
    "RemoteFileNotFound",
    "Requester",
    "Responder",
    "TransferError",
    "Transport",
    "TransportError",
    "fetch",
]
