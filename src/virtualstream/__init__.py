"""virtualstream - serve HTTP byte ranges of files that live in a peer process."""

from .core.model import (                                             # re-export
    ByteWindow, ServerConfig, MalformedPathError, RangeNotSatisfiableError,
    ProtocolError, StreamUnavailableError, MAX_WINDOW, REQUEST_TIMEOUT,
)
from .core.correlation import CorrelationTable
from .core.messages import DataRequest, DataResponse, DataError
from .io.http_async import AsyncStreamReader, open_stream_reader_async
from .io.http_sync import StreamReader, open_stream_reader
from .peer import PeerClient
from .server import create_app, RangeResponder, ClientHub


async def read_stream(url: str, start: int, length: int) -> bytes:
    """Read `length` bytes at `start` from a virtual stream URL asynchronously."""
    reader = await open_stream_reader_async(url)
    return await reader.fetch(start, length)


def read_stream_sync(url: str, start: int, length: int) -> bytes:
    """Read `length` bytes at `start` from a virtual stream URL synchronously."""
    return open_stream_reader(url).fetch(start, length)


__all__ = [
    "read_stream", "read_stream_sync",
    "CorrelationTable", "RangeResponder", "ClientHub", "PeerClient", "create_app",
    "StreamReader", "AsyncStreamReader", "open_stream_reader", "open_stream_reader_async",
    "DataRequest", "DataResponse", "DataError",
    "ByteWindow", "ServerConfig", "MAX_WINDOW", "REQUEST_TIMEOUT",
    "MalformedPathError", "RangeNotSatisfiableError", "ProtocolError", "StreamUnavailableError",
]
