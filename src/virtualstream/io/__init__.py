"""I/O layer for virtualstream - local byte sources and stream readers."""

# Re-export these for import convenience
from .local import LocalByteReader, LocalAsyncByteReader
from .http_sync import StreamReader, open_stream_reader
from .http_async import AsyncStreamReader, open_stream_reader_async, close_global_client
