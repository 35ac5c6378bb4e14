"""Asynchronous virtual-stream reader using httpx."""

import httpx
from typing import BinaryIO, Optional
from contextlib import asynccontextmanager

from ..core.model import MAX_WINDOW
from .base import check_partial, range_header
from .http_sync import _size_from_url


# Global async client
_client: Optional[httpx.AsyncClient] = None


@asynccontextmanager
async def _get_client():
    """Get or create the global httpx AsyncClient."""
    global _client
    if _client is None:
        _client = httpx.AsyncClient(timeout=60.0)

    try:
        yield _client
    finally:
        # Don't close the client here - it's shared
        pass


class AsyncStreamReader:
    """Asynchronous range reader for a virtual stream URL."""

    def __init__(self, url: str):
        self.url = url
        self.bytes_fetched = 0
        self.requests_made = 0
        self.size: Optional[int] = _size_from_url(url)

    async def _fetch_range(self, start: int, end: Optional[int], retry_count: int = 0) -> bytes:
        """One range request; returns whatever window the server chose to send."""
        async with _get_client() as client:
            try:
                response = await client.get(self.url, headers=range_header(start, end))
            except httpx.RequestError as e:
                if retry_count == 0:
                    # One automatic retry
                    return await self._fetch_range(start, end, retry_count + 1)
                raise IOError(f"Range request failed: {e}")

        self.requests_made += 1
        data, total = check_partial(response.status_code, response.headers, response.content, start)
        if total is not None:
            self.size = total
        self.bytes_fetched += len(data)
        return data

    async def fetch(self, start: int, length: int) -> bytes:
        """Return exactly `length` bytes starting at absolute offset `start`."""
        if start < 0:
            raise IOError("Start offset cannot be negative")
        if length <= 0:
            raise IOError("Length must be positive")
        if self.size is not None and start + length > self.size:
            raise IOError(f"Not enough data: requested {length} bytes at offset {start}, "
                          f"but stream only has {self.size} bytes")

        buf = bytearray()
        stop = start + length
        while start + len(buf) < stop:
            data = await self._fetch_range(start + len(buf), stop - 1)
            if not data:
                raise IOError(f"Server returned no data at offset {start + len(buf)}")
            buf += data
        return bytes(buf[:length])

    async def download(self, sink: BinaryIO, start: int = 0, window: int = MAX_WINDOW) -> int:
        """Copy the stream from `start` to its end into `sink`; return bytes written."""
        written = 0
        pos = start
        while self.size is None or pos < self.size:
            data = await self._fetch_range(pos, None if self.size is None else min(pos + window, self.size) - 1)
            if not data:
                raise IOError(f"Server returned no data at offset {pos}")
            sink.write(data)
            written += len(data)
            pos += len(data)
        return written

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        # Client is shared, don't close it here
        pass


async def open_stream_reader_async(url: str) -> AsyncStreamReader:
    """Create an asynchronous stream reader."""
    return AsyncStreamReader(url)


async def close_global_client():
    """Close the global httpx client. Call this at application shutdown."""
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None
