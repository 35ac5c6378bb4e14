"""Synchronous virtual-stream reader using requests."""

import requests
from typing import BinaryIO, Optional
from urllib.parse import urlparse

from ..core.model import MalformedPathError, MAX_WINDOW
from ..core.util import parse_stream_path
from .base import check_partial, range_header


# Module-level session for connection pooling
_session = None


def _get_session():
    """Get or create the global requests session."""
    global _session
    if _session is None:
        _session = requests.Session()
    return _session


def _size_from_url(url: str) -> Optional[int]:
    try:
        return parse_stream_path(urlparse(url).path)[1]
    except MalformedPathError:
        return None


class StreamReader:
    """Synchronous range reader for a virtual stream URL.

    The server serves at most one window per response, so a fetch keeps
    asking from the next offset until it has what it needs.
    """

    def __init__(self, url: str, timeout: float = 30):
        self.url = url
        self.timeout = timeout
        self.bytes_fetched = 0
        self.requests_made = 0
        self.size: Optional[int] = _size_from_url(url)
        self._session = _get_session()

    def _fetch_range(self, start: int, end: Optional[int], retry_count: int = 0) -> bytes:
        """One range request; returns whatever window the server chose to send."""
        try:
            response = self._session.get(self.url, headers=range_header(start, end), timeout=self.timeout)
        except requests.RequestException as e:
            if retry_count == 0:
                # One automatic retry
                return self._fetch_range(start, end, retry_count + 1)
            raise IOError(f"Range request failed: {e}")

        self.requests_made += 1
        data, total = check_partial(response.status_code, response.headers, response.content, start)
        if total is not None:
            self.size = total
        self.bytes_fetched += len(data)
        return data

    def fetch(self, start: int, length: int) -> bytes:
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
            data = self._fetch_range(start + len(buf), stop - 1)
            if not data:
                raise IOError(f"Server returned no data at offset {start + len(buf)}")
            buf += data
        return bytes(buf[:length])

    def download(self, sink: BinaryIO, start: int = 0, window: int = MAX_WINDOW) -> int:
        """Copy the stream from `start` to its end into `sink`; return bytes written."""
        written = 0
        pos = start
        while self.size is None or pos < self.size:
            data = self._fetch_range(pos, None if self.size is None else min(pos + window, self.size) - 1)
            if not data:
                raise IOError(f"Server returned no data at offset {pos}")
            sink.write(data)
            written += len(data)
            pos += len(data)
        return written

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        # Session is shared, don't close it here
        pass


def open_stream_reader(url: str) -> StreamReader:
    """Create a synchronous stream reader."""
    return StreamReader(url)
