"""Local file readers using mmap; the byte source behind a peer."""

import asyncio
import io
import mmap
from pathlib import Path
from typing import Union


class LocalByteReader:
    """Synchronous local file reader using mmap."""

    def __init__(self, path: Union[Path, str]):
        self.bytes_fetched = 0
        self.requests_made = 0
        self._file = open(path, 'rb')
        self._mmap = None
        self._data = None  # empty files, or files mmap refuses

    def _source(self):
        if self._mmap is None and self._data is None:
            if self._file is None:
                raise IOError("Reader is closed")
            self._file.seek(0, 2)
            if self._file.tell() == 0:
                # mmap refuses empty files
                self._data = b""
            else:
                try:
                    self._mmap = mmap.mmap(self._file.fileno(), 0, access=mmap.ACCESS_READ)
                except (io.UnsupportedOperation, OSError):
                    self._file.seek(0)
                    self._data = self._file.read()
        return self._mmap if self._mmap is not None else self._data

    @property
    def size(self) -> int:
        """Return the total size of the file in bytes."""
        return len(self._source())

    def read_window(self, start: int, end: int) -> bytes:
        """Return bytes ``start..end`` inclusive, cut short at end of file."""
        self.requests_made += 1
        source = self._source()
        if start < 0 or end < start:
            raise IOError(f"Invalid window {start}-{end}")
        if start >= len(source):
            raise IOError(f"Window starts at {start}, file only has {len(source)} bytes")

        data = source[start:end + 1]
        self.bytes_fetched += len(data)
        return data

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def close(self):
        """Close mmap and file."""
        if self._mmap is not None:
            self._mmap.close()
            self._mmap = None
        if self._file is not None:
            self._file.close()
            self._file = None


class LocalAsyncByteReader:
    """Asynchronous local file reader - thin wrapper around sync reader."""

    def __init__(self, path: Union[Path, str]):
        self._sync_reader = LocalByteReader(path)

    @property
    def size(self) -> int:
        """Return the total size of the file in bytes."""
        return self._sync_reader.size

    @property
    def bytes_fetched(self) -> int:
        return self._sync_reader.bytes_fetched

    @property
    def requests_made(self) -> int:
        return self._sync_reader.requests_made

    async def read_window(self, start: int, end: int) -> bytes:
        """Return bytes ``start..end`` inclusive, cut short at end of file."""
        return await asyncio.to_thread(self._sync_reader.read_window, start, end)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self):
        """Close the underlying sync reader."""
        await asyncio.to_thread(self._sync_reader.close)
