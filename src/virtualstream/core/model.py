from __future__ import annotations
from dataclasses import dataclass

MAX_WINDOW = 1024 * 1024          # 1 MiB served per range request
REQUEST_TIMEOUT = 15.0            # seconds a peer has to answer
DEFAULT_CONTENT_TYPE = "video/mp4"


@dataclass(slots=True, frozen=True)
class ByteWindow:
    resource_id: str
    total_size: int
    start: int
    end: int                  # inclusive

    @property
    def length(self) -> int:
        return self.end - self.start + 1

    def content_range(self) -> str:
        return f"bytes {self.start}-{self.end}/{self.total_size}"


@dataclass(slots=True)
class ServerConfig:
    host: str = "127.0.0.1"
    port: int = 8080
    timeout: float = REQUEST_TIMEOUT
    max_window: int = MAX_WINDOW
    content_type: str = DEFAULT_CONTENT_TYPE


class MalformedPathError(ValueError):
    """Raised when a path does not end in ``virtual-stream/{id}/{size}``."""
    pass


class RangeNotSatisfiableError(ValueError):
    """Raised when the requested start lies beyond the declared total size."""

    def __init__(self, start: int, total_size: int):
        super().__init__(f"Range start {start} outside resource of {total_size} bytes")
        self.start = start
        self.total_size = total_size


class ProtocolError(ValueError):
    """Raised when a peer frame cannot be decoded."""
    pass


class StreamUnavailableError(IOError):
    """Raised by stream readers when the server could not obtain the bytes."""
    pass
