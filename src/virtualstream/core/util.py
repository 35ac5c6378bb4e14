from __future__ import annotations
import itertools
import re
import uuid
from typing import Callable, Mapping

from .model import ByteWindow, MalformedPathError, RangeNotSatisfiableError, MAX_WINDOW

IdGenerator = Callable[[], str]

STREAM_SEGMENT = "virtual-stream"

_RANGE_RE = re.compile(r"^\s*bytes\s*=\s*(\d+)\s*-\s*(\d*)\s*$", re.IGNORECASE)
_CONTENT_RANGE_RE = re.compile(r"^bytes (\d+)-(\d+)/(\d+|\*)$")


def random_id() -> str:
    """Short random token; unique enough for the lifetime of a pending request."""
    return uuid.uuid4().hex[:12]


class CounterIds:
    """Monotonic id generator: ``prefix-1``, ``prefix-2``, ..."""

    def __init__(self, prefix: str = "req"):
        self._prefix = prefix
        self._counter = itertools.count(1)

    def __call__(self) -> str:
        return f"{self._prefix}-{next(self._counter)}"


def parse_size(size_str: str) -> int:
    """Parse the total-size path segment; only ASCII digits are accepted."""
    if not (size_str.isascii() and size_str.isdigit()):
        raise MalformedPathError(f"Total size is not a non-negative integer: {size_str!r}")
    return int(size_str)


def parse_stream_path(path: str) -> tuple[str, int]:
    """Return ``(resource_id, total_size)`` from ``.../virtual-stream/{id}/{size}``."""
    parts = [p for p in path.split("/") if p]
    if len(parts) < 3 or parts[-3] != STREAM_SEGMENT:
        raise MalformedPathError(f"Not a virtual stream path: {path!r}")
    return parts[-2], parse_size(parts[-1])


def parse_range(header: str | None, total_size: int) -> tuple[int, int]:
    """Return the inclusive ``(start, end)`` asked for by a Range header.

    A missing or unparseable header, or one with end < start, selects the
    whole resource. End is limited to the last byte of the resource, so a
    start past the end comes back with end < start for the caller to reject.
    """
    last = total_size - 1
    m = _RANGE_RE.match(header) if header else None
    if m is None:
        return 0, last
    start = int(m.group(1))
    if m.group(2):
        end = int(m.group(2))
        if end < start:
            return 0, last
    else:
        end = last
    return start, min(end, last)


def clamp_window(start: int, end: int, max_window: int = MAX_WINDOW) -> int:
    """Return `end` reduced so the window holds at most `max_window` bytes."""
    if end - start > max_window - 1:
        return start + max_window - 1
    return end


def resolve_window(
    resource_id: str, size_str: str, headers: Mapping[str, str], max_window: int = MAX_WINDOW
) -> ByteWindow:
    """Parse, validate and clamp the byte window of an intercepted request.

    `resource_id` and `size_str` are the last two segments of the matched path.
    """
    if not resource_id:
        raise MalformedPathError("Empty resource id")
    total_size = parse_size(size_str)
    start, end = parse_range(headers.get("Range"), total_size)
    if start >= total_size:
        raise RangeNotSatisfiableError(start, total_size)
    return ByteWindow(resource_id, total_size, start, clamp_window(start, end, max_window))


def parse_content_range(value: str | None) -> tuple[int, int, int | None] | None:
    """Parse ``bytes start-end/total``; total is None for ``*``."""
    if not value:
        return None
    m = _CONTENT_RANGE_RE.match(value.strip())
    if m is None:
        return None
    total = None if m.group(3) == "*" else int(m.group(3))
    return int(m.group(1)), int(m.group(2)), total


def stream_path(resource_id: str, total_size: int) -> str:
    return f"/{STREAM_SEGMENT}/{resource_id}/{total_size}"
