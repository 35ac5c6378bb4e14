"""Shared request headers and response checks for the stream readers."""

from typing import Mapping, Optional

from ..core.model import StreamUnavailableError
from ..core.util import parse_content_range


def range_header(start: int, end: Optional[int]) -> dict[str, str]:
    return {"Range": f"bytes={start}-{'' if end is None else end}"}


def check_partial(status: int, headers: Mapping[str, str], body: bytes, start: int) -> tuple[bytes, Optional[int]]:
    """Validate a range response; return ``(body, total_size)``.

    Only 206 with a Content-Range beginning at `start` is accepted.
    """
    if status == 206:
        parsed = parse_content_range(headers.get("content-range"))
        if parsed is None:
            raise IOError("Partial response without a usable Content-Range")
        got_start, _, total = parsed
        if got_start != start:
            raise IOError(f"Server answered from offset {got_start}, asked for {start}")
        return body, total
    if status == 416:
        raise IOError(f"Range starting at {start} not satisfiable")
    if status >= 500:
        raise StreamUnavailableError(f"Server could not fetch data (status {status})")
    raise IOError(f"Range request failed with status {status}")
