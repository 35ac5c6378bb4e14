"""Serve virtual-stream range requests with bytes fetched from a peer."""

from __future__ import annotations

import logging
from typing import Optional

from aiohttp import web

from ..core.correlation import CorrelationTable
from ..core.messages import DataRequest
from ..core.model import (
    ByteWindow, MalformedPathError, RangeNotSatisfiableError,
    DEFAULT_CONTENT_TYPE, MAX_WINDOW,
)
from ..core.util import resolve_window
from .hub import ClientHub

log = logging.getLogger(__name__)

ERROR_BODY = "Error fetching data"


class RangeResponder:
    """Turns one intercepted request into one peer round trip and one response."""

    def __init__(
        self,
        table: CorrelationTable,
        hub: ClientHub,
        *,
        max_window: int = MAX_WINDOW,
        content_type: str = DEFAULT_CONTENT_TYPE,
    ):
        self.table = table
        self.hub = hub
        self.max_window = max_window
        self.content_type = content_type

    async def handle(self, request: web.Request) -> web.Response:
        try:
            match = request.match_info
            window = resolve_window(
                match.get("resource_id", ""), match.get("total_size", ""), request.headers, self.max_window
            )
        except MalformedPathError as e:
            return web.Response(status=400, text=str(e))
        except RangeNotSatisfiableError as e:
            return web.Response(
                status=416,
                text=str(e),
                headers={"Content-Range": f"bytes */{e.total_size}"},
            )

        chunk = await self.acquire(window)
        if chunk is None:
            return web.Response(status=500, text=ERROR_BODY)
        return self._partial_content(window, chunk)

    async def acquire(self, window: ByteWindow) -> Optional[bytes]:
        """Ask the first window client for the bytes of `window`; None on any failure."""
        clients = self.hub.match_all("window")
        if not clients:
            log.warning("No controlling client connected for %s", window.resource_id)
            return None
        # TODO: route to the client that started the stream once clients announce their resources
        client = clients[0]

        request_id, completion = self.table.open()
        message = DataRequest(request_id, window.start, window.end, window.resource_id)
        try:
            await client.post_message(message)
        except ConnectionError as e:
            log.warning("Could not reach client %s: %s", client.id, e)
            self.table.fulfill(request_id, None)
        return await completion

    def _partial_content(self, window: ByteWindow, chunk: bytes) -> web.Response:
        if len(chunk) != window.length:
            log.warning(
                "Peer sent %d bytes for %s (%s)",
                len(chunk), window.resource_id, window.content_range(),
            )
        return web.Response(
            status=206,
            body=chunk,
            headers={
                "Content-Type": self.content_type,
                "Content-Length": str(len(chunk)),
                "Content-Range": window.content_range(),
                "Accept-Ranges": "bytes",
            },
        )
