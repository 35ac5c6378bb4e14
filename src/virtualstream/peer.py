"""Controlling client: answers data requests from local files."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Mapping, Union
from urllib.parse import urlparse, urlunparse

import aiohttp

from .core.messages import DataError, DataRequest, DataResponse, decode, encode
from .core.model import ProtocolError
from .core.util import stream_path
from .io.local import LocalAsyncByteReader

log = logging.getLogger(__name__)

Source = Union[str, Path, LocalAsyncByteReader]


def peer_url(base_url: str) -> str:
    """``http://host:port`` → ``ws://host:port/peer``."""
    parts = urlparse(base_url)
    scheme = {"http": "ws", "https": "wss"}.get(parts.scheme, parts.scheme)
    return urlunparse((scheme, parts.netloc, "/peer", "", "", ""))


def stream_url(base_url: str, file_id: str, size: int) -> str:
    return base_url.rstrip("/") + stream_path(file_id, size)


class PeerClient:
    """Serves the bytes of `sources` (file id → path or reader) to one server."""

    def __init__(self, url: str, sources: Mapping[str, Source], kind: str = "window"):
        self.url = url
        self.kind = kind
        self.readers: dict[str, LocalAsyncByteReader] = {
            file_id: src if isinstance(src, LocalAsyncByteReader) else LocalAsyncByteReader(src)
            for file_id, src in sources.items()
        }
        self.answered = 0
        self.connected = asyncio.Event()

    async def answer(self, request: DataRequest) -> DataResponse | DataError:
        reader = self.readers.get(request.file_id)
        if reader is None:
            log.warning("Request %s for unknown file %r", request.request_id, request.file_id)
            return DataError(request.request_id)
        try:
            chunk = await reader.read_window(request.start, request.end)
        except (IOError, OSError) as e:
            log.warning("Request %s failed: %s", request.request_id, e)
            return DataError(request.request_id)
        return DataResponse(request.request_id, chunk)

    async def _handle_frame(self, ws: aiohttp.ClientWebSocketResponse, frame: str | bytes) -> None:
        try:
            message = decode(frame)
        except ProtocolError as e:
            log.warning("Skipping bad frame from server: %s", e)
            return
        if not isinstance(message, DataRequest):
            log.debug("Ignoring %s from server", type(message).__name__)
            return

        reply = encode(await self.answer(message))
        if isinstance(reply, bytes):
            await ws.send_bytes(reply)
        else:
            await ws.send_str(reply)
        self.answered += 1

    async def run(self) -> None:
        """Connect and answer requests until the server closes the socket."""
        async with aiohttp.ClientSession() as session:
            async with session.ws_connect(self.url, params={"type": self.kind}) as ws:
                log.info("Connected to %s as %s client", self.url, self.kind)
                self.connected.set()
                try:
                    async for msg in ws:
                        if msg.type in (aiohttp.WSMsgType.TEXT, aiohttp.WSMsgType.BINARY):
                            await self._handle_frame(ws, msg.data)
                        elif msg.type == aiohttp.WSMsgType.ERROR:
                            log.warning("Connection error: %s", ws.exception())
                finally:
                    self.connected.clear()
        log.info("Disconnected from %s", self.url)

    async def close(self) -> None:
        for reader in self.readers.values():
            await reader.close()
