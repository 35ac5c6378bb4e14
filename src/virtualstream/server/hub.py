"""Registry of connected controlling clients and their WebSocket endpoint."""

from __future__ import annotations

import logging
from typing import Callable, Protocol, runtime_checkable

from aiohttp import WSMsgType, web

from ..core.messages import DataMessage, decode, encode, frame_limit
from ..core.model import ProtocolError, MAX_WINDOW
from ..core.util import random_id

log = logging.getLogger(__name__)

CLIENT_KINDS = ("window", "worker", "sharedworker")


@runtime_checkable
class Client(Protocol):
    """A connected controlling client that can receive data requests."""

    id: str
    kind: str

    async def post_message(self, message: DataMessage) -> None:
        ...


class WebSocketClient:
    """Client reached through an aiohttp WebSocket."""

    def __init__(self, ws: web.WebSocketResponse, kind: str, client_id: str | None = None):
        self.ws = ws
        self.kind = kind
        self.id = client_id or random_id()

    async def post_message(self, message: DataMessage) -> None:
        payload = encode(message)
        if isinstance(payload, bytes):
            await self.ws.send_bytes(payload)
        else:
            await self.ws.send_str(payload)

    def __repr__(self) -> str:
        return f"WebSocketClient(id={self.id!r}, kind={self.kind!r})"


class ClientHub:
    """Connected clients in connection order; inbound messages go to `on_message`."""

    def __init__(
        self,
        on_message: Callable[[DataMessage], object] | None = None,
        *,
        max_window: int = MAX_WINDOW,
    ):
        self._clients: list[Client] = []
        self.on_message = on_message
        self.max_msg_size = frame_limit(max_window)

    def __len__(self) -> int:
        return len(self._clients)

    def add(self, client: Client) -> None:
        self._clients.append(client)
        log.info("Client %s (%s) connected, %d total", client.id, client.kind, len(self._clients))

    def remove(self, client: Client) -> None:
        try:
            self._clients.remove(client)
        except ValueError:
            return
        log.info("Client %s disconnected, %d left", client.id, len(self._clients))

    def match_all(self, kind: str = "window") -> list[Client]:
        """Return connected clients of `kind` (``"all"`` for every client), oldest first."""
        if kind == "all":
            return list(self._clients)
        return [c for c in self._clients if c.kind == kind]

    def _deliver(self, frame: str | bytes, client: Client) -> None:
        try:
            message = decode(frame)
        except ProtocolError as e:
            log.warning("Skipping bad frame from client %s: %s", client.id, e)
            return
        if self.on_message is not None:
            self.on_message(message)

    async def handle_websocket(self, request: web.Request) -> web.WebSocketResponse:
        """``GET /peer?type=<kind>``: register a controlling client until it disconnects."""
        kind = request.query.get("type", "window")
        if kind not in CLIENT_KINDS:
            raise web.HTTPBadRequest(text=f"Unknown client type: {kind}")

        ws = web.WebSocketResponse(max_msg_size=self.max_msg_size)
        await ws.prepare(request)
        client = WebSocketClient(ws, kind)
        self.add(client)
        try:
            async for msg in ws:
                if msg.type in (WSMsgType.TEXT, WSMsgType.BINARY):
                    self._deliver(msg.data, client)
                elif msg.type == WSMsgType.ERROR:
                    log.warning("Client %s connection error: %s", client.id, ws.exception())
        finally:
            self.remove(client)
        return ws

    async def close(self) -> None:
        """Close every WebSocket connection."""
        for client in list(self._clients):
            ws = getattr(client, "ws", None)
            if ws is not None:
                await ws.close(code=1001, message=b"Server shutdown")
        self._clients.clear()
