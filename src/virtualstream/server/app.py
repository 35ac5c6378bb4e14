"""aiohttp application wiring the hub, the correlation table and the responder."""

from __future__ import annotations

import logging

from aiohttp import web

from ..core.correlation import CorrelationTable
from ..core.model import ServerConfig
from .hub import ClientHub
from .responder import RangeResponder

log = logging.getLogger(__name__)

TABLE_KEY = web.AppKey("table", CorrelationTable)
HUB_KEY = web.AppKey("hub", ClientHub)
RESPONDER_KEY = web.AppKey("responder", RangeResponder)

# any number of leading segments may precede /virtual-stream/
STREAM_ROUTE = "/{prefix:(?:.*/)?}virtual-stream/{resource_id}/{total_size}"


async def _on_shutdown(app: web.Application) -> None:
    app[TABLE_KEY].close()
    await app[HUB_KEY].close()


def create_app(config: ServerConfig | None = None, *, table: CorrelationTable | None = None) -> web.Application:
    """Build the server application.

    Routes:
      GET [/prefix]/virtual-stream/{resource_id}/{total_size}  range responses
      GET /peer?type=window                                    controlling-client WebSocket
    """
    config = config or ServerConfig()
    table = table or CorrelationTable(config.timeout)
    hub = ClientHub(on_message=table.dispatch, max_window=config.max_window)
    responder = RangeResponder(
        table, hub, max_window=config.max_window, content_type=config.content_type
    )

    app = web.Application()
    app[TABLE_KEY] = table
    app[HUB_KEY] = hub
    app[RESPONDER_KEY] = responder
    app.router.add_get(STREAM_ROUTE, responder.handle)
    app.router.add_get("/peer", hub.handle_websocket)
    app.on_shutdown.append(_on_shutdown)
    return app


def run_server(config: ServerConfig) -> None:
    """Serve until interrupted."""
    log.info("Serving virtual streams on http://%s:%d", config.host, config.port)
    web.run_app(create_app(config), host=config.host, port=config.port, print=None)
