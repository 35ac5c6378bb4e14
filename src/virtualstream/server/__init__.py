"""HTTP side of virtualstream: range responder, client hub and app factory."""

from .app import create_app, run_server, TABLE_KEY, HUB_KEY, RESPONDER_KEY
from .hub import ClientHub, WebSocketClient, Client, CLIENT_KINDS
from .responder import RangeResponder
