"""Data-exchange messages between the server and its controlling clients.

Control messages travel as JSON text frames. ``DATA_RESPONSE`` carries raw
bytes, so it is sent as a binary frame::

    +----------------+-------------------+-----------------+
    | id length (>H) | request id, UTF-8 | chunk bytes ... |
    +----------------+-------------------+-----------------+
"""

from __future__ import annotations

import json
import struct
from dataclasses import dataclass
from typing import Union

from .model import ProtocolError

REQUEST_DATA = "REQUEST_DATA"
DATA_RESPONSE = "DATA_RESPONSE"
DATA_ERROR = "DATA_ERROR"

_ID_LEN = struct.Struct(">H")


@dataclass(slots=True, frozen=True)
class DataRequest:
    request_id: str
    start: int
    end: int
    file_id: str


@dataclass(slots=True, frozen=True)
class DataResponse:
    request_id: str
    chunk: bytes


@dataclass(slots=True, frozen=True)
class DataError:
    request_id: str


DataMessage = Union[DataRequest, DataResponse, DataError]


def encode(message: DataMessage) -> str | bytes:
    """Return the WebSocket frame payload for `message`."""
    if isinstance(message, DataResponse):
        rid = message.request_id.encode("utf-8")
        return _ID_LEN.pack(len(rid)) + rid + bytes(message.chunk)
    if isinstance(message, DataRequest):
        return json.dumps({
            "type": REQUEST_DATA,
            "requestId": message.request_id,
            "start": message.start,
            "end": message.end,
            "fileId": message.file_id,
        })
    if isinstance(message, DataError):
        return json.dumps({"type": DATA_ERROR, "requestId": message.request_id})
    raise TypeError(f"Not a data message: {message!r}")


def frame_limit(max_window: int) -> int:
    """Largest frame a peer can send when answering a window of `max_window` bytes."""
    return _ID_LEN.size + 0xFFFF + max_window


def _decode_binary(frame: bytes) -> DataResponse:
    if len(frame) < _ID_LEN.size:
        raise ProtocolError("Binary frame too short for a request id")
    (id_len,) = _ID_LEN.unpack_from(frame)
    body_off = _ID_LEN.size + id_len
    if len(frame) < body_off:
        raise ProtocolError(f"Binary frame truncated: id needs {id_len} bytes")
    try:
        rid = frame[_ID_LEN.size:body_off].decode("utf-8")
    except UnicodeDecodeError as e:
        raise ProtocolError(f"Request id is not UTF-8: {e}")
    return DataResponse(rid, bytes(frame[body_off:]))


def _decode_text(frame: str) -> DataMessage:
    try:
        obj = json.loads(frame)
    except json.JSONDecodeError as e:
        raise ProtocolError(f"Invalid JSON frame: {e}")
    if not isinstance(obj, dict):
        raise ProtocolError("JSON frame is not an object")

    kind = obj.get("type")
    rid = obj.get("requestId")
    if not isinstance(rid, str):
        raise ProtocolError(f"{kind} frame without a string requestId")

    if kind == DATA_ERROR:
        return DataError(rid)
    if kind == REQUEST_DATA:
        try:
            return DataRequest(rid, int(obj["start"]), int(obj["end"]), str(obj["fileId"]))
        except (KeyError, TypeError, ValueError) as e:
            raise ProtocolError(f"Malformed {REQUEST_DATA} frame: {e}")
    raise ProtocolError(f"Unknown message type: {kind!r}")


def decode(frame: str | bytes) -> DataMessage:
    """Parse one WebSocket frame payload into a data message."""
    if isinstance(frame, (bytes, bytearray, memoryview)):
        return _decode_binary(bytes(frame))
    return _decode_text(frame)
