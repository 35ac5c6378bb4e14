"""Tests for the range responder."""

from urllib.parse import quote

import pytest
from aiohttp.test_utils import make_mocked_request

from virtualstream.core.correlation import CorrelationTable
from virtualstream.core.messages import DataError, DataRequest, DataResponse
from virtualstream.server.hub import ClientHub
from virtualstream.server.responder import RangeResponder, ERROR_BODY

from fakes import FakeClient, full_chunk

MiB = 1024 * 1024


def _request(resource_id="abc123", total_size="5000000", range_header=None):
    """A request as routed: the path segments arrive through match_info."""
    headers = {"Range": range_header} if range_header else {}
    path = f"/virtual-stream/{quote(resource_id, safe='')}/{quote(total_size, safe='')}"
    return make_mocked_request(
        "GET", path, headers=headers,
        match_info={"resource_id": resource_id, "total_size": total_size},
    )


def _setup(reply=full_chunk, timeout=5.0, kind="window"):
    table = CorrelationTable(timeout=timeout)
    hub = ClientHub(on_message=table.dispatch)
    client = FakeClient(table, reply=reply, kind=kind)
    hub.add(client)
    return table, hub, client, RangeResponder(table, hub)


class TestPartialContent:
    """Successful round trips."""

    @pytest.mark.asyncio
    async def test_explicit_range(self):
        """Range 0-999999 of a 5 MB stream comes back as one 206."""
        table, hub, client, responder = _setup()
        response = await responder.handle(_request(range_header="bytes=0-999999"))

        assert response.status == 206
        assert response.headers["Content-Range"] == "bytes 0-999999/5000000"
        assert response.headers["Content-Length"] == "1000000"
        assert response.headers["Content-Type"] == "video/mp4"
        assert response.headers["Accept-Ranges"] == "bytes"
        assert len(response.body) == 1000000
        assert len(table) == 0

    @pytest.mark.asyncio
    async def test_request_message_contents(self):
        """Exactly one REQUEST_DATA carries the window and the resource id."""
        table, hub, client, responder = _setup()
        await responder.handle(_request(range_header="bytes=100-199"))

        assert len(client.sent) == 1
        message = client.sent[0]
        assert isinstance(message, DataRequest)
        assert (message.start, message.end, message.file_id) == (100, 199, "abc123")

    @pytest.mark.asyncio
    async def test_open_end_near_tail(self):
        """Range without an end stops at the last byte."""
        table, hub, client, responder = _setup()
        response = await responder.handle(_request(range_header="bytes=4999000-"))

        assert response.status == 206
        assert response.headers["Content-Range"] == "bytes 4999000-4999999/5000000"
        assert response.headers["Content-Length"] == "1000"

    @pytest.mark.asyncio
    async def test_oversized_range_is_clamped(self):
        table, hub, client, responder = _setup()
        response = await responder.handle(_request(range_header="bytes=10-4000000"))

        assert response.headers["Content-Range"] == f"bytes 10-{10 + MiB - 1}/5000000"
        assert client.sent[0].end - client.sent[0].start == MiB - 1

    @pytest.mark.asyncio
    async def test_no_range_header(self):
        table, hub, client, responder = _setup()
        response = await responder.handle(_request())

        assert response.status == 206
        assert response.headers["Content-Range"] == f"bytes 0-{MiB - 1}/5000000"

    @pytest.mark.asyncio
    async def test_body_is_peer_buffer(self):
        """Content-Length follows the buffer the peer sent."""
        table, hub, client, responder = _setup(reply=lambda r: DataResponse(r.request_id, b"short"))
        response = await responder.handle(_request(range_header="bytes=0-99"))

        assert response.status == 206
        assert response.body == b"short"
        assert response.headers["Content-Length"] == "5"

    @pytest.mark.asyncio
    async def test_first_window_client_is_asked(self):
        table = CorrelationTable(timeout=5.0)
        hub = ClientHub(on_message=table.dispatch)
        worker = FakeClient(table, reply=full_chunk, kind="worker", client_id="w")
        first = FakeClient(table, reply=full_chunk, client_id="first")
        second = FakeClient(table, reply=full_chunk, client_id="second")
        for c in (worker, first, second):
            hub.add(c)

        response = await RangeResponder(table, hub).handle(_request(range_header="bytes=0-9"))
        assert response.status == 206
        assert [len(c.sent) for c in (worker, first, second)] == [0, 1, 0]


class TestFailures:
    """Every failure becomes a plain 500."""

    @pytest.mark.asyncio
    async def test_no_peer(self):
        """Without a window client nothing is sent and no entry is opened."""
        table, hub, client, responder = _setup(kind="worker")
        response = await responder.handle(_request(range_header="bytes=0-99"))

        assert response.status == 500
        assert response.text == ERROR_BODY
        assert client.sent == []
        assert len(table) == 0

    @pytest.mark.asyncio
    async def test_peer_error(self):
        table, hub, client, responder = _setup(reply=lambda r: DataError(r.request_id))
        response = await responder.handle(_request(range_header="bytes=0-99"))

        assert response.status == 500
        assert response.content_type == "text/plain"
        assert len(table) == 0

    @pytest.mark.asyncio
    async def test_peer_silence_times_out(self):
        """No answer: 500 after the timeout, entry gone, late answers ignored."""
        table, hub, client, responder = _setup(reply=None, timeout=0.05)
        response = await responder.handle(_request(range_header="bytes=0-99"))

        assert response.status == 500
        assert len(table) == 0
        request_id = client.sent[0].request_id
        assert table.fulfill(request_id, b"late") is False

    @pytest.mark.asyncio
    async def test_send_failure(self):
        """A dropped connection fails the request at once."""
        table, hub, client, responder = _setup(reply=None, timeout=30.0)

        async def broken(message):
            client.sent.append(message)
            raise ConnectionResetError("gone")

        client.post_message = broken
        response = await responder.handle(_request(range_header="bytes=0-99"))

        assert response.status == 500
        assert len(table) == 0


class TestBadInput:
    """Requests that never reach the peer."""

    @pytest.mark.asyncio
    async def test_start_beyond_size(self):
        table, hub, client, responder = _setup()
        response = await responder.handle(_request(range_header="bytes=5000000-"))

        assert response.status == 416
        assert response.headers["Content-Range"] == "bytes */5000000"
        assert client.sent == []

    @pytest.mark.asyncio
    async def test_bad_size(self):
        table, hub, client, responder = _setup()
        response = await responder.handle(_request("abc", "big"))

        assert response.status == 400
        assert client.sent == []

    @pytest.mark.asyncio
    async def test_garbage_range_defaults(self):
        table, hub, client, responder = _setup()
        response = await responder.handle(_request(range_header="bytes=oops"))

        assert response.status == 206
        assert response.headers["Content-Range"] == f"bytes 0-{MiB - 1}/5000000"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("total_size", ["²", "١٢", "-5", ""])
    async def test_non_ascii_digit_size(self, total_size):
        """Sizes that only look numeric are rejected, not crashed on."""
        table, hub, client, responder = _setup()
        response = await responder.handle(_request("abc", total_size))

        assert response.status == 400
        assert client.sent == []


class TestRoutedSegments:
    """The resource id is taken from the matched route, not re-split from the path."""

    @pytest.mark.asyncio
    async def test_encoded_slash_in_id(self):
        table, hub, client, responder = _setup()
        response = await responder.handle(_request("folder/clip.mp4", range_header="bytes=0-9"))

        assert response.status == 206
        assert client.sent[0].file_id == "folder/clip.mp4"

    @pytest.mark.asyncio
    async def test_unicode_id(self):
        table, hub, client, responder = _setup()
        response = await responder.handle(_request("clip é", "100"))

        assert response.status == 206
        assert response.headers["Content-Range"] == "bytes 0-99/100"
        assert client.sent[0].file_id == "clip é"
