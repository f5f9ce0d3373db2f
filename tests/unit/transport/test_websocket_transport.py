"""
Unit tests for the WebSocket transport.

The socket is replaced by an in-memory double, so no connection is opened.
"""

import asyncio
import json

import pytest
from websockets.exceptions import ConnectionClosedError
from websockets.protocol import State

from erisdb.transport.base import TransportError, TransportType
from erisdb.transport.websocket_transport import WebSocketPipe, WebSocketTransport, decode_frame, is_open
from tests.utils.socket_doubles import FakeConnector, FakeSocket, iterate, wait_until

pytestmark = pytest.mark.core

URL = "ws://node.example:1337/socketrpc"


async def never_ending():
    await asyncio.Event().wait()
    yield  # pragma: no cover


class TestWebSocketPipe:
    """Test the raw frame pipe."""

    @pytest.mark.asyncio
    async def test_connects_on_first_pull(self):
        connector = FakeConnector()
        inbound = WebSocketPipe(URL, connect=connector)(iterate([]))

        assert connector.urls == []
        assert [frame async for frame in inbound] == []
        assert connector.urls == [URL]

    @pytest.mark.asyncio
    async def test_sends_in_order_then_closes(self):
        connector = FakeConnector()
        inbound = WebSocketPipe(URL, connect=connector)(iterate(["first", "second"]))

        frames = [frame async for frame in inbound]

        socket = connector.socket
        assert frames == []
        assert socket.sent == ["first", "second"]
        assert socket.close_calls == 1
        assert socket.state is State.CLOSED

    @pytest.mark.asyncio
    async def test_inbound_frames_delivered(self):
        socket = FakeSocket()
        inbound = WebSocketPipe(URL, connect=FakeConnector(socket))(never_ending())

        socket.feed("one")
        socket.feed("two")
        assert await inbound.__anext__() == "one"
        assert await inbound.__anext__() == "two"
        await inbound.aclose()

    @pytest.mark.asyncio
    async def test_peer_close_ends_inbound_once(self):
        socket = FakeSocket()
        inbound = WebSocketPipe(URL, connect=FakeConnector(socket))(never_ending())

        socket.feed("last")
        socket.peer_close()
        socket.feed("ignored")

        assert [frame async for frame in inbound] == ["last"]
        with pytest.raises(StopAsyncIteration):
            await inbound.__anext__()

    @pytest.mark.asyncio
    async def test_socket_error_surfaces_as_transport_error(self):
        socket = FakeSocket()
        inbound = WebSocketPipe(URL, connect=FakeConnector(socket))(never_ending())

        socket.peer_error(ConnectionClosedError(None, None))

        with pytest.raises(TransportError) as exc_info:
            await inbound.__anext__()
        assert exc_info.value.transport_type == TransportType.WEBSOCKET
        assert isinstance(exc_info.value.original_error, ConnectionClosedError)

    @pytest.mark.asyncio
    async def test_connect_failure_raises_transport_error(self):
        connector = FakeConnector(error=ConnectionRefusedError("refused"))
        inbound = WebSocketPipe(URL, connect=connector)(iterate(["never sent"]))

        with pytest.raises(TransportError, match="Failed to connect"):
            await inbound.__anext__()

    @pytest.mark.asyncio
    async def test_stops_sending_when_socket_leaves_open_state(self):
        socket = FakeSocket()

        async def outbound():
            yield "sent"
            socket.state = State.CLOSING
            yield "dropped"

        inbound = WebSocketPipe(URL, connect=FakeConnector(socket))(outbound())

        with pytest.raises(TransportError, match="Socket closed before message could be sent"):
            await inbound.__anext__()
        assert socket.sent == ["sent"]

    @pytest.mark.asyncio
    async def test_no_pull_while_socket_not_open(self):
        socket = FakeSocket()
        socket.state = State.CLOSED
        pulled = []

        async def outbound():
            pulled.append(1)
            yield "message"

        inbound = WebSocketPipe(URL, connect=FakeConnector(socket))(outbound())
        socket.peer_close()

        assert [frame async for frame in inbound] == []
        assert pulled == []
        assert socket.sent == []

    def test_is_open(self):
        class Stub:
            state = State.OPEN

        assert is_open(Stub()) is True
        Stub.state = State.CLOSED
        assert is_open(Stub()) is False


class TestWebSocketTransport:
    """Test JSON framing on top of the pipe."""

    def test_initialization(self):
        transport = WebSocketTransport(URL)

        assert transport.url == URL
        assert transport.transport_type == TransportType.WEBSOCKET
        assert str(transport) == f"WebSocketTransport(ws, {URL})"

    @pytest.mark.asyncio
    async def test_encodes_requests_and_decodes_responses(self):
        socket = FakeSocket()
        transport = WebSocketTransport(URL, connect=FakeConnector(socket))
        request = {"jsonrpc": "2.0", "method": "erisdb.getChainId", "id": "1"}

        async def outbound():
            yield request
            await asyncio.Event().wait()

        responses = transport(outbound())
        pull = asyncio.ensure_future(responses.__anext__())

        await wait_until(lambda: socket.sent)
        assert json.loads(socket.sent[0]) == request

        socket.feed(json.dumps({"jsonrpc": "2.0", "id": "1", "result": "chain"}))
        assert await pull == {"jsonrpc": "2.0", "id": "1", "result": "chain"}
        await responses.aclose()

    @pytest.mark.asyncio
    async def test_invalid_frame_rejects_only_that_frame(self):
        socket = FakeSocket()
        responses = WebSocketTransport(URL, connect=FakeConnector(socket))(never_ending())

        socket.feed("not json")
        socket.feed(json.dumps({"jsonrpc": "2.0", "id": "1", "result": "chain"}))

        with pytest.raises(TransportError, match="Invalid JSON frame"):
            await responses.__anext__()
        assert await responses.__anext__() == {"jsonrpc": "2.0", "id": "1", "result": "chain"}
        assert socket.state is State.OPEN
        await responses.aclose()
        assert socket.state is State.CLOSED


class TestDecodeFrame:
    """Test inbound frame parsing."""

    def test_valid_frame(self):
        assert decode_frame('{"id": "1", "result": null}') == {"id": "1", "result": None}

    def test_invalid_frame(self):
        with pytest.raises(TransportError) as exc_info:
            decode_frame("{broken")
        assert exc_info.value.transport_type == TransportType.WEBSOCKET
        assert isinstance(exc_info.value.original_error, ValueError)
