"""
Full-duplex WebSocket transport for the Eris DB JSON-RPC client.

The socket is split into two independent directions. A send loop drains the
outbound sequence into text frames; a receive loop surfaces inbound frames,
errors and the close event as items of the inbound sequence. Either direction
may end the conversation: exhausting the outbound sequence closes the socket,
and the peer closing the socket ends the inbound sequence.

Responses are not matched to requests here; correlation by id happens in the
RPC engine.
"""

import asyncio
import json
import logging
from typing import Any, AsyncIterator, Awaitable, Callable, Optional

import websockets
from websockets.exceptions import ConnectionClosed, ConnectionClosedError, InvalidHandshake, InvalidURI
from websockets.protocol import State

from erisdb.pipeline import PushIterator, compose, mapper
from erisdb.transport.base import BaseTransport, Message, TransportError, TransportType

logger = logging.getLogger(__name__)

SocketFactory = Callable[[str], Awaitable[Any]]


def is_open(socket: Any) -> bool:
    return socket.state is State.OPEN


def decode_frame(frame: str) -> Message:
    """
    Parse one inbound text frame.

    Raises:
        TransportError: If the frame is not valid JSON; only this frame is
            rejected, the connection carries on
    """
    try:
        return json.loads(frame)
    except ValueError as e:
        logger.error(f"Discarding inbound frame that is not valid JSON: {frame!r}")
        raise TransportError(f"Invalid JSON frame: {frame!r}", TransportType.WEBSOCKET, e) from e


class WebSocketPipe:
    """
    Turn a message socket plus an outbound sequence of text frames into an
    inbound sequence of text frames.

    The socket is opened on the first pull of the inbound sequence. The send
    loop pulls its next outbound item only after the previous frame has been
    handed to the socket and control has gone back to the event loop once,
    so the socket is never asked to buffer faster than it flushes.
    """

    def __init__(self, url: str, connect: Optional[SocketFactory] = None):
        self.url = url
        self._connect = connect or websockets.connect
        self._logger = logging.getLogger(f"{self.__class__.__module__}.{self.__class__.__name__}")

    async def __call__(self, outbound: AsyncIterator[str]) -> AsyncIterator[str]:
        inbound = PushIterator(name=f"inbound {self.url}")

        try:
            socket = await self._connect(self.url)
        except (OSError, InvalidURI, InvalidHandshake, asyncio.TimeoutError) as e:
            self._logger.error(f"Failed to connect to {self.url}: {e}")
            raise TransportError(f"Failed to connect to {self.url}", TransportType.WEBSOCKET, e) from e

        self._logger.info(f"WebSocket connected to {self.url}")
        sender = asyncio.create_task(self._send_loop(socket, outbound, inbound))
        receiver = asyncio.create_task(self._receive_loop(socket, inbound))
        try:
            async for frame in inbound:
                yield frame
        finally:
            sender.cancel()
            receiver.cancel()
            await asyncio.gather(sender, receiver, return_exceptions=True)
            if is_open(socket):
                await socket.close()

    async def _send_loop(self, socket: Any, outbound: AsyncIterator[str], inbound: PushIterator) -> None:
        while is_open(socket):
            try:
                frame = await outbound.__anext__()
            except StopAsyncIteration:
                self._logger.info(f"Outbound sequence complete, closing {self.url}")
                await socket.close()
                return

            if not is_open(socket):
                self._logger.warning(f"Socket to {self.url} closed before send, dropping message: {frame}")
                inbound.fail(TransportError(
                    f"Socket closed before message could be sent: {frame}", TransportType.WEBSOCKET
                ))
                return

            try:
                await socket.send(frame)
            except ConnectionClosed as e:
                self._logger.warning(f"Send to {self.url} failed: {e}")
                inbound.fail(TransportError("Send failed", TransportType.WEBSOCKET, e))
                return

            # Yield to the event loop before pulling the next message.
            await asyncio.sleep(0)

        self._logger.debug(f"Socket to {self.url} left the open state, send loop stopped")

    async def _receive_loop(self, socket: Any, inbound: PushIterator) -> None:
        try:
            async for frame in socket:
                inbound.push(frame)
        except ConnectionClosedError as e:
            self._logger.error(f"WebSocket error on {self.url}: {e}")
            inbound.fail(TransportError("Connection closed abnormally", TransportType.WEBSOCKET, e))
        finally:
            self._logger.info(f"WebSocket to {self.url} closed")
            inbound.end()


class WebSocketTransport(BaseTransport):
    """
    JSON-RPC over a persistent WebSocket connection, one JSON text frame per
    message.
    """

    def __init__(self, url: str, connect: Optional[SocketFactory] = None):
        """
        Initialize the WebSocket transport.

        Args:
            url: WebSocket endpoint URL (``ws://`` or ``wss://``)
            connect: Optional socket factory, defaults to ``websockets.connect``
        """
        super().__init__(url, TransportType.WEBSOCKET)
        self._pipe = WebSocketPipe(url, connect)
        self._stages = compose(
            mapper(json.dumps),
            self._pipe,
            mapper(decode_frame),
        )

        self._logger.info(f"WebSocket transport initialized for {url}")

    def __call__(self, requests: AsyncIterator[Message]) -> AsyncIterator[Message]:
        return self._stages(requests)
