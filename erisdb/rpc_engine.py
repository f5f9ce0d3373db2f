"""
JSON-RPC 2.0 client engine.

The engine turns method calls into requests, feeds them to a transport as one
outbound sequence and matches the responses coming back by id. Any number of
calls may be in flight at once; the transport decides how they travel.

Errors raised by the transport's response sequence are not tied to a request.
They are published on :attr:`JsonRpcEngine.errors` and do not fail pending
calls.
"""

import asyncio
import itertools
import logging
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Dict, Iterable, Mapping, Optional

from erisdb.pipeline import PushIterator
from erisdb.transport.base import JSONRPC_VERSION, Message, Transport, TransportError, TransportType

logger = logging.getLogger(__name__)

RemoteCall = Callable[..., Awaitable[Any]]


class JsonRpcError(Exception):
    """
    A JSON-RPC error object returned by the server for one call.
    """

    def __init__(self, code: Optional[int], message: str, data: Any = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.data = data

    @classmethod
    def from_response(cls, error: Any) -> "JsonRpcError":
        if isinstance(error, dict):
            return cls(error.get("code"), str(error.get("message", "")), error.get("data"))
        return cls(None, str(error))

    def __str__(self) -> str:
        return f"JSON-RPC error {self.code}: {self.message}"


class JsonRpcEngine:
    """
    Multiplex concurrent JSON-RPC calls over one transport.

    The transport is started on the first call. Request ids come from a
    counter, so they are unique for the lifetime of the engine.
    """

    def __init__(self, method_names: Iterable[str], transport: Transport,
                 transport_type: TransportType = TransportType.HTTP):
        """
        Initialize the engine.

        Args:
            method_names: Names of the remote methods to expose
            transport: Transport callable carrying the traffic
            transport_type: Transport kind, used to label connection errors
        """
        self.transport = transport
        self.transport_type = transport_type
        self._ids = itertools.count(1)
        self._pending: Dict[Any, asyncio.Future] = {}
        self._outbound = PushIterator(name="outbound requests")
        self._errors = PushIterator(name="transport errors")
        self._reader: Optional[asyncio.Task] = None
        self._closed = False
        self._finished = False
        self.methods: Mapping[str, RemoteCall] = MappingProxyType(
            {name: self._bind(name) for name in method_names}
        )

    @property
    def errors(self) -> PushIterator:
        """Side-channel sequence of transport-level errors."""
        return self._errors

    @property
    def finished(self) -> bool:
        """True once the response sequence has ended; no further calls are accepted."""
        return self._finished

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def _bind(self, name: str) -> RemoteCall:
        async def remote_call(*args: Any) -> Any:
            return await self.request(name, list(args))
        remote_call.__name__ = name
        remote_call.__qualname__ = f"{type(self).__name__}.methods[{name!r}]"
        return remote_call

    async def request(self, method: str, params: Any) -> Any:
        """
        Send one request and wait for its result.

        Args:
            method: Remote method name
            params: JSON-RPC params member

        Returns:
            The ``result`` member of the response

        Raises:
            JsonRpcError: If the response carries an error
            TransportError: If the engine is closed, the connection has
                ended, or it ends before the response arrives
        """
        if self._closed:
            raise TransportError("Client is closed", self.transport_type)
        if self._finished:
            raise TransportError("Connection closed", self.transport_type)

        self._start()
        request_id = next(self._ids)
        # Keyed by the string form, which survives id rewriting by middleware.
        key = str(request_id)
        future = asyncio.get_running_loop().create_future()
        self._pending[key] = future
        self._outbound.push({
            "jsonrpc": JSONRPC_VERSION,
            "method": method,
            "params": params,
            "id": request_id,
        })
        logger.debug(f"Queued request {request_id}: {method}")
        try:
            return await future
        finally:
            self._pending.pop(key, None)

    def _start(self) -> None:
        if self._reader is None:
            self._reader = asyncio.get_running_loop().create_task(self._read_responses())

    async def _read_responses(self) -> None:
        # A failed pull rejects one item only; the loop stops when the
        # response sequence reports its end.
        responses = self.transport(self._outbound)
        while True:
            try:
                response = await responses.__anext__()
            except StopAsyncIteration:
                break
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self._publish(e)
                continue

            if not isinstance(response, dict):
                self._publish(TransportError(f"Malformed response: {response!r}", self.transport_type))
                continue
            self._dispatch(response)

        logger.info("Response sequence ended")
        self._finished = True
        self._fail_pending(TransportError("Connection closed before a response arrived", self.transport_type))
        self._errors.end()

    def _publish(self, e: Exception) -> None:
        error = e if isinstance(e, TransportError) else TransportError(str(e), self.transport_type, e)
        logger.error(f"Transport error: {error}")
        self._errors.push(error)

    def _dispatch(self, response: Message) -> None:
        future = self._pending.pop(str(response.get("id")), None)
        if future is None:
            logger.warning(f"Ignoring response with unknown id: {response}")
            return
        if future.done():
            return
        if response.get("error") is not None:
            future.set_exception(JsonRpcError.from_response(response["error"]))
        else:
            future.set_result(response.get("result"))

    def _fail_pending(self, error: TransportError) -> None:
        pending, self._pending = self._pending, {}
        for future in pending.values():
            if not future.done():
                future.set_exception(error)

    async def close(self) -> None:
        """
        End the outbound sequence and wait for the transport to wind down.
        """
        if self._closed:
            return
        self._closed = True
        self._outbound.end()
        if self._reader is not None:
            await self._reader
        else:
            self._errors.end()
