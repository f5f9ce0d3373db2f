"""
Eris DB client.

Public entry point of the package. The client binds the fixed catalog of Eris
DB remote methods to a JSON-RPC engine running over the transport selected by
the server URL, with the Eris DB workarounds applied in between.

Each public method takes its positional arguments followed by a completion
callback ``callback(error, result=None)``: on success it is called as
``callback(None, result)``, on failure as ``callback(error)``. Coroutine
callers can use :attr:`Client.rpc` instead, which exposes the same methods as
awaitables.

Transport errors that belong to no particular call are published on
:attr:`Client.errors`; :meth:`Client.log_errors` forwards them to the log.
"""

import asyncio
import logging
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Mapping, Optional, Tuple

import httpx

from erisdb import config
from erisdb.middleware import ERIS_DB, BackendQuirks, QuirkMiddleware
from erisdb.pipeline import PushIterator
from erisdb.rpc_engine import JsonRpcEngine, RemoteCall
from erisdb.transport.base import TransportType
from erisdb.transport.selector import select_transport, transport_type_for
from erisdb.transport.websocket_transport import SocketFactory

logger = logging.getLogger(__name__)

CallbackCall = Callable[..., None]


class RemoteMethod(Enum):
    """
    The remote methods exposed by an Eris DB node.

    The value is the wire name, before the ``erisdb.`` namespace is added.
    """
    BROADCAST_TX = "broadcastTx"
    CALL = "call"
    CALL_CODE = "callCode"
    EVENT_POLL = "eventPoll"
    EVENT_SUBSCRIBE = "eventSubscribe"
    EVENT_UNSUBSCRIBE = "eventUnsubscribe"
    GET_ACCOUNT = "getAccount"
    GET_ACCOUNTS = "getAccounts"
    GET_BLOCKCHAIN_INFO = "getBlockchainInfo"
    GET_CHAIN_ID = "getChainId"
    GET_CLIENT_VERSION = "getClientVersion"
    GET_CONSENSUS_STATE = "getConsensusState"
    GET_GENESIS_HASH = "getGenesisHash"
    GET_LATEST_BLOCK = "getLatestBlock"
    GET_LATEST_BLOCK_HEIGHT = "getLatestBlockHeight"
    GET_LISTENERS = "getListeners"
    GET_MONIKER = "getMoniker"
    GET_NAME_REG_ENTRIES = "getNameRegEntries"
    GET_NAME_REG_ENTRY = "getNameRegEntry"
    GET_NETWORK_INFO = "getNetworkInfo"
    GET_PEER = "getPeer"
    GET_PEERS = "getPeers"
    GEN_PRIV_ACCOUNT = "genPrivAccount"
    GET_STORAGE = "getStorage"
    GET_STORAGE_AT = "getStorageAt"
    GET_UNCONFIRMED_TXS = "getUnconfirmedTxs"
    GET_VALIDATORS = "getValidators"
    IS_LISTENING = "isListening"
    SEND = "send"
    SEND_AND_HOLD = "sendAndHold"
    TRANSACT = "transact"
    TRANSACT_AND_HOLD = "transactAndHold"
    TRANSACT_NAME_REG = "transactNameReg"


METHOD_NAMES: Tuple[str, ...] = tuple(method.value for method in RemoteMethod)


def callbackify(func: RemoteCall) -> CallbackCall:
    """
    Convert an awaitable-returning call into a callback-accepting call.

    The returned function takes ``func``'s positional arguments followed by a
    completion callback, schedules the call on the running event loop and
    returns immediately. The callback receives ``(error)`` on failure or
    ``(None, value)`` on success.
    """
    def wrapper(*args: Any) -> asyncio.Task:
        if not args or not callable(args[-1]):
            raise TypeError(f"{getattr(func, '__name__', 'method')}() requires a trailing callback argument")
        *call_args, callback = args
        task = asyncio.get_running_loop().create_task(func(*call_args))

        def settle(done: asyncio.Future) -> None:
            if done.cancelled():
                callback(asyncio.CancelledError())
                return
            error = done.exception()
            if error is not None:
                callback(error)
            else:
                callback(None, done.result())

        task.add_done_callback(settle)
        return task

    wrapper.__name__ = getattr(func, "__name__", "wrapper")
    wrapper.__doc__ = func.__doc__
    return wrapper


class Client:
    """
    Callback-style client for an Eris DB node.

    Methods are available by attribute (``client.getAccount(params, cb)``),
    by item (``client["getAccount"]``) and through :attr:`methods`.
    """

    def __init__(self, server_url: Optional[str] = None, quirks: Optional[BackendQuirks] = None,
                 timeout: Optional[float] = None, http_client: Optional[httpx.AsyncClient] = None,
                 connect: Optional[SocketFactory] = None):
        """
        Initialize the client. No connection is made until the first call.

        Args:
            server_url: Node address (``http(s)://`` or ``ws(s)://``); falls
                back to the configured server URL
            quirks: Backend workarounds; defaults to the Eris DB set with the
                configured namespace
            timeout: HTTP request timeout in seconds
            http_client: Optional HTTP client for the HTTP transport
            connect: Optional socket factory for the WebSocket transport

        Raises:
            TransportSelectionError: If the URL scheme is not supported
        """
        self.server_url = server_url or config.get_server_url()
        self.quirks = quirks or _default_quirks()

        self.transport = select_transport(self.server_url, **_transport_options(
            self.server_url, timeout, http_client, connect
        ))
        self.middleware = QuirkMiddleware(self.quirks)
        self.engine = JsonRpcEngine(
            METHOD_NAMES,
            self.middleware.wrap(self.transport),
            self.transport.transport_type,
        )
        self.methods: Mapping[str, CallbackCall] = MappingProxyType(
            {name: callbackify(call) for name, call in self.engine.methods.items()}
        )
        self._log_task: Optional[asyncio.Task] = None

        logger.info(f"Client created for {self.server_url} ({self.quirks.backend})")

    @property
    def rpc(self) -> Mapping[str, RemoteCall]:
        """The awaitable-returning method table."""
        return self.engine.methods

    @property
    def errors(self) -> PushIterator:
        """Side-channel sequence of transport errors."""
        return self.engine.errors

    def log_errors(self) -> asyncio.Task:
        """
        Start forwarding side-channel errors to the log.

        Returns:
            The background task consuming :attr:`errors`
        """
        if self._log_task is None:
            self._log_task = asyncio.get_running_loop().create_task(_log_transport_errors(self.errors))
        return self._log_task

    async def close(self) -> None:
        """Finish the outbound request sequence, closing any socket."""
        await self.engine.close()
        if self._log_task is not None:
            await self._log_task
        logger.info(f"Client for {self.server_url} closed")

    async def __aenter__(self) -> "Client":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def __getitem__(self, name: str) -> CallbackCall:
        return self.methods[name]

    def __getattr__(self, name: str) -> CallbackCall:
        methods = self.__dict__.get("methods")
        if methods is not None and name in methods:
            return methods[name]
        raise AttributeError(f"{type(self).__name__!r} object has no attribute {name!r}")

    def __dir__(self):
        return sorted(set(super().__dir__()) | set(METHOD_NAMES))

    def __str__(self) -> str:
        return f"Client({self.server_url})"

    def __repr__(self) -> str:
        return f"Client(server_url='{self.server_url}', transport={self.transport!r})"


def create_client(server_url: Optional[str] = None, **kwargs: Any) -> Client:
    """
    Build a client and start logging its transport errors.

    Must be called from a running event loop.
    """
    client = Client(server_url, **kwargs)
    client.log_errors()
    return client


async def _log_transport_errors(errors: PushIterator) -> None:
    async for error in errors:
        logger.error(f"network transport error: {error}")


def _default_quirks() -> BackendQuirks:
    namespace = config.get_namespace()
    if namespace == ERIS_DB.namespace:
        return ERIS_DB
    return BackendQuirks(backend=ERIS_DB.backend, namespace=namespace)


def _transport_options(url: str, timeout: Optional[float], http_client: Optional[httpx.AsyncClient],
                       connect: Optional[SocketFactory]) -> dict:
    if transport_type_for(url) == TransportType.HTTP:
        options = {"timeout": timeout if timeout is not None else config.get_http_timeout()}
        if http_client is not None:
            options["client"] = http_client
        return options

    options = {}
    if connect is not None:
        options["connect"] = connect
    return options
