"""
Eris DB JSON-RPC client

Talks to an Eris DB node over HTTP or WebSocket through one fixed set of remote
methods. The transport is chosen from the server URL scheme, and the node's
deviations from JSON-RPC 2.0 are smoothed over by a quirk middleware.
"""

from .client import METHOD_NAMES, Client, RemoteMethod, callbackify, create_client
from .middleware import ERIS_DB, NO_QUIRKS, BackendQuirks, QuirkMiddleware
from .rpc_engine import JsonRpcEngine, JsonRpcError
from .transport import TransportError, TransportSelectionError, TransportType, select_transport

__version__ = "0.1.0"

__all__ = [
    "BackendQuirks",
    "Client",
    "ERIS_DB",
    "JsonRpcEngine",
    "JsonRpcError",
    "METHOD_NAMES",
    "NO_QUIRKS",
    "QuirkMiddleware",
    "RemoteMethod",
    "TransportError",
    "TransportSelectionError",
    "TransportType",
    "callbackify",
    "create_client",
    "select_transport",
]
