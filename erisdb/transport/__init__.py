"""
Transport Layer Module

Transport-agnostic carriers for JSON-RPC 2.0 traffic. A transport maps an
asynchronous sequence of requests onto an asynchronous sequence of responses.
Supported carriers: unary HTTP POST and a persistent WebSocket duplex.
"""

from .base import BaseTransport, Transport, TransportError, TransportType
from .http_transport import HTTPTransport
from .selector import TransportSelectionError, select_transport
from .websocket_transport import WebSocketTransport

__all__ = [
    "BaseTransport",
    "HTTPTransport",
    "Transport",
    "TransportError",
    "TransportSelectionError",
    "TransportType",
    "WebSocketTransport",
    "select_transport",
]
