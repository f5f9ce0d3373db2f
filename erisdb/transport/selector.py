"""
Transport selection by address scheme.

The scheme of the server URL decides which transport carries the JSON-RPC
traffic. An unsupported scheme is a configuration error and is reported when
the client is built, before any network activity.
"""

import logging
from typing import Any, Dict
from urllib.parse import urlparse

from erisdb.transport.base import BaseTransport, TransportType
from erisdb.transport.http_transport import HTTPTransport
from erisdb.transport.websocket_transport import WebSocketTransport

logger = logging.getLogger(__name__)


class TransportSelectionError(ValueError):
    """
    Raised when no transport can be built for a server address.
    """
    pass


SCHEME_TRANSPORTS: Dict[str, TransportType] = {
    "http": TransportType.HTTP,
    "https": TransportType.HTTP,
    "ws": TransportType.WEBSOCKET,
    "wss": TransportType.WEBSOCKET,
}


def transport_type_for(url: str) -> TransportType:
    """
    Resolve the transport type for a server URL.

    Args:
        url: Server address

    Returns:
        The matching TransportType

    Raises:
        TransportSelectionError: If the scheme is not supported
    """
    scheme = urlparse(url).scheme.lower()
    try:
        return SCHEME_TRANSPORTS[scheme]
    except KeyError:
        supported = ", ".join(sorted(SCHEME_TRANSPORTS))
        raise TransportSelectionError(
            f"Unsupported URL scheme '{scheme}' in {url!r}. Supported schemes: {supported}"
        ) from None


def select_transport(url: str, **options: Any) -> BaseTransport:
    """
    Build the transport for a server URL.

    Args:
        url: Server address
        **options: Transport-specific options (``timeout``/``client`` for HTTP,
            ``connect`` for WebSocket)

    Returns:
        Configured transport instance

    Raises:
        TransportSelectionError: If the scheme is unsupported or the options
            do not fit the selected transport
    """
    transport_type = transport_type_for(url)
    logger.info(f"Selected {transport_type.value} transport for {url}")

    try:
        if transport_type == TransportType.HTTP:
            return HTTPTransport(url, **options)
        elif transport_type == TransportType.WEBSOCKET:
            return WebSocketTransport(url, **options)
        else:
            raise TransportSelectionError(f"Unknown transport type: {transport_type}")
    except TypeError as e:
        raise TransportSelectionError(f"Invalid options for {transport_type.value} transport: {e}") from e
