"""
Base Transport for the Eris DB JSON-RPC client

This module defines the abstract base class for all transport implementations.
A transport is a plain callable that maps an asynchronous sequence of JSON-RPC
requests onto an asynchronous sequence of JSON-RPC responses, so the layers
above it never need to know whether the wire is HTTP or a WebSocket.
"""

import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, AsyncIterator, Callable, Dict, Optional

logger = logging.getLogger(__name__)

JSONRPC_VERSION = "2.0"

Message = Dict[str, Any]
Transport = Callable[[AsyncIterator[Message]], AsyncIterator[Message]]


class TransportType(Enum):
    """
    Enumeration of supported transport protocols.

    The value is the canonical URL scheme of the transport.
    """
    HTTP = "http"
    WEBSOCKET = "ws"


class TransportError(Exception):
    """
    Base exception class for transport-related errors.

    Transport errors describe connection-wide failures that cannot be pinned to
    a single request. They travel on the client's error side channel rather
    than failing individual calls.
    """

    def __init__(self, message: str, transport_type: TransportType,
                 original_error: Optional[BaseException] = None):
        super().__init__(message)
        self.transport_type = transport_type
        self.original_error = original_error

    def __str__(self) -> str:
        base_msg = f"[{self.transport_type.value.upper()}] {super().__str__()}"
        if self.original_error:
            base_msg += f" (caused by: {self.original_error})"
        return base_msg


class BaseTransport(ABC):
    """
    Abstract base class for transport implementations.

    Subclasses implement ``__call__`` as an async generator: it receives the
    outbound request sequence and yields inbound responses. Instances are built
    once per client and hold no per-call state.
    """

    def __init__(self, url: str, transport_type: TransportType):
        """
        Initialize the transport.

        Args:
            url: Address of the JSON-RPC endpoint
            transport_type: The type of transport this class implements
        """
        self.url = url
        self.transport_type = transport_type
        self._logger = logging.getLogger(f"{self.__class__.__module__}.{self.__class__.__name__}")

    @abstractmethod
    def __call__(self, requests: AsyncIterator[Message]) -> AsyncIterator[Message]:
        """
        Map a lazy sequence of requests onto a lazy sequence of responses.

        Args:
            requests: Outbound JSON-RPC requests, pulled on demand

        Returns:
            Inbound JSON-RPC responses
        """

    def get_transport_info(self) -> Dict[str, Any]:
        """
        Get information about this transport.

        Returns:
            Dictionary containing transport metadata
        """
        return {
            "transport_type": self.transport_type.value,
            "url": self.url,
        }

    def __str__(self) -> str:
        return f"{self.__class__.__name__}({self.transport_type.value}, {self.url})"

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(url='{self.url}', transport_type={self.transport_type!r})"
