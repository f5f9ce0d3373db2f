"""
Backend quirk middleware.

Some JSON-RPC backends do not follow the protocol exactly. A
:class:`BackendQuirks` strategy describes the workarounds one backend needs,
and :class:`QuirkMiddleware` applies them around any transport: requests are
rewritten before they reach the wire, responses after they leave it. The
transport itself is never touched, so HTTP and WebSocket behave identically.
"""

import logging
from dataclasses import dataclass
from typing import Callable, List

from erisdb.pipeline import compose, mapper
from erisdb.transport.base import Message, Transport

logger = logging.getLogger(__name__)

Rewrite = Callable[[Message], Message]


def convert_id_to_string(request: Message) -> Message:
    """Send the id as a string; Eris DB indexes responses wrongly otherwise."""
    return {**request, "id": str(request.get("id"))}


def add_namespace(namespace: str) -> Rewrite:
    def rewrite(request: Message) -> Message:
        return {**request, "method": f"{namespace}.{request['method']}"}
    return rewrite


def positional_to_named_params(request: Message) -> Message:
    """
    Use the first positional argument as the whole named-parameter object.

    A call without arguments sends no ``params`` member at all.
    """
    params = request.get("params")
    if not isinstance(params, list):
        return request
    if params:
        return {**request, "params": params[0]}
    return {key: value for key, value in request.items() if key != "params"}


def remove_null_error(response: Message) -> Message:
    """Drop an explicit ``"error": null`` so result and error never coexist."""
    if "error" in response and response["error"] is None:
        return {key: value for key, value in response.items() if key != "error"}
    return response


@dataclass(frozen=True)
class BackendQuirks:
    """
    The protocol workarounds required by one backend.

    Attributes:
        backend: Human-readable backend name, used in logs
        namespace: Prefix joined to every method name with a dot, or empty
        string_ids: Send request ids as strings
        named_params: Send the first positional argument as the params object
        strip_null_error: Remove ``"error": null`` from responses
    """
    backend: str
    namespace: str = ""
    string_ids: bool = True
    named_params: bool = True
    strip_null_error: bool = True

    def request_rewrites(self) -> List[Rewrite]:
        rewrites: List[Rewrite] = []
        if self.string_ids:
            rewrites.append(convert_id_to_string)
        if self.namespace:
            rewrites.append(add_namespace(self.namespace))
        if self.named_params:
            rewrites.append(positional_to_named_params)
        return rewrites

    def response_rewrites(self) -> List[Rewrite]:
        return [remove_null_error] if self.strip_null_error else []


ERIS_DB = BackendQuirks(backend="Eris DB", namespace="erisdb")

# A backend that speaks plain JSON-RPC 2.0.
NO_QUIRKS = BackendQuirks(
    backend="JSON-RPC 2.0",
    string_ids=False,
    named_params=False,
    strip_null_error=False,
)


def _chain(rewrites: List[Rewrite]) -> Rewrite:
    def apply(message: Message) -> Message:
        for rewrite in rewrites:
            message = rewrite(message)
        return message
    return apply


class QuirkMiddleware:
    """
    Wrap a transport with the request and response rewrites of a backend.
    """

    def __init__(self, quirks: BackendQuirks = ERIS_DB):
        self.quirks = quirks
        self.rewrite_request = _chain(quirks.request_rewrites())
        self.rewrite_response = _chain(quirks.response_rewrites())

    def wrap(self, transport: Transport) -> Transport:
        """
        Return a transport that applies the rewrites around ``transport``.

        Args:
            transport: Any transport callable

        Returns:
            A transport callable with the same contract
        """
        logger.debug(f"Applying {self.quirks.backend} workarounds to {transport}")
        return compose(
            mapper(self.rewrite_request),
            transport,
            mapper(self.rewrite_response),
        )

    def __call__(self, transport: Transport) -> Transport:
        return self.wrap(transport)

    def __repr__(self) -> str:
        return f"QuirkMiddleware(quirks={self.quirks!r})"
