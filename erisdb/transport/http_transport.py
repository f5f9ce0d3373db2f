"""
Unary HTTP transport for the Eris DB JSON-RPC client.

Every request becomes exactly one HTTP POST and yields exactly one response.
Round trips never overlap: the next request is pulled only after the current
response has been produced. Failed round trips are turned into well-formed
JSON-RPC error responses carrying the original request id, so a pending call
always settles.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

import httpx

from erisdb.pipeline import amap, pull_serially
from erisdb.transport.base import JSONRPC_VERSION, BaseTransport, Message, TransportType

logger = logging.getLogger(__name__)

# JSON-RPC "server error" range, used when the failure carries no status code
NETWORK_ERROR_CODE = -32000


class HTTPTransport(BaseTransport):
    """
    Serial request/response transport over HTTP POST.

    The transport uses an ``httpx.AsyncClient``. A client passed in by the
    caller is used as-is and never closed here; otherwise one is created when
    the response sequence starts and closed when it ends.
    """

    def __init__(self, url: str, timeout: float = 30.0, client: Optional[httpx.AsyncClient] = None):
        """
        Initialize the HTTP transport.

        Args:
            url: JSON-RPC endpoint URL
            timeout: Per-request timeout in seconds (owned client only)
            client: Optional pre-configured HTTP client
        """
        super().__init__(url, TransportType.HTTP)
        self.timeout = timeout
        self._client = client

        self.default_headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

        self._logger.info(f"HTTP transport initialized for {url}")

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
            return
        async with httpx.AsyncClient(timeout=self.timeout, headers=self.default_headers) as client:
            self._logger.debug(f"Created HTTP client for {self.url}")
            yield client

    async def __call__(self, requests: AsyncIterator[Message]) -> AsyncIterator[Message]:
        async with self._session() as client:
            pending = amap(lambda request: self._round_trip(client, request), requests)
            async for response in pull_serially(pending):
                yield response

    async def _round_trip(self, client: httpx.AsyncClient, request: Message) -> Message:
        """
        Send one request and return its response.

        Never raises for network or HTTP status failures: those are returned
        as synthesized JSON-RPC error responses.
        """
        self._logger.debug(f"POST {self.url}: {request}")
        try:
            response = await client.post(self.url, json=request, headers=self.default_headers)
            self._logger.debug(f"Server responded with {response.status_code}: {response.text}")
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as e:
            self._logger.error(f"HTTP error from {self.url}: {e}")
            return synthesize_error_response(request, status_error_payload(e.response))
        except httpx.RequestError as e:
            self._logger.error(f"Network error communicating with {self.url}: {e}")
            return synthesize_error_response(request, {"code": NETWORK_ERROR_CODE, "message": str(e)})
        except ValueError as e:
            self._logger.error(f"Failed to parse JSON response from {self.url}: {e}")
            return synthesize_error_response(
                request, {"code": NETWORK_ERROR_CODE, "message": f"Invalid JSON response: {e}"}
            )

        if not isinstance(body, dict):
            self._logger.error(f"Response from {self.url} is not a JSON-RPC object: {body!r}")
            return synthesize_error_response(
                request, {"code": NETWORK_ERROR_CODE, "message": f"Invalid JSON-RPC response: {body!r}"}
            )
        return correlate(request, body)


def status_error_payload(response: httpx.Response) -> Dict[str, Any]:
    """
    Build the JSON-RPC error object for a non-success HTTP response.

    A JSON body that already carries an ``error`` object is passed through;
    anything else is described by the status code and body text.
    """
    try:
        body = response.json()
    except ValueError:
        body = None

    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        return body["error"]

    message = response.text.strip() or response.reason_phrase or f"HTTP {response.status_code}"
    payload: Dict[str, Any] = {"code": response.status_code, "message": message}
    if body is not None:
        payload["data"] = body
    return payload


def correlate(request: Message, response: Message) -> Message:
    """
    Give ``response`` the id of the request it answers.

    Each POST carries exactly one request, so its response belongs to that
    request even when the server reports ``"id": null`` (parse errors) or an
    id that does not match.
    """
    request_id = request.get("id")
    if str(response.get("id")) == str(request_id):
        return response
    logger.warning(f"Response id {response.get('id')!r} does not match request id {request_id!r}, using request id")
    return {**response, "id": request_id}


def synthesize_error_response(request: Message, error: Any) -> Message:
    """Wrap a failure as a JSON-RPC response correlated with ``request``."""
    return {
        "jsonrpc": JSONRPC_VERSION,
        "error": error,
        "id": request.get("id"),
    }
