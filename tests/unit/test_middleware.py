"""
Unit tests for the backend quirk middleware.
"""

import pytest

from erisdb.middleware import (
    ERIS_DB,
    NO_QUIRKS,
    BackendQuirks,
    QuirkMiddleware,
    add_namespace,
    convert_id_to_string,
    positional_to_named_params,
    remove_null_error,
)
from tests.utils.socket_doubles import iterate

pytestmark = pytest.mark.core


class TestRequestRewrites:
    """Test the individual outbound rewrites."""

    def test_numeric_id_becomes_string(self):
        request = {"jsonrpc": "2.0", "method": "getAccount", "params": [], "id": 42}
        assert convert_id_to_string(request)["id"] == "42"

    def test_string_id_unchanged(self):
        assert convert_id_to_string({"id": "7"})["id"] == "7"

    def test_namespace_prefix(self):
        assert add_namespace("erisdb")({"method": "getAccount"})["method"] == "erisdb.getAccount"

    def test_first_positional_becomes_named_params(self):
        request = {"params": [{"address": "0xabc"}], "id": 1}
        assert positional_to_named_params(request)["params"] == {"address": "0xabc"}

    def test_extra_positionals_are_ignored(self):
        request = {"params": [{"address": "0xabc"}, "ignored"]}
        assert positional_to_named_params(request)["params"] == {"address": "0xabc"}

    def test_no_positionals_omits_params(self):
        request = {"method": "getChainId", "params": [], "id": 1}
        assert positional_to_named_params(request) == {"method": "getChainId", "id": 1}

    def test_named_params_left_alone(self):
        request = {"params": {"address": "0xabc"}}
        assert positional_to_named_params(request) is request

    def test_rewrites_do_not_mutate_input(self):
        request = {"jsonrpc": "2.0", "method": "getAccount", "params": [{"a": 1}], "id": 3}
        original = dict(request)
        QuirkMiddleware(ERIS_DB).rewrite_request(request)
        assert request == original


class TestResponseRewrites:
    """Test the inbound rewrite."""

    def test_null_error_is_stripped(self):
        response = {"jsonrpc": "2.0", "id": "1", "result": {"height": 10}, "error": None}
        assert remove_null_error(response) == {"jsonrpc": "2.0", "id": "1", "result": {"height": 10}}

    def test_response_without_error_unchanged(self):
        response = {"jsonrpc": "2.0", "id": "1", "result": 5}
        assert remove_null_error(response) == response

    def test_populated_error_kept(self):
        response = {"jsonrpc": "2.0", "id": "1", "error": {"code": -32601, "message": "Method not found"}}
        assert remove_null_error(response) == response

    def test_idempotent(self):
        response = {"jsonrpc": "2.0", "id": "1", "result": 5, "error": None}
        once = remove_null_error(response)
        assert remove_null_error(once) == once


class TestBackendQuirks:
    """Test the workaround strategy objects."""

    def test_eris_db_request(self):
        middleware = QuirkMiddleware(ERIS_DB)
        request = {"jsonrpc": "2.0", "method": "getAccount", "params": [{"address": "0xabc"}], "id": 42}

        assert middleware.rewrite_request(request) == {
            "jsonrpc": "2.0",
            "method": "erisdb.getAccount",
            "params": {"address": "0xabc"},
            "id": "42",
        }

    def test_no_quirks_is_passthrough(self):
        middleware = QuirkMiddleware(NO_QUIRKS)
        request = {"jsonrpc": "2.0", "method": "getAccount", "params": [{"address": "0xabc"}], "id": 42}
        response = {"jsonrpc": "2.0", "id": 42, "result": None, "error": None}

        assert middleware.rewrite_request(request) == request
        assert middleware.rewrite_response(response) == response

    def test_custom_namespace(self):
        quirks = BackendQuirks(backend="Eris DB fork", namespace="burrow")
        middleware = QuirkMiddleware(quirks)
        assert middleware.rewrite_request({"method": "getPeers", "params": [], "id": 1})["method"] == "burrow.getPeers"

    def test_quirks_are_immutable(self):
        with pytest.raises(AttributeError):
            ERIS_DB.namespace = "other"


class TestWrap:
    """Test wrapping a transport."""

    @pytest.mark.asyncio
    async def test_wrapped_transport_sees_rewritten_requests(self):
        seen = []

        async def echo_transport(requests):
            async for request in requests:
                seen.append(request)
                yield {"jsonrpc": "2.0", "id": request["id"], "result": request.get("params"), "error": None}

        transport = QuirkMiddleware(ERIS_DB).wrap(echo_transport)
        requests = iterate([
            {"jsonrpc": "2.0", "method": "getAccount", "params": [{"address": "0xabc"}], "id": 1},
            {"jsonrpc": "2.0", "method": "getChainId", "params": [], "id": 2},
        ])
        responses = [response async for response in transport(requests)]

        assert seen == [
            {"jsonrpc": "2.0", "method": "erisdb.getAccount", "params": {"address": "0xabc"}, "id": "1"},
            {"jsonrpc": "2.0", "method": "erisdb.getChainId", "id": "2"},
        ]
        assert responses == [
            {"jsonrpc": "2.0", "id": "1", "result": {"address": "0xabc"}},
            {"jsonrpc": "2.0", "id": "2", "result": None},
        ]

    def test_middleware_is_callable(self):
        middleware = QuirkMiddleware()
        assert middleware.quirks is ERIS_DB
        assert callable(middleware(lambda requests: requests))
