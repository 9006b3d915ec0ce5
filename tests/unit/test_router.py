"""Tests for routing flat tool arguments back to HTTP request locations."""

from __future__ import annotations

import base64
import logging
from typing import Any, Dict

import pytest

from openapi_mcp.context import RequestContext
from openapi_mcp.errors import InvocationError, MissingPathParameterError
from openapi_mcp.openapi.builder import build_tool_definitions
from openapi_mcp.openapi.models import ToolDefinition
from openapi_mcp.openapi.router import route_arguments

PNG_BYTES = b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR"


def _tools(spec: Dict[str, Any]) -> Dict[str, ToolDefinition]:
    return {t.name: t for t in build_tool_definitions(spec)[0]}


@pytest.fixture
def users(simple_spec) -> Dict[str, ToolDefinition]:
    return _tools(simple_spec)


@pytest.fixture
def files(upload_spec) -> Dict[str, ToolDefinition]:
    return _tools(upload_spec)


# =============================================================================
# Locations
# =============================================================================


class TestLocations:
    """Every argument lands in exactly one request location."""

    def test_each_argument_in_its_own_location(self, users):
        request = route_arguments(
            users["getUser"],
            {"id": 7, "verbose": True, "X-Trace-Id": "abc", "session": "s1"},
        )

        assert request.method == "GET"
        assert request.url == "https://api.example.com/users/7"
        assert request.params == [("verbose", "true")]
        assert request.headers == {"X-Trace-Id": "abc", "Cookie": "session=s1"}
        assert not request.has_body

    def test_scenario_request(self):
        spec = {
            "openapi": "3.0.0",
            "info": {"title": "Items"},
            "servers": [{"url": "https://api.example.com"}],
            "paths": {
                "/items/{id}": {
                    "post": {
                        "operationId": "updateItem",
                        "parameters": [
                            {"name": "id", "in": "path", "required": True, "schema": {"type": "string"}},
                            {"name": "verbose", "in": "query", "schema": {"type": "boolean"}},
                        ],
                        "requestBody": {
                            "required": True,
                            "content": {
                                "application/json": {
                                    "schema": {
                                        "type": "object",
                                        "properties": {"name": {"type": "string"}},
                                        "required": ["name"],
                                    }
                                }
                            },
                        },
                    }
                }
            },
        }

        request = route_arguments(_tools(spec)["updateItem"], {"id": "7", "name": "x"})

        assert request.url == "https://api.example.com/items/7"
        assert request.params == []
        assert request.json_body == {"name": "x"}
        assert request.headers["Content-Type"] == "application/json"
        assert "params" not in request.to_httpx()

    def test_body_fields_never_leak_into_query(self, users):
        request = route_arguments(users["createUser"], {"name": "Ada", "email": "ada@example.com"})

        assert request.params == []
        assert request.json_body == {"name": "Ada", "email": "ada@example.com"}

    def test_none_values_are_omitted(self, users):
        request = route_arguments(users["getUser"], {"id": 1, "verbose": None, "session": None})

        assert request.params == []
        assert request.cookie_header is None

    def test_path_values_are_escaped(self, files):
        request = route_arguments(files["putRaw"], {"name": "a b/c", "body": "AA=="})
        assert request.url == "https://files.example.com/v1/files/a%20b%2Fc/raw"

    def test_multiple_cookies_joined(self):
        spec = {
            "openapi": "3.0.0",
            "info": {"title": "c"},
            "servers": [{"url": "https://x"}],
            "paths": {
                "/c": {
                    "get": {
                        "operationId": "cookies",
                        "parameters": [
                            {"name": "a", "in": "cookie", "schema": {"type": "string"}},
                            {"name": "b", "in": "cookie", "schema": {"type": "integer"}},
                        ],
                    }
                }
            },
        }

        request = route_arguments(_tools(spec)["cookies"], {"a": "1", "b": 2})

        assert request.cookie_header == "a=1; b=2"


class TestQuerySerialization:
    @pytest.fixture
    def search(self) -> ToolDefinition:
        spec = {
            "openapi": "3.0.0",
            "info": {"title": "q"},
            "servers": [{"url": "https://x"}],
            "paths": {
                "/search": {
                    "get": {
                        "operationId": "search",
                        "parameters": [
                            {"name": "tag", "in": "query", "schema": {"type": "array", "items": {"type": "string"}}},
                            {
                                "name": "ids",
                                "in": "query",
                                "explode": False,
                                "schema": {"type": "array", "items": {"type": "integer"}},
                            },
                            {
                                "name": "pipes",
                                "in": "query",
                                "style": "pipeDelimited",
                                "explode": False,
                                "schema": {"type": "array"},
                            },
                            {
                                "name": "filter",
                                "in": "query",
                                "style": "deepObject",
                                "explode": True,
                                "schema": {"type": "object"},
                            },
                        ],
                    }
                }
            },
        }
        return _tools(spec)["search"]

    def test_exploded_array_repeats_name(self, search):
        assert route_arguments(search, {"tag": ["a", "b"]}).params == [("tag", "a"), ("tag", "b")]

    def test_non_exploded_array_is_comma_joined(self, search):
        assert route_arguments(search, {"ids": [1, 2, 3]}).params == [("ids", "1,2,3")]

    def test_pipe_delimited(self, search):
        assert route_arguments(search, {"pipes": ["x", "y"]}).params == [("pipes", "x|y")]

    def test_deep_object(self, search):
        params = route_arguments(search, {"filter": {"status": "open", "owner": "me"}}).params
        assert params == [("filter[status]", "open"), ("filter[owner]", "me")]


# =============================================================================
# Bodies
# =============================================================================


class TestBodies:
    def test_multipart_binary_round_trip(self, files):
        encoded = base64.b64encode(PNG_BYTES).decode()

        request = route_arguments(files["uploadFile"], {"file": encoded, "description": "logo"})

        assert request.files == [
            ("file", ("file", PNG_BYTES, "image/png")),
            ("description", (None, "logo")),
        ]
        assert "Content-Type" not in request.headers

    def test_raw_octet_stream(self, files):
        encoded = base64.b64encode(b"\x00\x01\x02").decode()

        request = route_arguments(files["putRaw"], {"name": "blob", "body": encoded})

        assert request.content == b"\x00\x01\x02"
        assert request.headers["Content-Type"] == "application/octet-stream"

    def test_invalid_base64_is_an_invocation_error(self, files):
        with pytest.raises(InvocationError) as exc_info:
            route_arguments(files["putRaw"], {"name": "blob", "body": "not base64!!"})
        assert exc_info.value.tool_name == "putRaw"

    def test_form_body(self):
        spec = {
            "openapi": "3.0.0",
            "info": {"title": "f"},
            "servers": [{"url": "https://x"}],
            "paths": {
                "/login": {
                    "post": {
                        "operationId": "login",
                        "requestBody": {
                            "content": {
                                "application/x-www-form-urlencoded": {
                                    "schema": {
                                        "type": "object",
                                        "properties": {
                                            "user": {"type": "string"},
                                            "remember": {"type": "boolean"},
                                        },
                                    }
                                }
                            }
                        },
                    }
                }
            },
        }

        request = route_arguments(_tools(spec)["login"], {"user": "ada", "remember": True})

        assert request.data == {"user": "ada", "remember": "true"}
        assert request.headers["Content-Type"] == "application/x-www-form-urlencoded"


# =============================================================================
# Headers, unknown keys and failures
# =============================================================================


class TestHeaderPrecedence:
    """auth provider < forwarded inbound headers < header arguments."""

    AUTH = {"Authorization": "Bearer from-auth", "x-trace-id": "auth", "Content-Type": "application/json"}

    def test_header_argument_wins(self, users):
        context = RequestContext.from_headers({"X-Trace-Id": "forwarded"})

        request = route_arguments(
            users["getUser"],
            {"id": 1, "X-Trace-Id": "argument"},
            auth_headers=self.AUTH,
            context=context,
            forward_headers=["X-Trace-Id"],
        )

        trace = [v for k, v in request.headers.items() if k.lower() == "x-trace-id"]
        assert trace == ["argument"]
        assert request.headers["Authorization"] == "Bearer from-auth"

    def test_forwarded_header_beats_auth(self, users):
        context = RequestContext.from_headers({"x-trace-id": "forwarded", "host": "mcp.local"})

        request = route_arguments(
            users["getUser"],
            {"id": 1},
            auth_headers=self.AUTH,
            context=context,
            forward_headers=["X-Trace-Id", "Host"],
        )

        assert request.headers["X-Trace-Id"] == "forwarded"
        assert "Host" not in request.headers

    def test_unlisted_inbound_headers_are_not_forwarded(self, users):
        context = RequestContext.from_headers({"authorization": "Bearer caller"})

        request = route_arguments(users["deleteUser"], {"id": 1}, auth_headers=self.AUTH, context=context)

        assert request.headers["Authorization"] == "Bearer from-auth"

    def test_body_content_type_replaces_auth_content_type(self, files):
        request = route_arguments(
            files["putRaw"],
            {"name": "n", "body": "AA=="},
            auth_headers=self.AUTH,
        )

        content_types = [v for k, v in request.headers.items() if k.lower() == "content-type"]
        assert content_types == ["application/octet-stream"]


class TestFailures:
    def test_unknown_keys_ignored(self, users, caplog):
        with caplog.at_level(logging.DEBUG, logger="openapi_mcp"):
            request = route_arguments(users["deleteUser"], {"id": 3, "bogus": "x"})

        assert request.url.endswith("/users/3")
        assert request.params == []
        assert "bogus" in caplog.text

    def test_missing_path_parameter(self, users):
        with pytest.raises(MissingPathParameterError) as exc_info:
            route_arguments(users["deleteUser"], {})

        assert exc_info.value.parameter == "id"
        assert exc_info.value.tool_name == "deleteUser"

    def test_no_base_url(self):
        spec = {"openapi": "3.0.0", "info": {"title": "t"}, "paths": {"/a": {"get": {"operationId": "a"}}}}

        with pytest.raises(InvocationError, match="No base URL"):
            route_arguments(_tools(spec)["a"], {})

    def test_base_url_argument_overrides_tool(self, users):
        request = route_arguments(users["listUsers"], {}, base_url="http://localhost:9000/")
        assert request.url == "http://localhost:9000/users"
