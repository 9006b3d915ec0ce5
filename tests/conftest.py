"""
Root conftest.py for openapi-mcp tests.

This file provides:
1. Common pytest markers for test categorization
2. Shared OpenAPI documents used across test modules
3. Helpers for faking the upstream API with ``httpx.MockTransport``
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List

import httpx
import pytest

# =============================================================================
# PYTEST CONFIGURATION
# =============================================================================


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their module name."""
    for item in items:
        norm = str(item.fspath).replace("\\", "/")

        if "router" in norm or "invocation" in norm:
            item.add_marker(pytest.mark.router)
        if "builder" in norm or "body" in norm or "parameters" in norm or "normalizer" in norm:
            item.add_marker(pytest.mark.builder)
        if "server" in norm or "cli" in norm:
            item.add_marker(pytest.mark.server)


def pytest_configure(config):
    """Register custom markers."""
    for name, desc in [
        ("builder", "Tool schema building tests"),
        ("router", "Argument routing and invocation tests"),
        ("server", "MCP server and CLI tests"),
    ]:
        config.addinivalue_line("markers", f"{name}: {desc}")


# =============================================================================
# LOGGING FIXTURES
# =============================================================================


@pytest.fixture(autouse=True)
def _restore_package_logger():
    """configure_logging() detaches the package logger from root; undo it so caplog works."""
    logger = logging.getLogger("openapi_mcp")
    handlers, level, propagate = list(logger.handlers), logger.level, logger.propagate
    yield
    logger.handlers[:] = handlers
    logger.setLevel(level)
    logger.propagate = propagate


# =============================================================================
# OPENAPI DOCUMENT FIXTURES
# =============================================================================


@pytest.fixture
def simple_spec() -> Dict[str, Any]:
    """Small users API covering path, query, header, cookie and JSON body."""
    return {
        "openapi": "3.1.0",
        "info": {"title": "Test API", "version": "1.0.0"},
        "servers": [{"url": "https://api.example.com"}],
        "paths": {
            "/users": {
                "get": {
                    "operationId": "listUsers",
                    "summary": "List all users",
                    "tags": ["users", "public"],
                    "parameters": [
                        {"name": "limit", "in": "query", "schema": {"type": "integer"}},
                        {
                            "name": "status",
                            "in": "query",
                            "schema": {"type": "array", "items": {"type": "string"}},
                        },
                    ],
                    "responses": {"200": {"description": "OK"}},
                },
                "post": {
                    "operationId": "createUser",
                    "summary": "Create a user",
                    "tags": ["users", "admin"],
                    "requestBody": {
                        "required": True,
                        "content": {
                            "application/json": {
                                "schema": {
                                    "type": "object",
                                    "properties": {
                                        "name": {"type": "string"},
                                        "email": {"type": "string"},
                                    },
                                    "required": ["name", "email"],
                                }
                            }
                        },
                    },
                    "responses": {"201": {"description": "Created"}},
                },
            },
            "/users/{id}": {
                "parameters": [
                    {"name": "id", "in": "path", "required": True, "schema": {"type": "integer"}}
                ],
                "get": {
                    "operationId": "getUser",
                    "summary": "Get user by ID",
                    "tags": ["users"],
                    "parameters": [
                        {"name": "verbose", "in": "query", "schema": {"type": "boolean"}},
                        {"name": "X-Trace-Id", "in": "header", "schema": {"type": "string"}},
                        {"name": "session", "in": "cookie", "schema": {"type": "string"}},
                    ],
                    "responses": {"200": {"description": "OK"}},
                },
                "delete": {
                    "operationId": "deleteUser",
                    "summary": "Delete user",
                    "tags": ["users", "admin"],
                    "responses": {"204": {"description": "Deleted"}},
                },
            },
            "/admin/settings": {
                "get": {
                    "operationId": "getSettings",
                    "summary": "Get admin settings",
                    "tags": ["admin"],
                    "responses": {"200": {"description": "OK"}},
                },
            },
        },
    }


@pytest.fixture
def upload_spec() -> Dict[str, Any]:
    """Multipart upload with a binary file field and a raw octet-stream upload."""
    return {
        "openapi": "3.0.3",
        "info": {"title": "Files", "version": "1"},
        "servers": [{"url": "https://files.example.com/v1"}],
        "paths": {
            "/files": {
                "post": {
                    "operationId": "uploadFile",
                    "requestBody": {
                        "required": True,
                        "content": {
                            "multipart/form-data": {
                                "schema": {
                                    "type": "object",
                                    "properties": {
                                        "file": {"type": "string", "format": "binary"},
                                        "description": {"type": "string"},
                                    },
                                    "required": ["file"],
                                },
                                "encoding": {"file": {"contentType": "image/png"}},
                            }
                        },
                    },
                    "responses": {"201": {"description": "Created"}},
                }
            },
            "/files/{name}/raw": {
                "put": {
                    "operationId": "putRaw",
                    "parameters": [
                        {"name": "name", "in": "path", "required": True, "schema": {"type": "string"}}
                    ],
                    "requestBody": {
                        "content": {"application/octet-stream": {}},
                    },
                    "responses": {"204": {"description": "Stored"}},
                }
            },
        },
    }


# =============================================================================
# HTTP FIXTURES
# =============================================================================


class RecordingTransport:
    """``httpx.MockTransport`` handler that records requests and replays responses.

    Usage:
        transport = RecordingTransport([httpx.Response(401), httpx.Response(200, json={})])
        client = httpx.AsyncClient(transport=httpx.MockTransport(transport))
        ...
        assert len(transport.requests) == 2
    """

    def __init__(self, responses: List[httpx.Response] | None = None):
        self.responses = list(responses or [])
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        request.read()
        self.requests.append(request)
        if self.responses:
            return self.responses.pop(0)
        return httpx.Response(200, json={"ok": True})


@pytest.fixture
def recording_client() -> Callable[..., tuple[httpx.AsyncClient, RecordingTransport]]:
    """Factory returning an AsyncClient backed by a RecordingTransport."""

    def factory(*responses: httpx.Response) -> tuple[httpx.AsyncClient, RecordingTransport]:
        transport = RecordingTransport(list(responses))
        return httpx.AsyncClient(transport=httpx.MockTransport(transport)), transport

    return factory
