"""Tests for the openapi-mcp command line."""

from __future__ import annotations

import json

import pytest
from typer.testing import CliRunner

from openapi_mcp import __version__, cli
from openapi_mcp.server import OpenAPIMCPServer

runner = CliRunner()


@pytest.fixture
def spec_file(tmp_path, simple_spec):
    path = tmp_path / "openapi.json"
    path.write_text(json.dumps(simple_spec))
    return str(path)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in ("OPENAPI_SPEC_PATH", "API_BASE_URL", "API_HEADERS", "TRANSPORT_TYPE", "OPENAPI_MCP_BEARER_TOKEN"):
        monkeypatch.delenv(name, raising=False)


def test_version():
    result = runner.invoke(cli.app, ["--version"])

    assert result.exit_code == 0
    assert __version__ in result.output


class TestToolsCommand:
    def test_json_output(self, spec_file):
        result = runner.invoke(cli.app, ["tools", "--spec", spec_file, "--json"])

        assert result.exit_code == 0, result.output
        tools = json.loads(result.stdout)
        assert [t["name"] for t in tools][:3] == ["listUsers", "createUser", "getUser"]
        assert tools[2]["inputSchema"]["required"] == ["id"]

    def test_filters_and_prefix(self, spec_file):
        result = runner.invoke(
            cli.app,
            ["tools", "-s", spec_file, "--include-tag", "admin", "--tool-prefix", "api", "-j"],
        )

        assert result.exit_code == 0, result.output
        names = [t["name"] for t in json.loads(result.stdout)]
        assert names == ["api_createUser", "api_deleteUser", "api_getSettings"]

    def test_table_output(self, spec_file):
        result = runner.invoke(cli.app, ["tools", "--spec", spec_file])

        assert result.exit_code == 0, result.output
        assert "Tool" in result.output
        assert "5/5 operations registered" in result.output

    def test_spec_from_environment(self, spec_file, monkeypatch):
        monkeypatch.setenv("OPENAPI_SPEC_PATH", spec_file)

        result = runner.invoke(cli.app, ["tools", "--json"])

        assert result.exit_code == 0, result.output
        assert len(json.loads(result.stdout)) == 5

    def test_missing_file(self, tmp_path):
        result = runner.invoke(cli.app, ["tools", "--spec", str(tmp_path / "missing.yaml")])

        assert result.exit_code == 1
        assert "not found" in result.output


class TestServeCommand:
    def test_no_spec(self):
        result = runner.invoke(cli.app, ["serve"])

        assert result.exit_code == 1
        assert "No OpenAPI document configured" in result.output

    def test_bad_header(self, spec_file):
        result = runner.invoke(cli.app, ["serve", "--spec", spec_file, "-H", "broken"])

        assert result.exit_code == 1
        assert "Invalid header entry" in result.output

    def test_http_transport(self, spec_file, monkeypatch):
        served = []
        monkeypatch.setattr(OpenAPIMCPServer, "run_http", lambda self: served.append(self))

        result = runner.invoke(
            cli.app,
            [
                "serve",
                "--spec",
                spec_file,
                "--transport",
                "http",
                "--port",
                "8123",
                "-H",
                "X-API-Key:abc",
                "--forward-header",
                "X-Tenant",
                "--allowed-origin",
                "https://app.example.com",
            ],
        )

        assert result.exit_code == 0, result.output
        [server] = served
        assert server.config.port == 8123
        assert server.config.headers == {"X-API-Key": "abc"}
        assert server.config.forward_headers == ["X-Tenant"]
        assert server.config.allowed_origins == ["https://app.example.com"]
        assert len(server.registry) == 5
        assert server.client.headers["X-API-Key"] == "abc"
