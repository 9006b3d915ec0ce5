"""
Command line interface.

Usage:
    openapi-mcp serve --spec ./openapi.yaml --base-url https://api.example.com
    openapi-mcp serve --spec https://api.example.com/openapi.json --transport http --port 3000
    openapi-mcp tools --spec ./openapi.yaml          # table of generated tools
    openapi-mcp tools --spec ./openapi.yaml --json   # tool list as MCP JSON

Every option falls back to the matching environment variable (see
``openapi_mcp.config``).
"""

from __future__ import annotations

import json
from typing import List, Optional

import anyio
import typer
from rich.console import Console
from rich.table import Table

from . import __version__
from .auth import BearerTokenAuthProvider
from .config import ServerConfig, parse_headers
from .errors import OpenAPIMCPError
from .logging import configure_logging
from .openapi.builder import build_tool_definitions
from .openapi.io import load_openapi
from .server import OpenAPIMCPServer

console = Console(stderr=True)

app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help="Expose the operations of an OpenAPI document as MCP tools.",
)


def print_cli_error(message: str, hint: Optional[str] = None) -> None:
    console.print(f"[red]✗[/red] {message}")
    if hint:
        console.print(f"  [dim]{hint}[/dim]")


def version_callback(value: bool):
    if value:
        typer.echo(f"openapi-mcp {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
):
    """openapi-mcp: OpenAPI operations as MCP tools."""


def _config(
    spec: Optional[str],
    base_url: Optional[str],
    header: Optional[List[str]],
    include_tag: Optional[List[str]],
    exclude_tag: Optional[List[str]],
    include_path: Optional[List[str]],
    exclude_path: Optional[List[str]],
    tool_prefix: Optional[str],
    strict: bool,
    **overrides,
) -> ServerConfig:
    config = ServerConfig.from_env(spec=spec, base_url=base_url, **overrides)
    if header:
        config.headers.update(parse_headers(",".join(header)))
    options = config.options
    options.include_tags = include_tag or options.include_tags
    options.exclude_tags = exclude_tag or options.exclude_tags
    options.include_paths = include_path or options.include_paths
    options.exclude_paths = exclude_path or options.exclude_paths
    options.tool_prefix = tool_prefix or options.tool_prefix
    options.strict = strict
    return config.validate()


_SPEC = typer.Option(None, "--spec", "-s", help="OpenAPI document: path, URL or inline JSON/YAML [env: OPENAPI_SPEC_PATH]")
_BASE_URL = typer.Option(None, "--base-url", "-b", help="Upstream API base URL [env: API_BASE_URL]")
_HEADER = typer.Option(None, "--header", "-H", help="Static header 'Name:value' (repeatable) [env: API_HEADERS]")
_INCLUDE_TAG = typer.Option(None, "--include-tag", help="Only operations with this tag (repeatable)")
_EXCLUDE_TAG = typer.Option(None, "--exclude-tag", help="Skip operations with this tag (repeatable)")
_INCLUDE_PATH = typer.Option(None, "--include-path", help="Only paths matching this glob (repeatable)")
_EXCLUDE_PATH = typer.Option(None, "--exclude-path", help="Skip paths matching this glob (repeatable)")
_TOOL_PREFIX = typer.Option(None, "--tool-prefix", help="Prefix for every tool name")
_STRICT = typer.Option(False, "--strict", help="Fail on the first operation that cannot be converted")


@app.command("serve")
def serve_cmd(
    spec: Optional[str] = _SPEC,
    base_url: Optional[str] = _BASE_URL,
    header: Optional[List[str]] = _HEADER,
    include_tag: Optional[List[str]] = _INCLUDE_TAG,
    exclude_tag: Optional[List[str]] = _EXCLUDE_TAG,
    include_path: Optional[List[str]] = _INCLUDE_PATH,
    exclude_path: Optional[List[str]] = _EXCLUDE_PATH,
    tool_prefix: Optional[str] = _TOOL_PREFIX,
    strict: bool = _STRICT,
    transport: Optional[str] = typer.Option(None, "--transport", "-t", help="stdio or http [env: TRANSPORT_TYPE]"),
    host: Optional[str] = typer.Option(None, "--host", help="HTTP bind host [env: HTTP_HOST]"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="HTTP port [env: HTTP_PORT]"),
    path: Optional[str] = typer.Option(None, "--path", help="HTTP endpoint path [env: ENDPOINT_PATH]"),
    forward_header: Optional[List[str]] = typer.Option(
        None, "--forward-header", help="Inbound HTTP header copied to upstream requests (repeatable)"
    ),
    allowed_origin: Optional[List[str]] = typer.Option(
        None, "--allowed-origin", help="Origin accepted by the HTTP transport, '*' for any (repeatable)"
    ),
    allowed_host: Optional[List[str]] = typer.Option(
        None, "--allowed-host", help="Accepted Host header, e.g. 'api.example.com:*' (repeatable)"
    ),
    bearer_token: Optional[str] = typer.Option(
        None, "--bearer-token", envvar="OPENAPI_MCP_BEARER_TOKEN", help="Send 'Authorization: Bearer <token>'"
    ),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Log level [env: OPENAPI_MCP_LOG_LEVEL]"),
    log_json: bool = typer.Option(False, "--log-json", help="Log as JSON lines"),
):
    """Serve the tools over stdio or streamable HTTP."""
    try:
        config = _config(
            spec,
            base_url,
            header,
            include_tag,
            exclude_tag,
            include_path,
            exclude_path,
            tool_prefix,
            strict,
            transport=transport,
            host=host,
            port=port,
            path=path,
            forward_headers=forward_header or None,
            allowed_origins=allowed_origin or None,
            allowed_hosts=allowed_host or None,
            log_level=log_level.upper() if log_level else None,
            log_format="json" if log_json else None,
        )
        configure_logging(config.log_level, format=config.log_format)
        auth = BearerTokenAuthProvider(bearer_token) if bearer_token else None
        server = OpenAPIMCPServer(config, auth_provider=auth)
        report = server.load()
    except OpenAPIMCPError as e:
        print_cli_error(e.message, hint=e.hint)
        raise typer.Exit(1)

    console.print(f"[green]✓[/green] {report.summary()}")
    if config.transport == "http":
        server.run_http()
    else:
        anyio.run(server.run_stdio)


@app.command("tools")
def tools_cmd(
    spec: Optional[str] = _SPEC,
    base_url: Optional[str] = _BASE_URL,
    include_tag: Optional[List[str]] = _INCLUDE_TAG,
    exclude_tag: Optional[List[str]] = _EXCLUDE_TAG,
    include_path: Optional[List[str]] = _INCLUDE_PATH,
    exclude_path: Optional[List[str]] = _EXCLUDE_PATH,
    tool_prefix: Optional[str] = _TOOL_PREFIX,
    strict: bool = _STRICT,
    output_json: bool = typer.Option(False, "--json", "-j", help="Output as JSON"),
):
    """Build the tools and print them without serving."""
    try:
        config = _config(
            spec, base_url, None, include_tag, exclude_tag, include_path, exclude_path, tool_prefix, strict
        )
        document = load_openapi(config.spec, timeout=config.timeout)
        tools, report = build_tool_definitions(document, config.options, base_url=config.base_url)
    except OpenAPIMCPError as e:
        print_cli_error(e.message, hint=e.hint)
        raise typer.Exit(1)

    if output_json:
        payload = [t.to_mcp_tool().model_dump(exclude_none=True) for t in tools]
        typer.echo(json.dumps(payload, indent=2))
        return

    table = Table(title=report.title or "OpenAPI tools")
    table.add_column("Tool", style="bold")
    table.add_column("Method")
    table.add_column("Path")
    table.add_column("Arguments", style="dim")
    for tool in tools:
        args = ", ".join(
            f"{name}*" if name in tool.required else name for name in tool.input_schema["properties"]
        )
        table.add_row(tool.name, tool.method, tool.path, args)
    Console().print(table)
    console.print(report.summary())
    for warning in report.warnings:
        console.print(f"[yellow]![/yellow] {warning}")
    for error in report.errors:
        console.print(f"[red]✗[/red] {error}")


def main():
    app()


if __name__ == "__main__":
    main()
