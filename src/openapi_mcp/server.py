"""MCP server exposing one tool per OpenAPI operation.

``OpenAPIMCPServer`` owns the tool registry, one ``httpx.AsyncClient`` and an
``InvocationRouter``, and wires them into a low-level MCP ``Server``. It can
serve over stdio or streamable HTTP (Starlette app run by uvicorn).

Example:
    >>> config = ServerConfig(spec="./openapi.yaml", base_url="https://api.example.com")
    >>> server = OpenAPIMCPServer(config, auth_provider=StaticAuthProvider({"X-API-Key": "..."}))
    >>> server.load()
    >>> anyio.run(server.run_stdio)
"""

from __future__ import annotations

import contextlib
import json
from typing import Any, Dict, List, Optional, Union

import httpx
import mcp.types as types
from mcp.server.lowlevel import Server
from mcp.server.stdio import stdio_server
from mcp.server.streamable_http_manager import StreamableHTTPSessionManager
from starlette.applications import Starlette
from starlette.responses import JSONResponse
from starlette.routing import Route

from .auth import AuthProvider
from .config import ServerConfig
from .context import RequestContext
from .errors import ConfigurationError, InvocationError
from .logging import RequestLogger, get_logger
from .openapi.io import load_openapi
from .openapi.options import BuildReport
from .openapi.registry import ToolRegistry
from .openapi.router import InvocationRouter

__all__ = ["OpenAPIMCPServer", "response_payload"]

log = get_logger(__name__)


def response_payload(response: httpx.Response) -> Dict[str, Any]:
    """Summary of an upstream response, as returned to the MCP client."""
    result: Dict[str, Any] = {
        "status": response.status_code,
        "headers": dict(response.headers),
        "url": str(response.request.url),
        "method": response.request.method,
    }
    try:
        result["json"] = response.json()
    except ValueError:
        result["text"] = response.text
    return result


class _StreamableHTTPEndpoint:
    """ASGI endpoint handing every request to the session manager."""

    def __init__(self, manager: StreamableHTTPSessionManager):
        self._manager = manager

    async def __call__(self, scope, receive, send) -> None:
        await self._manager.handle_request(scope, receive, send)


class OpenAPIMCPServer:
    def __init__(
        self,
        config: ServerConfig,
        *,
        auth_provider: Optional[AuthProvider] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.config = config
        self.registry = ToolRegistry()
        self._own_client = client is None
        self.client = client or httpx.AsyncClient(
            timeout=config.timeout,
            follow_redirects=True,
            headers=config.headers,
        )
        self.router = InvocationRouter(
            self.client,
            auth_provider=auth_provider,
            base_url=config.base_url,
            forward_headers=config.forward_headers,
            request_logger=RequestLogger(),
        )
        self.mcp = Server(config.name, version=config.version)
        self._register_handlers()

    # ---------- tools ----------

    def load(self, spec: Optional[Union[str, Dict[str, Any]]] = None) -> BuildReport:
        """Load ``spec`` (default: the configured document) and rebuild every tool.

        Tools are swapped in only after the whole build succeeded.
        """
        source = spec if spec is not None else self.config.spec
        if not source:
            raise ConfigurationError(
                "No OpenAPI document configured",
                config_key="spec",
                hint="Pass --spec or set OPENAPI_SPEC_PATH.",
            )
        document = load_openapi(source, timeout=self.config.timeout)
        report = self.registry.load(document, self.config.options, base_url=self.config.base_url)
        for warning in report.warnings:
            log.warning(warning)
        return report

    reload = load

    def list_tools(self) -> List[types.Tool]:
        return [tool.to_mcp_tool() for tool in self.registry.tools()]

    async def call_tool(
        self,
        name: str,
        arguments: Optional[Dict[str, Any]] = None,
        context: Optional[RequestContext] = None,
    ) -> List[types.TextContent]:
        """Invoke one tool and return the upstream response as JSON text.

        Raises:
            UnknownToolError: no tool named ``name``.
            InvocationError: the upstream API answered with a non-2xx status.
        """
        tool = self.registry.get(name)
        try:
            response = await self.router.invoke(tool, arguments or {}, context)
        except httpx.HTTPStatusError as exc:
            raise InvocationError(
                f"HTTP {exc.response.status_code} from {tool.method} {tool.path}: {exc.response.text}",
                tool_name=name,
                status_code=exc.response.status_code,
                details={"body": exc.response.text},
            ) from exc
        payload = json.dumps(response_payload(response), indent=2, default=str)
        return [types.TextContent(type="text", text=payload)]

    # ---------- MCP wiring ----------

    def _current_context(self) -> RequestContext:
        try:
            request = self.mcp.request_context.request
        except LookupError:
            return RequestContext()
        headers = getattr(request, "headers", None)
        if headers is None:
            return RequestContext()
        return RequestContext.from_headers(dict(headers))

    def _register_handlers(self) -> None:
        @self.mcp.list_tools()
        async def _list_tools() -> List[types.Tool]:
            return self.list_tools()

        @self.mcp.call_tool()
        async def _call_tool(name: str, arguments: Dict[str, Any]) -> List[types.TextContent]:
            return await self.call_tool(name, arguments, self._current_context())

    async def aclose(self) -> None:
        if self._own_client:
            await self.client.aclose()

    async def __aenter__(self) -> "OpenAPIMCPServer":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    # ---------- transports ----------

    async def run_stdio(self) -> None:
        async with self, stdio_server() as (read_stream, write_stream):
            log.info("Serving %d tools over stdio", len(self.registry))
            await self.mcp.run(read_stream, write_stream, self.mcp.create_initialization_options())

    def http_app(self, *, health_path: str = "/healthz") -> Starlette:
        """Starlette app with the streamable HTTP endpoint at ``config.path``.

        Requests whose Host or Origin header is not allowed by
        ``config.transport_security()`` are rejected before reaching MCP.
        """
        manager = StreamableHTTPSessionManager(
            app=self.mcp,
            security_settings=self.config.transport_security(),
        )

        @contextlib.asynccontextmanager
        async def lifespan(_app: Starlette):
            async with contextlib.AsyncExitStack() as stack:
                await stack.enter_async_context(manager.run())
                stack.push_async_callback(self.aclose)
                log.info("Serving %d tools over HTTP at %s", len(self.registry), self.config.path)
                yield

        async def health(_request):
            return JSONResponse({"status": "ok", "tools": len(self.registry)})

        routes = [Route(self.config.path, endpoint=_StreamableHTTPEndpoint(manager))]
        if health_path:
            routes.append(Route(health_path, endpoint=health, methods=["GET"]))
        return Starlette(routes=routes, lifespan=lifespan)

    def run_http(self) -> None:
        import uvicorn

        uvicorn.run(
            self.http_app(),
            host=self.config.host,
            port=self.config.port,
            log_level=self.config.log_level.lower(),
        )
