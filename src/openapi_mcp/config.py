"""Server configuration.

``ServerConfig.from_env()`` reads the environment (``.env`` is loaded once when
the package is imported). Explicit keyword overrides win over the environment.

Environment variables:
    OPENAPI_SPEC_PATH     path, URL or inline document
    API_BASE_URL          upstream base URL (overrides servers[])
    API_HEADERS           "Name:value,Other:value" static headers
    SERVER_NAME / SERVER_VERSION
    TRANSPORT_TYPE        stdio | http
    HTTP_HOST / HTTP_PORT / ENDPOINT_PATH
    OPENAPI_MCP_TIMEOUT           seconds per upstream request
    OPENAPI_MCP_FORWARD_HEADERS   inbound header names copied upstream
    OPENAPI_MCP_INCLUDE_TAGS / OPENAPI_MCP_EXCLUDE_TAGS
    OPENAPI_MCP_INCLUDE_OPERATIONS / OPENAPI_MCP_EXCLUDE_OPERATIONS
    OPENAPI_MCP_TOOL_PREFIX
    OPENAPI_MCP_LOG_LEVEL / OPENAPI_MCP_LOG_FORMAT
    OPENAPI_MCP_ALLOWED_HOSTS     Host headers accepted by the HTTP transport
    OPENAPI_MCP_ALLOWED_ORIGINS   Origin headers accepted by the HTTP transport ("*" turns checks off)
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, List, Literal, Mapping, Optional

from mcp.server.transport_security import TransportSecuritySettings

from .errors import ConfigurationError
from .openapi.options import OpenAPIOptions

__all__ = ["ServerConfig", "parse_headers", "parse_list"]

Transport = Literal["stdio", "http"]

LOCAL_HOSTS = ["127.0.0.1:*", "localhost:*", "[::1]:*"]
LOCAL_ORIGINS = ["http://127.0.0.1:*", "http://localhost:*", "http://[::1]:*"]


def parse_headers(raw: Optional[str]) -> Dict[str, str]:
    """Parse ``"Name:value,Other:value"`` into a dict."""
    headers: Dict[str, str] = {}
    for item in (raw or "").split(","):
        if not item.strip():
            continue
        name, sep, value = item.partition(":")
        if not sep or not name.strip():
            raise ConfigurationError(
                f"Invalid header entry {item.strip()!r}",
                config_key="API_HEADERS",
                hint="Use 'Name:value' pairs separated by commas.",
            )
        headers[name.strip()] = value.strip()
    return headers


def parse_list(raw: Optional[str]) -> Optional[List[str]]:
    items = [x.strip() for x in (raw or "").split(",") if x.strip()]
    return items or None


@dataclass
class ServerConfig:
    name: str = "openapi-mcp"
    version: str = "0.1.0"
    spec: Optional[str] = None
    base_url: Optional[str] = None
    headers: Dict[str, str] = field(default_factory=dict)
    transport: Transport = "stdio"
    host: str = "127.0.0.1"
    port: int = 3000
    path: str = "/mcp"
    timeout: float = 30.0
    forward_headers: List[str] = field(default_factory=list)
    allowed_hosts: List[str] = field(default_factory=list)
    allowed_origins: List[str] = field(default_factory=list)
    log_level: str = "INFO"
    log_format: Literal["human", "json"] = "human"
    options: OpenAPIOptions = field(default_factory=OpenAPIOptions)

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None, **overrides: Any) -> "ServerConfig":
        env = os.environ if env is None else env
        try:
            port = int(env.get("HTTP_PORT", "3000"))
            timeout = float(env.get("OPENAPI_MCP_TIMEOUT", "30"))
        except ValueError as exc:
            raise ConfigurationError(f"Invalid numeric setting: {exc}") from exc

        config = cls(
            name=env.get("SERVER_NAME", cls.name),
            version=env.get("SERVER_VERSION", cls.version),
            spec=env.get("OPENAPI_SPEC_PATH") or None,
            base_url=env.get("API_BASE_URL") or None,
            headers=parse_headers(env.get("API_HEADERS")),
            transport=env.get("TRANSPORT_TYPE", "stdio").lower(),  # type: ignore[arg-type]
            host=env.get("HTTP_HOST", cls.host),
            port=port,
            path=env.get("ENDPOINT_PATH", cls.path),
            timeout=timeout,
            forward_headers=parse_list(env.get("OPENAPI_MCP_FORWARD_HEADERS")) or [],
            allowed_hosts=parse_list(env.get("OPENAPI_MCP_ALLOWED_HOSTS")) or [],
            allowed_origins=parse_list(env.get("OPENAPI_MCP_ALLOWED_ORIGINS")) or [],
            log_level=env.get("OPENAPI_MCP_LOG_LEVEL", cls.log_level).upper(),
            log_format=env.get("OPENAPI_MCP_LOG_FORMAT", cls.log_format).lower(),  # type: ignore[arg-type]
            options=OpenAPIOptions(
                include_tags=parse_list(env.get("OPENAPI_MCP_INCLUDE_TAGS")),
                exclude_tags=parse_list(env.get("OPENAPI_MCP_EXCLUDE_TAGS")),
                include_operations=parse_list(env.get("OPENAPI_MCP_INCLUDE_OPERATIONS")),
                exclude_operations=parse_list(env.get("OPENAPI_MCP_EXCLUDE_OPERATIONS")),
                tool_prefix=env.get("OPENAPI_MCP_TOOL_PREFIX") or None,
            ),
        )
        known = {f.name for f in fields(cls)}
        unknown = set(overrides) - known
        if unknown:
            raise ConfigurationError(f"Unknown config keys: {', '.join(sorted(unknown))}")
        return replace(config, **{k: v for k, v in overrides.items() if v is not None})

    def validate(self) -> "ServerConfig":
        if not self.spec:
            raise ConfigurationError(
                "No OpenAPI document configured",
                config_key="spec",
                hint="Pass --spec or set OPENAPI_SPEC_PATH.",
            )
        if self.transport not in ("stdio", "http"):
            raise ConfigurationError(
                f"Unknown transport {self.transport!r}",
                config_key="transport",
                hint="Use 'stdio' or 'http'.",
            )
        if not 0 < self.port < 65536:
            raise ConfigurationError(f"Invalid port {self.port}", config_key="port")
        if self.timeout <= 0:
            raise ConfigurationError("timeout must be positive", config_key="timeout")
        if self.log_format not in ("human", "json"):
            raise ConfigurationError(f"Unknown log format {self.log_format!r}", config_key="log_format")
        if not self.path.startswith("/"):
            raise ConfigurationError("HTTP endpoint path must start with '/'", config_key="path")
        return self

    def transport_security(self) -> TransportSecuritySettings:
        """Host and Origin checks for the streamable HTTP transport.

        Loopback hosts and origins are always accepted. ``"*"`` in
        ``allowed_origins`` turns the checks off.
        """
        if "*" in self.allowed_origins:
            return TransportSecuritySettings(enable_dns_rebinding_protection=False)
        return TransportSecuritySettings(
            enable_dns_rebinding_protection=True,
            allowed_hosts=LOCAL_HOSTS + [h for h in self.allowed_hosts if h not in LOCAL_HOSTS],
            allowed_origins=LOCAL_ORIGINS + [o for o in self.allowed_origins if o not in LOCAL_ORIGINS],
        )
