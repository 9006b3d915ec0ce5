import os

from dotenv import find_dotenv, load_dotenv

if not os.environ.get("OPENAPI_MCP_ENV_LOADED"):
    load_dotenv(find_dotenv(usecwd=True))
    os.environ["OPENAPI_MCP_ENV_LOADED"] = "1"

__version__ = "0.1.0"

from openapi_mcp.auth import (
    AuthProvider,
    BearerTokenAuthProvider,
    RedmineAuthProvider,
    StaticAuthProvider,
    auth_provider_from_value,
    is_auth_error,
)
from openapi_mcp.config import ServerConfig
from openapi_mcp.context import RequestContext

# Cross-cutting concerns
from openapi_mcp.errors import (
    AuthenticationError,
    ConfigurationError,
    DuplicatePropertyError,
    InvocationError,
    MissingPathParameterError,
    OpenAPIError,
    OpenAPIMCPError,
    OpenAPIParseError,
    SchemaBuildError,
    UnknownToolError,
)
from openapi_mcp.logging import configure_logging, get_logger
from openapi_mcp.openapi import (
    BuildReport,
    HttpRequestDescriptor,
    InvocationRouter,
    OpenAPIOptions,
    ToolDefinition,
    ToolRegistry,
    build_tool_definition,
    build_tool_definitions,
    load_openapi,
    normalize_schema,
    route_arguments,
    select_body,
)
from openapi_mcp.server import OpenAPIMCPServer

__all__ = [
    "__version__",
    # Auth
    "AuthProvider",
    "BearerTokenAuthProvider",
    "RedmineAuthProvider",
    "StaticAuthProvider",
    "auth_provider_from_value",
    "is_auth_error",
    # Server
    "OpenAPIMCPServer",
    "RequestContext",
    "ServerConfig",
    # OpenAPI -> tools
    "BuildReport",
    "HttpRequestDescriptor",
    "InvocationRouter",
    "OpenAPIOptions",
    "ToolDefinition",
    "ToolRegistry",
    "build_tool_definition",
    "build_tool_definitions",
    "load_openapi",
    "normalize_schema",
    "route_arguments",
    "select_body",
    # Errors
    "AuthenticationError",
    "ConfigurationError",
    "DuplicatePropertyError",
    "InvocationError",
    "MissingPathParameterError",
    "OpenAPIError",
    "OpenAPIMCPError",
    "OpenAPIParseError",
    "SchemaBuildError",
    "UnknownToolError",
    # Logging
    "configure_logging",
    "get_logger",
]
