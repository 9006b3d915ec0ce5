from .body import select_body
from .builder import build_tool_definition, build_tool_definitions, parse_operation
from .io import load_openapi, load_spec
from .models import (
    ArgumentBinding,
    HttpRequestDescriptor,
    MediaTypeSpec,
    OperationSchema,
    ParameterSpec,
    RequestBodySpec,
    ToolDefinition,
)
from .normalizer import normalize_schema
from .options import BuildReport, OpenAPIOptions
from .parameters import classify_parameter, classify_parameters
from .registry import ToolRegistry
from .router import InvocationRouter, route_arguments

__all__ = [
    "ArgumentBinding",
    "BuildReport",
    "HttpRequestDescriptor",
    "InvocationRouter",
    "MediaTypeSpec",
    "OpenAPIOptions",
    "OperationSchema",
    "ParameterSpec",
    "RequestBodySpec",
    "ToolDefinition",
    "ToolRegistry",
    "build_tool_definition",
    "build_tool_definitions",
    "classify_parameter",
    "classify_parameters",
    "load_openapi",
    "load_spec",
    "normalize_schema",
    "parse_operation",
    "route_arguments",
    "select_body",
]
