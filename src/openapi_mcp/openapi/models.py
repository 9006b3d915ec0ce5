from __future__ import annotations

import copy
from typing import Any, Dict, List, Literal, Optional, Tuple

from mcp import types as mcp_types
from pydantic import BaseModel, ConfigDict, Field

__all__ = [
    "OpenAPISpec",
    "Operation",
    "SchemaFragment",
    "ParameterLocation",
    "ArgumentLocation",
    "BodyMode",
    "LOCATION_KEY",
    "as_schema",
    "ParameterSpec",
    "MediaTypeSpec",
    "RequestBodySpec",
    "OperationSchema",
    "ArgumentBinding",
    "ToolDefinition",
    "HttpRequestDescriptor",
]

OpenAPISpec = Dict[str, Any]
Operation = Dict[str, Any]
SchemaFragment = Dict[str, Any]

ParameterLocation = Literal["path", "query", "header", "cookie"]
ArgumentLocation = Literal["path", "query", "header", "cookie", "body", "body-field"]
BodyMode = Literal["json", "form", "multipart", "raw"]

# Per-property annotation naming the request location a property came from.
LOCATION_KEY = "x-parameter-location"


def as_schema(value: Any) -> SchemaFragment:
    """Boolean schemas (``true``, ``false``) and other non-objects become the empty schema."""
    return value if isinstance(value, dict) else {}


class ParameterSpec(BaseModel):
    """One OpenAPI parameter after ``$ref`` resolution."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str
    location: ParameterLocation = Field(alias="in")
    required: bool = False
    schema_: SchemaFragment = Field(default_factory=dict, alias="schema")
    description: Optional[str] = None
    style: Optional[str] = None
    explode: Optional[bool] = None

    @property
    def effective_style(self) -> str:
        if self.style:
            return self.style
        return "form" if self.location in ("query", "cookie") else "simple"

    @property
    def effective_explode(self) -> bool:
        if self.explode is not None:
            return self.explode
        return self.effective_style == "form"


class MediaTypeSpec(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    media_type: str
    schema_: SchemaFragment = Field(default_factory=dict, alias="schema")
    # field name -> OpenAPI Encoding object
    encoding: Dict[str, Dict[str, Any]] = Field(default_factory=dict)


class RequestBodySpec(BaseModel):
    """A request body with its media types in document order."""

    model_config = ConfigDict(frozen=True)

    content: Tuple[MediaTypeSpec, ...] = ()
    required: bool = False
    # None when the document does not say; distinguishes "required: false".
    required_declared: Optional[bool] = None
    description: Optional[str] = None

    @property
    def media_types(self) -> List[str]:
        return [c.media_type for c in self.content]


class OperationSchema(BaseModel):
    """Read-only description of one API operation."""

    model_config = ConfigDict(frozen=True)

    method: str
    path: str
    operation_id: Optional[str] = None
    summary: Optional[str] = None
    description: Optional[str] = None
    tags: Tuple[str, ...] = ()
    parameters: Tuple[ParameterSpec, ...] = ()
    request_body: Optional[RequestBodySpec] = None
    server_url: str = ""

    @property
    def label(self) -> str:
        return self.operation_id or f"{self.method.upper()} {self.path}"


class ArgumentBinding(BaseModel):
    """Routing metadata for one flat input property."""

    model_config = ConfigDict(frozen=True)

    name: str
    location: ArgumentLocation
    style: Optional[str] = None
    explode: bool = True
    content_media_type: Optional[str] = None
    content_encoding: Optional[str] = None


class ToolDefinition(BaseModel):
    """Flattened, protocol-facing schema plus routing metadata for one operation.

    Built once when the document is loaded and never mutated afterwards.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    description: str
    input_schema: SchemaFragment
    method: str
    path: str
    base_url: str = ""
    operation_id: Optional[str] = None
    tags: Tuple[str, ...] = ()
    bindings: Dict[str, ArgumentBinding] = Field(default_factory=dict)
    body_media_type: Optional[str] = None
    body_mode: Optional[BodyMode] = None

    @property
    def location_map(self) -> Dict[str, ArgumentLocation]:
        return {name: b.location for name, b in self.bindings.items()}

    @property
    def required(self) -> List[str]:
        return list(self.input_schema.get("required", []))

    def to_mcp_tool(self) -> mcp_types.Tool:
        return mcp_types.Tool(
            name=self.name,
            description=self.description,
            inputSchema=copy.deepcopy(self.input_schema),
        )


class HttpRequestDescriptor(BaseModel):
    """Everything needed to send one request.

    At most one of ``json_body``, ``data``, ``files`` and ``content`` is set.
    Multipart bodies travel entirely in ``files``; plain fields use a ``None``
    filename so httpx emits them as ordinary form parts.
    """

    method: str
    url: str
    params: List[Tuple[str, str]] = Field(default_factory=list)
    headers: Dict[str, str] = Field(default_factory=dict)
    json_body: Any = None
    data: Optional[Dict[str, Any]] = None
    files: Optional[List[Tuple[str, Tuple[Any, ...]]]] = None
    content: Optional[bytes] = None

    @property
    def cookie_header(self) -> Optional[str]:
        for key, value in self.headers.items():
            if key.lower() == "cookie":
                return value
        return None

    @property
    def has_body(self) -> bool:
        return any(x is not None for x in (self.json_body, self.data, self.files, self.content))

    def to_httpx(self) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {
            "method": self.method,
            "url": self.url,
            "headers": dict(self.headers),
        }
        if self.params:
            kwargs["params"] = list(self.params)
        if self.json_body is not None:
            kwargs["json"] = self.json_body
        if self.data is not None:
            kwargs["data"] = self.data
        if self.files is not None:
            kwargs["files"] = list(self.files)
        if self.content is not None:
            kwargs["content"] = self.content
        return kwargs
