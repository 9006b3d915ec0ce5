"""Pick one media type for a request body and flatten it into input properties.

Selection is deterministic: ``application/json`` if declared, else the first
JSON-compatible type (``*/*+json``), else the first declared type.

Object-shaped JSON and form bodies are flattened: every field becomes a
top-level ``body-field`` property. Everything else is carried by a single
property named ``body``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

from .models import LOCATION_KEY, BodyMode, MediaTypeSpec, RequestBodySpec, SchemaFragment
from .normalizer import is_binary_schema, normalize_schema

__all__ = [
    "BODY_PROPERTY",
    "BodyField",
    "SelectedBody",
    "base_media_type",
    "is_json_media_type",
    "body_mode_for",
    "select_media_type",
    "select_body",
]

BODY_PROPERTY = "body"

FORM_URLENCODED = "application/x-www-form-urlencoded"

# Non-JSON payloads that have no textual form and must travel as base64.
_BINARY_MEDIA_PREFIXES = ("image/", "audio/", "video/", "font/")
_BINARY_MEDIA_TYPES = frozenset(
    {"application/octet-stream", "application/pdf", "application/zip", "application/gzip"}
)


@dataclass(frozen=True)
class BodyField:
    name: str
    schema: SchemaFragment
    required: bool
    content_media_type: Optional[str] = None
    content_encoding: Optional[str] = None


@dataclass(frozen=True)
class SelectedBody:
    media_type: str
    mode: BodyMode
    fields: List[BodyField] = field(default_factory=list)
    # True when ``fields`` are the body's own properties, False for a single ``body``
    flattened: bool = False


def base_media_type(media_type: str) -> str:
    return media_type.split(";", 1)[0].strip().lower()


def is_json_media_type(media_type: str) -> bool:
    base = base_media_type(media_type)
    return base == "application/json" or base.endswith("+json")


def body_mode_for(media_type: str) -> BodyMode:
    base = base_media_type(media_type)
    if is_json_media_type(base):
        return "json"
    if base == FORM_URLENCODED:
        return "form"
    if base.startswith("multipart/"):
        return "multipart"
    return "raw"


def _is_binary_media_type(media_type: str) -> bool:
    base = base_media_type(media_type)
    return base in _BINARY_MEDIA_TYPES or base.startswith(_BINARY_MEDIA_PREFIXES)


def select_media_type(spec: RequestBodySpec) -> Optional[MediaTypeSpec]:
    content = list(spec.content)
    for candidate in content:
        if base_media_type(candidate.media_type) == "application/json":
            return candidate
    for candidate in content:
        if is_json_media_type(candidate.media_type):
            return candidate
    return content[0] if content else None


def _has_fields(schema: SchemaFragment) -> bool:
    return (
        schema.get("type", "object") == "object"
        and isinstance(schema.get("properties"), dict)
        and bool(schema["properties"])
    )


def _flatten_fields(spec: RequestBodySpec, chosen: MediaTypeSpec, schema: SchemaFragment) -> List[BodyField]:
    required_names = set(schema.get("required") or [])
    # an explicit "required: false" body makes every field optional
    body_optional = spec.required_declared is False
    fields: List[BodyField] = []
    for name, prop in schema["properties"].items():
        prop = dict(prop) if isinstance(prop, dict) else {}
        encoding = chosen.encoding.get(name) or {}
        media = encoding.get("contentType") or prop.get("contentMediaType")
        if media:
            prop["contentMediaType"] = media
        prop[LOCATION_KEY] = "body-field"
        fields.append(
            BodyField(
                name=name,
                schema=prop,
                required=name in required_names and not body_optional,
                content_media_type=media,
                content_encoding=prop.get("contentEncoding"),
            )
        )
    return fields


def _single_body(spec: RequestBodySpec, chosen: MediaTypeSpec, schema: SchemaFragment, mode: BodyMode) -> BodyField:
    prop = dict(schema)
    if mode == "raw":
        if not prop and _is_binary_media_type(chosen.media_type):
            prop = {"type": "string", "contentEncoding": "base64"}
        elif not prop:
            prop = {"type": "string"}
        prop["contentMediaType"] = chosen.media_type
    if spec.description and "description" not in prop:
        prop["description"] = spec.description
    prop[LOCATION_KEY] = "body"
    return BodyField(
        name=BODY_PROPERTY,
        schema=prop,
        required=spec.required,
        content_media_type=chosen.media_type if mode == "raw" else None,
        content_encoding="base64" if is_binary_schema(prop) else None,
    )


def select_body(spec: Optional[RequestBodySpec]) -> Optional[SelectedBody]:
    """Return the selected media type and its flat input properties, or ``None``."""
    if spec is None:
        return None
    chosen = select_media_type(spec)
    if chosen is None:
        return None

    mode = body_mode_for(chosen.media_type)
    schema = normalize_schema(chosen.schema_)

    if mode in ("json", "form", "multipart") and _has_fields(schema):
        return SelectedBody(
            media_type=chosen.media_type,
            mode=mode,
            fields=_flatten_fields(spec, chosen, schema),
            flattened=True,
        )
    return SelectedBody(
        media_type=chosen.media_type,
        mode=mode,
        fields=[_single_body(spec, chosen, schema, mode)],
        flattened=False,
    )
