"""Rewrite OpenAPI schema fragments into JSON-Schema-compatible fragments.

``normalize_schema`` never raises and never mutates its input. Exactly one
rewrite rule applies per fragment (first match wins), then nested schemas are
normalized the same way.
"""

from __future__ import annotations

import copy
from typing import Any, Dict, Optional

from ..logging import get_logger
from .models import SchemaFragment

__all__ = ["normalize_schema", "is_binary_schema", "coerce_example", "BINARY_FORMATS"]

log = get_logger(__name__)

BINARY_FORMATS = frozenset({"binary", "byte"})

_NESTED_LIST_KEYS = ("allOf", "anyOf", "oneOf", "prefixItems")
_KEPT_ON_BINARY = ("description", "title", "contentMediaType", "nullable", "default")


def is_binary_schema(schema: Optional[SchemaFragment]) -> bool:
    """True for file-like schemas, before or after normalization."""
    if not isinstance(schema, dict):
        return False
    t = schema.get("type")
    fmt = schema.get("format")
    if t == "file" or fmt == "file":
        return True
    if t == "string" and fmt in BINARY_FORMATS:
        return True
    return t == "string" and schema.get("contentEncoding") == "base64"


def coerce_example(value: Any, declared_type: Any) -> Any:
    """Coerce a literal example to ``declared_type``; return it unchanged on failure."""
    if not isinstance(value, str):
        return value
    text = value.strip()
    try:
        if declared_type == "integer":
            return int(text)
        if declared_type == "number":
            return int(text) if text.lstrip("+-").isdigit() else float(text)
    except ValueError:
        log.debug("Leaving example %r as-is: not a valid %s", value, declared_type)
        return value
    if declared_type == "boolean" and text.lower() in ("true", "false"):
        return text.lower() == "true"
    return value


def _example_mismatch(schema: SchemaFragment) -> bool:
    if "example" not in schema:
        return False
    example = schema["example"]
    declared = schema.get("type")
    if declared in ("integer", "number", "boolean"):
        return isinstance(example, str)
    return False


def _apply_rule(schema: SchemaFragment) -> SchemaFragment:
    t = schema.get("type")
    fmt = schema.get("format")

    # 1. file-like payloads travel as base64 strings
    if t == "file" or fmt == "file" or (t == "string" and fmt in BINARY_FORMATS):
        out: SchemaFragment = {"type": "string", "contentEncoding": "base64"}
        for key in _KEPT_ON_BINARY:
            if key in schema:
                out[key] = schema[key]
        if "contentMediaType" not in out and schema.get("x-content-type"):
            out["contentMediaType"] = schema["x-content-type"]
        return out

    # 2. non-standard "float" type
    if t == "float":
        out = dict(schema)
        out["type"] = "number"
        out["format"] = "float"
        return out

    # 3. enum without a type (or the non-standard type "enum")
    if "enum" in schema and (t is None or t == "enum"):
        out = dict(schema)
        out["type"] = "string"
        return out

    # 4. example written in the wrong literal form
    if _example_mismatch(schema):
        out = dict(schema)
        out["example"] = coerce_example(schema["example"], t)
        return out

    return schema


def _normalize(schema: Any) -> Any:
    if not isinstance(schema, dict):
        return schema

    out: Dict[str, Any] = _apply_rule(schema)
    if out is schema:
        out = dict(schema)

    props = out.get("properties")
    if isinstance(props, dict):
        out["properties"] = {name: _normalize(sub) for name, sub in props.items()}

    items = out.get("items")
    if isinstance(items, dict):
        out["items"] = _normalize(items)
    elif isinstance(items, list):
        out["items"] = [_normalize(sub) for sub in items]

    extra = out.get("additionalProperties")
    if isinstance(extra, dict):
        out["additionalProperties"] = _normalize(extra)

    for key in _NESTED_LIST_KEYS:
        members = out.get(key)
        if isinstance(members, list):
            out[key] = [_normalize(sub) for sub in members]

    return out


def normalize_schema(schema: Optional[SchemaFragment]) -> SchemaFragment:
    """Return a normalized deep copy of ``schema`` (``{}`` for ``None``)."""
    if schema is None:
        return {}
    return _normalize(copy.deepcopy(schema))
