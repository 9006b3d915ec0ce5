"""Local ``$ref`` resolution and ``allOf`` merging.

Only document-local references (``#/...``) are supported. A reference that
points back into its own expansion is replaced by a plain ``{"type": "object"}``
so the resulting schema stays finite.
"""

from __future__ import annotations

import copy
from typing import Any, Dict, FrozenSet, List

from ..errors import OpenAPIParseError
from ..logging import get_logger
from .models import OpenAPISpec

__all__ = ["resolve_pointer", "resolve_refs", "merge_allof_schemas"]

log = get_logger(__name__)


def resolve_pointer(ref: str, document: OpenAPISpec) -> Any:
    if not ref.startswith("#/"):
        raise OpenAPIParseError(
            f"Unsupported external reference: {ref}",
            hint="Bundle the document so every $ref is local (#/...).",
        )
    node: Any = document
    for raw in ref[2:].split("/"):
        part = raw.replace("~1", "/").replace("~0", "~")
        if isinstance(node, dict) and part in node:
            node = node[part]
        elif isinstance(node, list) and part.isdigit() and int(part) < len(node):
            node = node[int(part)]
        else:
            raise OpenAPIParseError(f"Unresolvable reference: {ref}")
    return node


def _resolve(node: Any, document: OpenAPISpec, seen: FrozenSet[str]) -> Any:
    if isinstance(node, list):
        return [_resolve(item, document, seen) for item in node]
    if not isinstance(node, dict):
        return node

    ref = node.get("$ref")
    if isinstance(ref, str):
        if ref in seen:
            log.debug("Breaking circular reference %s", ref)
            return {"type": "object"}
        target = _resolve(resolve_pointer(ref, document), document, seen | {ref})
        siblings = {k: v for k, v in node.items() if k != "$ref"}
        if siblings and isinstance(target, dict):
            target = {**target, **_resolve(siblings, document, seen)}
        return target

    out = {key: _resolve(value, document, seen) for key, value in node.items()}
    if isinstance(out.get("allOf"), list):
        members = out.pop("allOf")
        merged = merge_allof_schemas(members, document)
        out = {**merged, **out}
    return out


def resolve_refs(node: Any, document: OpenAPISpec) -> Any:
    """Return a deep copy of ``node`` with every local ``$ref`` inlined."""
    return _resolve(copy.deepcopy(node), document, frozenset())


def merge_allof_schemas(schemas: List[Dict[str, Any]], document: OpenAPISpec) -> Dict[str, Any]:
    """Merge ``allOf`` members into one object schema (later members win on conflicts)."""
    merged: Dict[str, Any] = {}
    properties: Dict[str, Any] = {}
    required: List[str] = []
    for member in schemas:
        member = resolve_refs(member, document)
        if not isinstance(member, dict):
            continue
        properties.update(member.get("properties") or {})
        for name in member.get("required") or []:
            if name not in required:
                required.append(name)
        for key, value in member.items():
            if key not in ("properties", "required"):
                merged[key] = value
    if properties:
        merged["properties"] = properties
        merged.setdefault("type", "object")
    if required:
        merged["required"] = required
    return merged
