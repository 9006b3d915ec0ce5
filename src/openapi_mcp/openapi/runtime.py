from __future__ import annotations

import fnmatch
import re
from typing import Any, Dict, List, Optional

from .models import OpenAPISpec, Operation

ALLOWED_METHODS = ("get", "put", "post", "delete", "options", "head", "patch", "trace")

# MCP tool names: letters, digits, underscore and hyphen, at most 64 chars.
MAX_TOOL_NAME_LENGTH = 64


def sanitize_tool_name(s: str) -> str:
    """Return a safe tool name (alphanumeric, '_' and '-', not starting/ending with '_')."""
    s = re.sub(r"[^a-zA-Z0-9_-]+", "_", s.strip())
    s = re.sub(r"_+", "_", s)
    s = s.strip("_") or "op"
    return s[:MAX_TOOL_NAME_LENGTH].rstrip("_-") or "op"


def op_tool_name(path: str, method: str, opid: Optional[str]) -> str:
    """Derive a tool name from operationId if present, else from method + path."""
    if opid:
        return sanitize_tool_name(opid)
    return sanitize_tool_name(f"{method.lower()}_{path.strip('/').replace('/', '_')}")


def op_description(path: str, method: str, op: Operation) -> str:
    summary = (op.get("summary") or "").strip()
    description = (op.get("description") or "").strip()
    if summary and description and description != summary:
        return f"{summary}\n\n{description}"
    return summary or description or f"{method.upper()} {path}"


def merge_parameters(path_item: Dict[str, Any] | None, op: Operation) -> List[Dict[str, Any]]:
    """Merge path-level and operation-level parameters with op-level overriding.

    Parameters are keyed by (in, name). Expects ``$ref``s already resolved and
    skips invalid parameter objects.
    """
    merged: List[Dict[str, Any]] = []
    index: Dict[tuple[str, str], int] = {}
    for source in ((path_item or {}).get("parameters") or [], op.get("parameters") or []):
        for param in source:
            if not (isinstance(param, dict) and {"in", "name"} <= param.keys()):
                continue
            key = (param["in"], param["name"])
            if key in index:
                merged[index[key]] = param
            else:
                index[key] = len(merged)
                merged.append(param)
    return merged


def pick_effective_base_url(
    spec: OpenAPISpec,
    path_item: Dict[str, Any] | None,
    op: Operation | None,
    override: Optional[str] = None,
) -> str:
    """Return base URL honoring precedence: override > op.servers > path.servers > root.servers.

    Server variables are substituted with their defaults.
    """
    if override:
        return override.rstrip("/")
    for node in (op or {}, path_item or {}, spec):
        servers = node.get("servers") or []
        if servers and isinstance(servers[0], dict):
            return _expand_server_url(servers[0]).rstrip("/")
    return ""


def _expand_server_url(server: Dict[str, Any]) -> str:
    url = str(server.get("url", ""))
    for name, var in (server.get("variables") or {}).items():
        if isinstance(var, dict) and "default" in var:
            url = url.replace("{" + name + "}", str(var["default"]))
    return url


def matches_any(value: str, patterns: Optional[List[str]]) -> bool:
    return any(fnmatch.fnmatchcase(value, p) for p in (patterns or []))


__all__ = [
    "ALLOWED_METHODS",
    "MAX_TOOL_NAME_LENGTH",
    "sanitize_tool_name",
    "op_tool_name",
    "op_description",
    "merge_parameters",
    "pick_effective_base_url",
    "matches_any",
]
