"""Per-request context passed explicitly from the transport to the router.

A ``RequestContext`` is a read-only snapshot of one inbound MCP request: its
HTTP headers (empty for stdio) and the MCP session id. It is created by the
server for each tool call and never shared between calls.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Optional

__all__ = ["RequestContext", "SESSION_HEADER"]

SESSION_HEADER = "mcp-session-id"

# Never copied to the upstream API even when configured.
_HOP_BY_HOP = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "te",
        "trailer",
        "transfer-encoding",
        "upgrade",
        "host",
        "content-length",
    }
)


@dataclass(frozen=True)
class RequestContext:
    headers: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    session_id: Optional[str] = None

    @classmethod
    def from_headers(cls, headers: Optional[Mapping[str, Any]] = None, session_id: Optional[str] = None) -> "RequestContext":
        normalized = {}
        for key, value in (headers or {}).items():
            if value is None:
                continue
            if isinstance(value, (list, tuple)):
                value = ", ".join(str(v) for v in value)
            normalized[str(key).lower()] = str(value)
        return cls(
            headers=MappingProxyType(normalized),
            session_id=session_id or normalized.get(SESSION_HEADER),
        )

    def get_header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.headers.get(name.lower(), default)

    def forwarded_headers(self, names: Iterable[str]) -> dict[str, str]:
        """Headers named in ``names`` that are present on the inbound request."""
        out: dict[str, str] = {}
        for name in names:
            if name.lower() in _HOP_BY_HOP:
                continue
            value = self.get_header(name)
            if value is not None:
                out[name] = value
        return out
