"""Logging for openapi-mcp.

Thin layer over the standard library ``logging`` package:

- ``configure_logging()`` installs one stderr handler on the ``openapi_mcp``
  logger with either a JSON or a human formatter. stdout is left alone so the
  stdio transport stays a clean JSON-RPC stream.
- ``get_logger()`` returns a ``StructuredLogger`` that turns keyword
  arguments into ``extra`` fields.
- ``RequestLogger`` records outbound HTTP calls with secrets redacted.

Example:
    >>> from openapi_mcp.logging import configure_logging, get_logger
    >>> configure_logging(level="DEBUG", format="json")
    >>> log = get_logger(__name__)
    >>> log.info("Built tools", count=12)
"""

from __future__ import annotations

import json
import logging
import sys
import time
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import IO, Any, Dict, Literal, Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

__all__ = [
    "ROOT_LOGGER",
    "JSONFormatter",
    "HumanFormatter",
    "StructuredLogger",
    "RequestLog",
    "RequestLogger",
    "configure_logging",
    "get_logger",
    "sanitize_headers",
    "sanitize_url",
]

ROOT_LOGGER = "openapi_mcp"

# Attributes every LogRecord has; anything else on a record came from ``extra``.
_RESERVED_ATTRS = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys() | {"message", "asctime"}
)

_SENSITIVE_PARAMS = frozenset(
    {"api_key", "apikey", "key", "token", "access_token", "secret", "password"}
)
_SENSITIVE_HEADERS = frozenset(
    {"authorization", "cookie", "x-api-key", "x-redmine-api-key", "proxy-authorization"}
)


def _extras(record: logging.LogRecord) -> Dict[str, Any]:
    return {k: v for k, v in record.__dict__.items() if k not in _RESERVED_ATTRS}


class JSONFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        data: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        data.update(_extras(record))
        if record.levelno >= logging.ERROR:
            data["location"] = {
                "file": record.pathname,
                "line": record.lineno,
                "function": record.funcName,
            }
        if record.exc_info:
            data["exception"] = self.formatException(record.exc_info)
        return json.dumps(data, default=str)


class HumanFormatter(logging.Formatter):
    """``time LEVEL logger: message key=value ...``"""

    def __init__(self) -> None:
        super().__init__(datefmt="%H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        line = (
            f"{self.formatTime(record, self.datefmt)} {record.levelname:<8} "
            f"{record.name}: {record.getMessage()}"
        )
        extras = _extras(record)
        if extras:
            line += " " + " ".join(f"{k}={v}" for k, v in extras.items())
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


class StructuredLogger:
    """Wrapper around ``logging.Logger`` that accepts fields as keyword arguments."""

    def __init__(self, name: str):
        self.name = name
        self._logger = logging.getLogger(name)

    @property
    def logger(self) -> logging.Logger:
        return self._logger

    def child(self, suffix: str) -> "StructuredLogger":
        return StructuredLogger(f"{self.name}.{suffix}")

    def isEnabledFor(self, level: int) -> bool:
        return self._logger.isEnabledFor(level)

    def _log(self, level: int, msg: str, args: tuple, fields: Dict[str, Any]) -> None:
        if not self._logger.isEnabledFor(level):
            return
        exc_info = fields.pop("exc_info", None)
        self._logger.log(level, msg, *args, exc_info=exc_info, extra=fields or None, stacklevel=3)

    def debug(self, msg: str, *args: Any, **fields: Any) -> None:
        self._log(logging.DEBUG, msg, args, fields)

    def info(self, msg: str, *args: Any, **fields: Any) -> None:
        self._log(logging.INFO, msg, args, fields)

    def warning(self, msg: str, *args: Any, **fields: Any) -> None:
        self._log(logging.WARNING, msg, args, fields)

    def error(self, msg: str, *args: Any, **fields: Any) -> None:
        self._log(logging.ERROR, msg, args, fields)

    def critical(self, msg: str, *args: Any, **fields: Any) -> None:
        self._log(logging.CRITICAL, msg, args, fields)

    def exception(self, msg: str, *args: Any, **fields: Any) -> None:
        fields.setdefault("exc_info", True)
        self._log(logging.ERROR, msg, args, fields)


def get_logger(name: str) -> StructuredLogger:
    return StructuredLogger(name)


def configure_logging(
    level: str | int = "INFO",
    *,
    format: Literal["json", "human"] = "human",
    stream: Optional[IO[str]] = None,
) -> logging.Logger:
    """Install a single handler on the package logger. Safe to call repeatedly."""
    root = logging.getLogger(ROOT_LOGGER)
    root.setLevel(level.upper() if isinstance(level, str) else level)

    for handler in list(root.handlers):
        if getattr(handler, "_openapi_mcp", False):
            root.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(JSONFormatter() if format == "json" else HumanFormatter())
    handler._openapi_mcp = True  # type: ignore[attr-defined]
    root.addHandler(handler)
    root.propagate = False
    return root


# =============================================================================
# Outbound request logging
# =============================================================================


def sanitize_url(url: str) -> str:
    """Replace the values of credential-like query parameters with ``[REDACTED]``."""
    parts = urlsplit(url)
    if not parts.query:
        return url
    query = [
        (k, "[REDACTED]" if k.lower() in _SENSITIVE_PARAMS else v)
        for k, v in parse_qsl(parts.query, keep_blank_values=True)
    ]
    return urlunsplit(parts._replace(query=urlencode(query)))


def sanitize_headers(headers: Dict[str, str]) -> Dict[str, str]:
    return {k: ("[REDACTED]" if k.lower() in _SENSITIVE_HEADERS else v) for k, v in headers.items()}


@dataclass
class RequestLog:
    method: str
    url: str
    tool: Optional[str] = None
    session_id: Optional[str] = None
    attempt: int = 1
    status_code: Optional[int] = None
    response_size: Optional[int] = None
    latency_ms: Optional[float] = None
    error: Optional[str] = None
    _started: float = field(default_factory=time.perf_counter, repr=False)

    def complete(
        self,
        *,
        status_code: Optional[int] = None,
        response_size: Optional[int] = None,
        error: Optional[str] = None,
    ) -> "RequestLog":
        self.status_code = status_code
        self.response_size = response_size
        self.error = error
        self.latency_ms = round((time.perf_counter() - self._started) * 1000, 2)
        return self

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data.pop("_started", None)
        return {k: v for k, v in data.items() if v is not None}


class RequestLogger:
    """Logs outbound API requests at DEBUG and failures at WARNING."""

    def __init__(self, name: str = f"{ROOT_LOGGER}.http"):
        self._log = get_logger(name)

    def log_request(
        self, *, method: str, url: str, headers: Optional[Dict[str, str]] = None, **fields: Any
    ) -> RequestLog:
        entry = RequestLog(method=method, url=sanitize_url(url), **fields)
        self._log.debug(
            "-> %s %s",
            entry.method,
            entry.url,
            tool=entry.tool,
            attempt=entry.attempt,
            headers=sanitize_headers(headers or {}),
        )
        return entry

    def log_response(self, entry: RequestLog, *, status_code: int, response_size: int = 0) -> None:
        entry.complete(status_code=status_code, response_size=response_size)
        if status_code >= 400:
            self._log.warning("<- %s %s %s", status_code, entry.method, entry.url, **_fields(entry))
        else:
            self._log.debug("<- %s %s %s", status_code, entry.method, entry.url, **_fields(entry))

    def log_error(self, entry: RequestLog, exc: BaseException) -> None:
        entry.complete(error=f"{type(exc).__name__}: {exc}")
        self._log.warning("<- failed %s %s", entry.method, entry.url, **_fields(entry))


def _fields(entry: RequestLog) -> Dict[str, Any]:
    data = entry.to_dict()
    for key in ("method", "url"):
        data.pop(key, None)
    return data
