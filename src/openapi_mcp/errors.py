"""Error hierarchy for openapi-mcp.

Every error carries a human message plus optional structured ``details``,
a ``hint`` for the operator and a ``docs_url``. Build-time errors are fatal
for one operation only; invocation-time errors are fatal for one call.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Literal, Optional

__all__ = [
    "OpenAPIMCPError",
    "ConfigurationError",
    "OpenAPIError",
    "OpenAPIParseError",
    "SchemaBuildError",
    "DuplicatePropertyError",
    "InvocationError",
    "MissingPathParameterError",
    "UnknownToolError",
    "AuthenticationError",
    "log_exception",
]


def log_exception(
    logger: logging.Logger,
    message: str,
    exc: BaseException,
    *,
    level: Literal["debug", "info", "warning", "error", "critical"] = "warning",
    include_traceback: bool = True,
) -> None:
    """Log ``exc`` under ``message`` with its type name, optionally with traceback."""
    log_fn = getattr(logger, level)
    text = f"{message}: {type(exc).__name__}: {exc}"
    if include_traceback:
        log_fn(text, exc_info=(type(exc), exc, exc.__traceback__))
    else:
        log_fn(text)


class OpenAPIMCPError(Exception):
    """Base exception for all openapi-mcp errors."""

    def __init__(
        self,
        message: str,
        *,
        details: Optional[Dict[str, Any]] = None,
        hint: Optional[str] = None,
        docs_url: Optional[str] = None,
    ):
        self.message = message
        self.details: Dict[str, Any] = dict(details or {})
        self.hint = hint
        self.docs_url = docs_url
        super().__init__(self._format())

    def _format(self) -> str:
        parts = [self.message]
        if self.hint:
            parts.append(f"Hint: {self.hint}")
        if self.docs_url:
            parts.append(f"Docs: {self.docs_url}")
        return "\n".join(parts)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r})"


class ConfigurationError(OpenAPIMCPError):
    """Invalid or incomplete server configuration."""

    def __init__(self, message: str, *, config_key: Optional[str] = None, **kwargs: Any):
        details = kwargs.pop("details", None) or {}
        if config_key:
            details["config_key"] = config_key
        super().__init__(message, details=details, **kwargs)
        self.config_key = config_key


# =============================================================================
# Build-time errors
# =============================================================================


class OpenAPIError(OpenAPIMCPError):
    """Base class for problems with an OpenAPI document."""


class OpenAPIParseError(OpenAPIError):
    """The OpenAPI document could not be loaded or parsed."""

    def __init__(self, message: str, *, source: Optional[str] = None, **kwargs: Any):
        details = kwargs.pop("details", None) or {}
        if source:
            details["source"] = source
        super().__init__(message, details=details, **kwargs)
        self.source = source


class SchemaBuildError(OpenAPIError):
    """A tool definition could not be built for one operation."""

    def __init__(self, message: str, *, operation: Optional[str] = None, **kwargs: Any):
        details = kwargs.pop("details", None) or {}
        if operation:
            details["operation"] = operation
        super().__init__(message, details=details, **kwargs)
        self.operation = operation


class DuplicatePropertyError(SchemaBuildError):
    """Two request locations flatten onto the same input property name."""

    def __init__(
        self,
        property_name: str,
        first_location: str,
        second_location: str,
        *,
        operation: Optional[str] = None,
    ):
        super().__init__(
            f"Property '{property_name}' is declared in both {first_location} and "
            f"{second_location}; a flat input schema cannot represent both",
            operation=operation,
            details={
                "property": property_name,
                "locations": [first_location, second_location],
            },
            hint="Rename one of the parameters or exclude the operation.",
        )
        self.property_name = property_name
        self.locations = (first_location, second_location)


# =============================================================================
# Invocation-time errors
# =============================================================================


class InvocationError(OpenAPIMCPError):
    """A tool call could not be completed."""

    def __init__(
        self,
        message: str,
        *,
        tool_name: Optional[str] = None,
        status_code: Optional[int] = None,
        **kwargs: Any,
    ):
        details = kwargs.pop("details", None) or {}
        if tool_name:
            details["tool"] = tool_name
        if status_code is not None:
            details["status_code"] = status_code
        super().__init__(message, details=details, **kwargs)
        self.tool_name = tool_name
        self.status_code = status_code


class MissingPathParameterError(InvocationError):
    """A path template variable has no value in the call arguments."""

    def __init__(self, parameter: str, *, tool_name: Optional[str] = None):
        super().__init__(
            f"Missing required path parameter: {parameter}",
            tool_name=tool_name,
            details={"parameter": parameter},
        )
        self.parameter = parameter


class UnknownToolError(InvocationError):
    """No tool with the requested name is registered."""

    def __init__(self, tool_name: str):
        super().__init__(f"Unknown tool: {tool_name}", tool_name=tool_name)


class AuthenticationError(OpenAPIMCPError):
    """Credentials are missing, rejected or insufficient."""

    def __init__(self, message: str, *, status_code: Optional[int] = None, **kwargs: Any):
        details = kwargs.pop("details", None) or {}
        if status_code is not None:
            details["status_code"] = status_code
        super().__init__(message, details=details, **kwargs)
        self.status_code = status_code
