"""Tests for the openapi-mcp error hierarchy."""

from __future__ import annotations

import logging

import pytest

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
    log_exception,
)

# =============================================================================
# log_exception Tests
# =============================================================================


class TestLogException:
    """Tests for log_exception helper."""

    def test_log_exception_warning(self, caplog: pytest.LogCaptureFixture) -> None:
        """Test logging with warning level."""
        logger = logging.getLogger("test")
        exc = ValueError("test error")

        with caplog.at_level(logging.WARNING):
            log_exception(logger, "Operation failed", exc, level="warning")

        assert "Operation failed" in caplog.text
        assert "ValueError" in caplog.text

    def test_log_exception_error(self, caplog: pytest.LogCaptureFixture) -> None:
        """Test logging with error level."""
        logger = logging.getLogger("test")

        with caplog.at_level(logging.ERROR):
            log_exception(logger, "Critical failure", RuntimeError("boom"), level="error")

        assert caplog.records[0].levelno == logging.ERROR

    def test_log_exception_without_traceback(self, caplog: pytest.LogCaptureFixture) -> None:
        """Test logging without traceback."""
        logger = logging.getLogger("test")

        with caplog.at_level(logging.WARNING):
            log_exception(logger, "Simple failure", ValueError("simple"), include_traceback=False)

        assert "Simple failure" in caplog.text
        assert caplog.records[0].exc_info is None


# =============================================================================
# Base error Tests
# =============================================================================


class TestOpenAPIMCPError:
    """Tests for the base error."""

    def test_basic_creation(self) -> None:
        error = OpenAPIMCPError("Something went wrong")

        assert error.message == "Something went wrong"
        assert error.details == {}
        assert str(error) == "Something went wrong"

    def test_hint_and_docs(self) -> None:
        error = OpenAPIMCPError("Bad", hint="Try again", docs_url="https://docs.example.com")

        assert str(error) == "Bad\nHint: Try again\nDocs: https://docs.example.com"

    def test_repr(self) -> None:
        assert repr(OpenAPIMCPError("msg")) == "OpenAPIMCPError('msg')"

    def test_details_are_copied(self) -> None:
        details = {"a": 1}
        error = OpenAPIMCPError("x", details=details)
        details["a"] = 2

        assert error.details == {"a": 1}


class TestHierarchy:
    @pytest.mark.parametrize(
        "cls,parent",
        [
            (ConfigurationError, OpenAPIMCPError),
            (OpenAPIError, OpenAPIMCPError),
            (OpenAPIParseError, OpenAPIError),
            (SchemaBuildError, OpenAPIError),
            (DuplicatePropertyError, SchemaBuildError),
            (InvocationError, OpenAPIMCPError),
            (MissingPathParameterError, InvocationError),
            (UnknownToolError, InvocationError),
            (AuthenticationError, OpenAPIMCPError),
        ],
    )
    def test_subclass(self, cls, parent) -> None:
        assert issubclass(cls, parent)


class TestSpecificErrors:
    def test_configuration_error_key(self) -> None:
        error = ConfigurationError("Missing", config_key="spec")
        assert error.config_key == "spec"
        assert error.details["config_key"] == "spec"

    def test_parse_error_source(self) -> None:
        error = OpenAPIParseError("Bad YAML", source="api.yaml")
        assert error.source == "api.yaml"
        assert error.details == {"source": "api.yaml"}

    def test_duplicate_property(self) -> None:
        error = DuplicatePropertyError("token", "query", "header", operation="getThing")

        assert error.property_name == "token"
        assert error.locations == ("query", "header")
        assert error.details["locations"] == ["query", "header"]
        assert error.details["operation"] == "getThing"
        assert "token" in error.message
        assert error.hint

    def test_invocation_error_status(self) -> None:
        error = InvocationError("Upstream failed", tool_name="getUser", status_code=502)
        assert error.details == {"tool": "getUser", "status_code": 502}

    def test_missing_path_parameter(self) -> None:
        error = MissingPathParameterError("id", tool_name="getUser")
        assert error.message == "Missing required path parameter: id"
        assert error.details["parameter"] == "id"

    def test_unknown_tool(self) -> None:
        assert UnknownToolError("x").message == "Unknown tool: x"

    def test_authentication_error_status(self) -> None:
        error = AuthenticationError("Denied", status_code=403)
        assert error.status_code == 403
        assert error.details["status_code"] == 403
