"""Filtering, naming and reporting options for building tools from a document."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from .runtime import matches_any, sanitize_tool_name

__all__ = ["OpenAPIOptions", "OperationReport", "BuildReport"]

ToolNameFn = Callable[[str, str, Dict[str, Any]], str]
ToolDescriptionFn = Callable[[Dict[str, Any]], str]


@dataclass
class OpenAPIOptions:
    """Which operations become tools, and how they are named.

    Path filters are shell-style globs (``/users/*``); methods compare
    case-insensitively. An operation is kept when it passes every include
    filter that is set and matches no exclude filter.
    """

    include_paths: Optional[List[str]] = None
    exclude_paths: Optional[List[str]] = None
    include_methods: Optional[List[str]] = None
    exclude_methods: Optional[List[str]] = None
    include_tags: Optional[List[str]] = None
    exclude_tags: Optional[List[str]] = None
    include_operations: Optional[List[str]] = None
    exclude_operations: Optional[List[str]] = None
    tool_prefix: Optional[str] = None
    tool_name_fn: Optional[ToolNameFn] = None
    tool_description_fn: Optional[ToolDescriptionFn] = None
    # re-raise build errors instead of skipping the operation
    strict: bool = False

    def should_include_operation(self, path: str, method: str, operation: Dict[str, Any]) -> bool:
        method = method.upper()
        tags = set(operation.get("tags") or [])
        op_id = operation.get("operationId")

        if self.include_paths and not matches_any(path, self.include_paths):
            return False
        if self.exclude_paths and matches_any(path, self.exclude_paths):
            return False
        if self.include_methods and method not in {m.upper() for m in self.include_methods}:
            return False
        if self.exclude_methods and method in {m.upper() for m in self.exclude_methods}:
            return False
        if self.include_tags and not tags & set(self.include_tags):
            return False
        if self.exclude_tags and tags & set(self.exclude_tags):
            return False
        if self.include_operations and op_id not in self.include_operations:
            return False
        if self.exclude_operations and op_id in self.exclude_operations:
            return False
        return True

    def get_tool_name(self, default_name: str, method: str, path: str, operation: Dict[str, Any]) -> str:
        name = self.tool_name_fn(method, path, operation) if self.tool_name_fn else default_name
        if self.tool_prefix:
            name = f"{self.tool_prefix}_{name}"
        return sanitize_tool_name(name)

    def get_description(self, default: str, operation: Dict[str, Any]) -> str:
        if self.tool_description_fn:
            return self.tool_description_fn(operation)
        return default


@dataclass
class OperationReport:
    tool_name: str
    method: str
    path: str
    operation_id: Optional[str] = None


@dataclass
class BuildReport:
    """Outcome of one build: what was registered, filtered and skipped."""

    title: str = ""
    total_ops: int = 0
    registered_tools: int = 0
    filtered_ops: int = 0
    skipped_ops: int = 0
    ops: List[OperationReport] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    def summary(self) -> str:
        return (
            f"{self.title or 'OpenAPI'}: {self.registered_tools}/{self.total_ops} operations registered "
            f"({self.filtered_ops} filtered, {self.skipped_ops} skipped)"
        )
