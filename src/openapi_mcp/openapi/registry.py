from __future__ import annotations

from types import MappingProxyType
from typing import Iterable, Iterator, List, Mapping, Optional

from ..errors import UnknownToolError
from ..logging import get_logger
from .builder import build_tool_definitions
from .models import OpenAPISpec, ToolDefinition
from .options import BuildReport, OpenAPIOptions

__all__ = ["ToolRegistry"]

log = get_logger(__name__)


class ToolRegistry:
    """Name -> ToolDefinition mapping that is only ever replaced wholesale.

    Readers take the current mapping with one attribute read, so a concurrent
    ``replace()`` never exposes a half-built set; in-flight calls keep the
    definition they already looked up.
    """

    def __init__(self, tools: Iterable[ToolDefinition] = ()):
        self._tools: Mapping[str, ToolDefinition] = MappingProxyType({})
        self._report: Optional[BuildReport] = None
        self.replace(tools)

    def replace(self, tools: Iterable[ToolDefinition]) -> None:
        staged = {}
        for tool in tools:
            if tool.name in staged:
                raise ValueError(f"Duplicate tool name: {tool.name}")
            staged[tool.name] = tool
        self._tools = MappingProxyType(staged)

    def load(
        self,
        spec: OpenAPISpec,
        options: Optional[OpenAPIOptions] = None,
        *,
        base_url: Optional[str] = None,
    ) -> BuildReport:
        """Build every tool from ``spec`` first, then swap them in."""
        tools, report = build_tool_definitions(spec, options, base_url=base_url)
        self.replace(tools)
        self._report = report
        log.info("Registry now holds %d tools", len(tools))
        return report

    @property
    def report(self) -> Optional[BuildReport]:
        return self._report

    def get(self, name: str) -> ToolDefinition:
        tool = self._tools.get(name)
        if tool is None:
            raise UnknownToolError(name)
        return tool

    def names(self) -> List[str]:
        return list(self._tools)

    def tools(self) -> List[ToolDefinition]:
        return list(self._tools.values())

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __iter__(self) -> Iterator[ToolDefinition]:
        return iter(list(self._tools.values()))
