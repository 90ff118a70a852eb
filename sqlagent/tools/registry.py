"""sqlagent.tools.registry

Name-keyed collection of tools. Registration happens at startup, before any
concurrent execution; afterwards the registry is only read.
"""

from __future__ import annotations

from typing import Iterable, Optional

from sqlagent.contracts.models import ToolDefinition
from sqlagent.contracts.tool_base import Tool


class ToolRegistry:
    def __init__(self, tools: Optional[Iterable[Tool]] = None):
        self.tools: dict[str, Tool] = {}
        for tool in tools or ():
            self.register(tool)

    def register(self, tool: Tool) -> None:
        """Insert or overwrite by tool name."""
        self.tools[tool.definition().name] = tool

    def get(self, name: str) -> Optional[Tool]:
        return self.tools.get(name)

    def contains(self, name: str) -> bool:
        return name in self.tools

    def keys(self) -> list[str]:
        return list(self.tools.keys())

    def get_definitions(self) -> list[ToolDefinition]:
        return [t.definition() for t in self.tools.values()]

    def __len__(self) -> int:
        return len(self.tools)
