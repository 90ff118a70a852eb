"""sqlagent.contracts.tool_base

Interfaces for tools and for the external collaborators of the agent loop.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Optional

from sqlagent.contracts.models import ConfirmationReply, ToolContext, ToolDefinition


class Tool(ABC):
    """A named capability the agent may invoke with a JSON arguments object."""

    @abstractmethod
    def definition(self) -> ToolDefinition:
        raise NotImplementedError

    @property
    def name(self) -> str:
        return self.definition().name

    @abstractmethod
    async def execute(self, args: dict[str, Any], ctx: ToolContext) -> Any:
        """Return a JSON-serializable result or raise a ToolError."""
        raise NotImplementedError


class DecisionSource(ABC):
    """Produces the agent's next decision from the serialized conversation."""

    @abstractmethod
    async def next_decision(self, payload: dict[str, Any]) -> Any:
        """Return a decision object (dict or JSON string); raise LLMError on failure."""
        raise NotImplementedError


class ConfirmationHandler(ABC):
    """Asks a human to resolve a pending confirmation request."""

    @abstractmethod
    async def resolve(self, request) -> ConfirmationReply:
        raise NotImplementedError


class DatabaseTool(ABC):
    """Narrow driver interface used by the built-in tools (blocking calls)."""

    dialect: str

    @abstractmethod
    def execute(self, sql: str, timeout_seconds: int) -> dict[str, Any]:
        """Return {"columns": [...], "rows": [[...]], "elapsed_ms": int, "rowcount": int}."""
        raise NotImplementedError

    @abstractmethod
    def list_tables(self, schema: Optional[str] = None) -> list[str]:
        raise NotImplementedError

    @abstractmethod
    def describe_table(self, table_name: str) -> list[dict[str, Any]]:
        raise NotImplementedError

    @abstractmethod
    def explain(self, sql: str, timeout_seconds: int) -> list[list[Any]]:
        raise NotImplementedError
