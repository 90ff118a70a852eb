"""sqlagent.contracts.models

Shared models for the agent loop, tools, and the decision source.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal, Optional

from sqlagent.errors import AgentError


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"
    TOOL = "tool"


@dataclass(frozen=True)
class Message:
    """A single conversation entry. Immutable once created."""
    role: MessageRole
    content: str
    timestamp: datetime = field(default_factory=_utcnow)
    generated_sql: Optional[str] = None
    tool_name: Optional[str] = None  # set for TOOL messages

    @classmethod
    def user(cls, content: str) -> "Message":
        return cls(MessageRole.USER, content)

    @classmethod
    def assistant(cls, content: str, generated_sql: Optional[str] = None) -> "Message":
        return cls(MessageRole.ASSISTANT, content, generated_sql=generated_sql)

    @classmethod
    def system(cls, content: str) -> "Message":
        return cls(MessageRole.SYSTEM, content)

    @classmethod
    def tool(cls, content: str, tool_name: str, generated_sql: Optional[str] = None) -> "Message":
        return cls(MessageRole.TOOL, content, generated_sql=generated_sql, tool_name=tool_name)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"role": self.role.value, "content": self.content}
        if self.tool_name:
            out["tool_name"] = self.tool_name
        if self.generated_sql:
            out["generated_sql"] = self.generated_sql
        return out


@dataclass(frozen=True)
class ToolDefinition:
    """Tool metadata advertised to the decision source."""
    name: str
    description: str
    parameters: dict[str, Any]  # JSON schema of the arguments object

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "description": self.description, "parameters": self.parameters}


@dataclass(frozen=True)
class ToolCall:
    name: str
    arguments: dict[str, Any]
    call_id: str = "default"

    @classmethod
    def with_auto_id(cls, name: str, arguments: dict[str, Any]) -> "ToolCall":
        return cls(name, arguments, f"call-{uuid.uuid4().hex[:8]}")


@dataclass(frozen=True)
class ToolResult:
    """Outcome of one tool invocation. Created once, never mutated."""
    call_id: str
    tool: str
    result: Any
    success: bool
    error: Optional[str]
    duration_ms: int

    @classmethod
    def ok(cls, call_id: str, tool: str, result: Any, duration_ms: int) -> "ToolResult":
        return cls(call_id, tool, result, True, None, duration_ms)

    @classmethod
    def failure(cls, call_id: str, tool: str, error: str, duration_ms: int) -> "ToolResult":
        return cls(call_id, tool, None, False, error, duration_ms)

    def to_dict(self) -> dict[str, Any]:
        return {
            "call_id": self.call_id,
            "tool": self.tool,
            "success": self.success,
            "result": self.result,
            "error": self.error,
            "duration_ms": self.duration_ms,
        }


@dataclass(frozen=True)
class ToolContext:
    """Read-only context shared by every call in an execution round."""
    timeout: Optional[float] = None  # seconds
    request_id: Optional[str] = None


class AgentState(str, Enum):
    IDLE = "idle"
    THINKING = "thinking"
    EXECUTING_TOOL = "executing_tool"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    COMPLETED = "completed"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (AgentState.COMPLETED, AgentState.ERROR)


@dataclass
class AgentStats:
    iterations: int = 0
    tool_calls: int = 0
    duration_ms: int = 0


@dataclass
class AgentResponse:
    """Final response from the agent loop."""
    success: bool
    answer: str
    iterations: int
    tool_calls: int
    duration_ms: int
    executed_sql: Optional[str] = None
    error: Optional[AgentError] = None
    tool_errors: list[AgentError] = field(default_factory=list)
    traces: list[dict[str, Any]] | None = None

    @property
    def user_message(self) -> str:
        if self.success:
            return self.answer
        return self.error.user_message() if self.error else "The request failed."


@dataclass(frozen=True)
class ConfirmationReply:
    """How a human answered a confirmation request."""
    action: Literal["confirm", "typed", "admin", "cancel"]
    value: Optional[str] = None  # the typed keyword for action="typed"

    @classmethod
    def confirm(cls) -> "ConfirmationReply":
        return cls("confirm")

    @classmethod
    def typed(cls, value: str) -> "ConfirmationReply":
        return cls("typed", value)

    @classmethod
    def admin(cls) -> "ConfirmationReply":
        return cls("admin")

    @classmethod
    def cancel(cls) -> "ConfirmationReply":
        return cls("cancel")
