"""sqlagent.errors

Central error types to keep error handling consistent.

Two families hang off AppError:
- ToolError: raised by tools and the executor (the tool contract).
- AgentError: structured failures the agent loop reports to its caller.
"""

from __future__ import annotations

from typing import Optional


class AppError(Exception):
    """Base application error."""


class ConfigError(AppError):
    """Raised when required configuration is missing or invalid."""


# -------- tool contract --------
class ToolError(AppError):
    """Raised when a tool call fails (lookup, arguments, DB, timeout)."""


class ToolNotFoundError(ToolError):
    def __init__(self, tool_name: str):
        super().__init__(f"Tool not found: {tool_name}")
        self.tool_name = tool_name


class ToolExecutionError(ToolError):
    def __init__(self, reason: str):
        super().__init__(f"Tool execution failed: {reason}")
        self.reason = reason


class ToolTimeoutError(ToolError):
    def __init__(self, seconds: Optional[float] = None):
        msg = "Tool execution timed out"
        if seconds is not None:
            msg += f" after {seconds:g}s"
        super().__init__(msg)
        self.seconds = seconds


class ToolPermissionError(ToolError):
    def __init__(self, tool_name: str):
        super().__init__(f"Permission denied for tool: {tool_name}")
        self.tool_name = tool_name


class InvalidToolArgumentsError(ToolError):
    def __init__(self, tool_name: str, details: str):
        super().__init__(f"Invalid arguments for {tool_name}: {details}")
        self.tool_name = tool_name
        self.details = details


class UnsafeSQLError(ToolError):
    """Raised when SQL violates the safety policy."""

    def __init__(self, reason: str):
        super().__init__(f"Safety violation: {reason}")
        self.reason = reason


class DatabaseError(ToolError):
    """Wraps a driver error (sqlite3, pyodbc)."""


# -------- agent failures --------
class AgentError(AppError):
    """Base class for failures reported by the agent loop."""

    retryable = False

    def user_message(self) -> str:
        return str(self)

    def is_retryable(self) -> bool:
        return self.retryable

    @staticmethod
    def from_tool_error(tool_name: str, exc: Exception) -> "AgentError":
        """Map a tool-level exception onto the agent taxonomy."""
        if isinstance(exc, ToolNotFoundError):
            return ToolNotFound(exc.tool_name)
        if isinstance(exc, UnsafeSQLError):
            return SafetyViolation(exc.reason)
        if isinstance(exc, ToolTimeoutError):
            return AgentTimeout(str(exc))
        if isinstance(exc, DatabaseError):
            return DatabaseFailure(str(exc))
        return ToolExecutionFailed(tool_name, str(exc))


class LLMError(AgentError):
    """The decision source failed (transport, auth, quota)."""

    retryable = True

    def __init__(self, message: str):
        super().__init__(f"LLM error: {message}")
        self.message = message

    def user_message(self) -> str:
        return "The language model could not be reached. Please try again."


class InvalidToolCall(AgentError):
    """The decision source returned something that is not a valid decision."""

    def __init__(self, details: str):
        super().__init__(f"Invalid tool call: {details}")
        self.details = details

    def user_message(self) -> str:
        return f"The assistant produced an invalid action ({self.details})."


class ToolExecutionFailed(AgentError):
    def __init__(self, tool_name: str, reason: str):
        super().__init__(f"Tool execution failed: {tool_name} - {reason}")
        self.tool_name = tool_name
        self.reason = reason

    def user_message(self) -> str:
        return f"The tool '{self.tool_name}' failed: {self.reason}"


class ToolNotFound(ToolExecutionFailed):
    def __init__(self, tool_name: str):
        super().__init__(tool_name, f"Tool not found: {tool_name}")


class SafetyViolation(AgentError):
    """Blacklist hit, safety-level mismatch, read-only violation or refused confirmation."""

    def __init__(self, reason: str):
        super().__init__(f"Safety violation: {reason}")
        self.reason = reason

    def user_message(self) -> str:
        return f"The operation was blocked by the safety policy: {self.reason}"


class MaxIterationsExceeded(AgentError):
    def __init__(self, iterations: int):
        super().__init__(f"Maximum iterations ({iterations}) exceeded for query")
        self.iterations = iterations

    def user_message(self) -> str:
        return (
            f"I could not finish within {self.iterations} reasoning steps. "
            "Try a more specific question."
        )


class SerializationError(AgentError):
    """The conversation could not be marshalled for the decision source."""

    def __init__(self, details: str):
        super().__init__(f"Serialization error: {details}")
        self.details = details

    def user_message(self) -> str:
        return "The conversation could not be prepared for the language model."


class AgentTimeout(AgentError):
    retryable = True

    def user_message(self) -> str:
        return "The operation timed out. Please try again."


class DatabaseFailure(AgentError):
    retryable = True

    def user_message(self) -> str:
        return f"The database reported an error: {self}"

