"""sqlagent.agents.context

Bounded conversation history.

Two retention limits apply after every insertion, evicting from the oldest end:
- message count <= max_messages
- estimated tokens (total content length // 4) <= max_tokens

The estimate is recomputed over the whole history on each check.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from sqlagent.contracts.models import Message, MessageRole


@dataclass
class ContextStats:
    message_count: int
    token_estimate: int
    user_message_count: int
    assistant_message_count: int
    tool_call_count: int


class ConversationContext:
    def __init__(self, max_messages: int = 50, max_tokens: int = 8000):
        self._messages: list[Message] = []
        self.max_messages = max_messages
        self.max_tokens = max_tokens
        self._schema: Optional[str] = None

    # ----- insertion -----
    def add_message(self, message: Message) -> None:
        self._messages.append(message)
        self._prune()

    def add_user_message(self, content: str) -> None:
        self.add_message(Message.user(content))

    def add_assistant_message(self, content: str, generated_sql: Optional[str] = None) -> None:
        self.add_message(Message.assistant(content, generated_sql))

    def add_tool_message(self, content: str, tool_name: str, generated_sql: Optional[str] = None) -> None:
        self.add_message(Message.tool(content, tool_name, generated_sql))

    def add_system_message(self, content: str) -> None:
        self.add_message(Message.system(content))

    def _prune(self) -> None:
        if len(self._messages) > self.max_messages:
            del self._messages[: len(self._messages) - self.max_messages]

        while self._messages and self.estimate_tokens() > self.max_tokens:
            del self._messages[0]

    # ----- limits -----
    def set_max_messages(self, max_messages: int) -> None:
        self.max_messages = max_messages
        self._prune()

    def set_max_tokens(self, max_tokens: int) -> None:
        self.max_tokens = max_tokens
        self._prune()

    def estimate_tokens(self) -> int:
        return sum(len(m.content) for m in self._messages) // 4

    def within_token_limit(self) -> bool:
        return self.estimate_tokens() <= self.max_tokens

    # ----- queries -----
    @property
    def messages(self) -> tuple[Message, ...]:
        return tuple(self._messages)

    def recent_messages(self, count: int) -> list[Message]:
        if count <= 0:
            return []
        return self._messages[-count:]

    def messages_by_role(self, role: MessageRole) -> list[Message]:
        return [m for m in self._messages if m.role == role]

    def last_user_message(self) -> Optional[Message]:
        return next((m for m in reversed(self._messages) if m.role == MessageRole.USER), None)

    def last_assistant_message(self) -> Optional[Message]:
        return next((m for m in reversed(self._messages) if m.role == MessageRole.ASSISTANT), None)

    def history_string(self) -> str:
        return "\n".join(f"[{m.role.value}]: {m.content}" for m in self._messages)

    def stats(self) -> ContextStats:
        return ContextStats(
            message_count=len(self._messages),
            token_estimate=self.estimate_tokens(),
            user_message_count=len(self.messages_by_role(MessageRole.USER)),
            assistant_message_count=len(self.messages_by_role(MessageRole.ASSISTANT)),
            tool_call_count=len(self.messages_by_role(MessageRole.TOOL)),
        )

    # ----- schema cache -----
    def set_database_schema(self, schema: str) -> None:
        self._schema = schema

    @property
    def database_schema(self) -> Optional[str]:
        return self._schema

    # ----- lifecycle -----
    def clear(self) -> None:
        self._messages.clear()

    def to_payload(self) -> dict[str, Any]:
        """Shape consumed by the decision source (before tool definitions are added)."""
        return {
            "messages": [m.to_dict() for m in self._messages],
            "database_schema": self._schema,
        }

    def __len__(self) -> int:
        return len(self._messages)
