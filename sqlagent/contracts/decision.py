"""sqlagent.contracts.decision

The three decisions a decision source may return, and the parser for its JSON contract:

  {"type": "reasoning",    "thought": "..."}
  {"type": "tool_call",    "name": "...", "arguments": {...}, "call_id": "..."}
  {"type": "final_answer", "answer": "..."}
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Union

from sqlagent.contracts.models import ToolCall
from sqlagent.errors import InvalidToolCall


@dataclass(frozen=True)
class Reasoning:
    thought: str


@dataclass(frozen=True)
class ToolCallDecision:
    call: ToolCall


@dataclass(frozen=True)
class FinalAnswer:
    text: str


Decision = Union[Reasoning, ToolCallDecision, FinalAnswer]


def _require_str(obj: dict[str, Any], key: str, kind: str) -> str:
    val = obj.get(key)
    if not isinstance(val, str):
        raise InvalidToolCall(f"'{kind}' decision requires a string '{key}' field")
    return val


def parse_decision(raw: Union[str, dict[str, Any], Decision]) -> Decision:
    """Turn a decision-source payload into a Decision.

    Raises InvalidToolCall for unknown types, missing fields, or unparsable JSON.
    """
    if isinstance(raw, (Reasoning, ToolCallDecision, FinalAnswer)):
        return raw

    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as e:
            raise InvalidToolCall(f"decision is not valid JSON: {e}") from e

    if not isinstance(raw, dict):
        raise InvalidToolCall(f"decision must be a JSON object, got {type(raw).__name__}")

    kind = raw.get("type")
    if kind == "reasoning":
        return Reasoning(_require_str(raw, "thought", kind))

    if kind == "tool_call":
        name = _require_str(raw, "name", kind)
        args = raw.get("arguments")
        if not isinstance(args, dict):
            raise InvalidToolCall("'tool_call' decision requires an object 'arguments' field")
        call_id = raw.get("call_id") or "default"
        return ToolCallDecision(ToolCall(name=name, arguments=args, call_id=str(call_id)))

    if kind == "final_answer":
        return FinalAnswer(_require_str(raw, "answer", kind))

    raise InvalidToolCall(f"unknown decision type: {kind!r}")
