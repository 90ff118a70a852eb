"""sqlagent.tools.azure_openai_tool

Azure OpenAI decision source supporting **MSI or API key** authentication.

Pattern:
  token_provider = get_bearer_token_provider(msi, "https://cognitiveservices.azure.com/.default")
  client = AsyncAzureOpenAI(azure_endpoint=..., api_version=..., azure_ad_token_provider=token_provider)

Contract:
- One chat completion per agent iteration; the model must answer with a single
  JSON decision object (reasoning / tool_call / final_answer).
- Parsing is strict: we extract the first JSON object from the response text.
"""

from __future__ import annotations

import json
import re
from typing import Any

from openai import AsyncAzureOpenAI, OpenAIError

from sqlagent.auth import get_aoai_client_kwargs
from sqlagent.contracts.tool_base import DecisionSource
from sqlagent.errors import InvalidToolCall, LLMError

DEFAULT_API_VERSION = "2024-12-01-preview"

_DECISION_CONTRACT = (
    "Return ONLY one JSON object, using exactly one of these shapes:\n"
    '{"type":"reasoning","thought":"..."}\n'
    '{"type":"tool_call","name":"<tool name>","arguments":{...},"call_id":"..."}\n'
    '{"type":"final_answer","answer":"..."}\n'
)


def _extract_json(text: str) -> dict[str, Any]:
    """Extract the first JSON object from model output."""
    if not text:
        raise ValueError("Empty model output")

    m = re.search(r"```json\s*(\{.*?\})\s*```", text, flags=re.DOTALL)
    if m:
        return json.loads(m.group(1))

    m2 = re.search(r"(\{.*\})", text, flags=re.DOTALL)
    if not m2:
        raise ValueError("No JSON object found in model output")
    return json.loads(m2.group(1))


def build_system_prompt(payload: dict[str, Any]) -> str:
    tools = payload.get("tools") or []
    safety = payload.get("safety") or {}
    lines = [
        "You are a database assistant. You answer questions by calling tools against a relational database.",
        "Work step by step: think, call one tool at a time, read its result, then answer.",
        "",
        "Safety rules:",
        f"- Safety level: {safety.get('level', 'read-only')}."
        + (" The session is read-only." if safety.get("read_only") else ""),
        "- Prefer SELECT queries. Never attempt DROP, TRUNCATE, DELETE, GRANT or REVOKE.",
        "- Statements that change data may be rejected or need user confirmation; if a tool result reports a "
        "rejection, explain it or try a safer alternative.",
        "- One statement per query. Do not invent tables or columns.",
        "",
        "Available tools (JSON schema of arguments):",
    ]
    for t in tools:
        lines.append(f"- {t['name']}: {t['description']}\n  parameters: {json.dumps(t['parameters'])}")

    schema = payload.get("database_schema")
    if schema:
        lines += ["", "Known database schema:", str(schema)[:8000]]

    lines += ["", _DECISION_CONTRACT]
    return "\n".join(lines)


def build_chat_messages(payload: dict[str, Any]) -> list[dict[str, str]]:
    """Map serialized context messages onto chat roles.

    Tool results are replayed as user turns; decisions are plain JSON, not native
    function calls, so there is no tool_call_id to attach them to.
    """
    out = [{"role": "system", "content": build_system_prompt(payload)}]
    for m in payload.get("messages") or []:
        role = m.get("role")
        content = m.get("content", "")
        if role == "tool":
            out.append({"role": "user", "content": f"Tool result ({m.get('tool_name', 'tool')}):\n{content}"})
        elif role in ("user", "assistant", "system"):
            out.append({"role": role, "content": content})
    return out


class AzureOpenAIDecisionSource(DecisionSource):
    """LLM-backed decision source with strict JSON parsing."""

    def __init__(self, endpoint: str, chat_deployment: str, logger, api_version: str = DEFAULT_API_VERSION, client=None):
        self.endpoint = endpoint
        self.chat_deployment = chat_deployment
        self.logger = logger

        self.client = client or AsyncAzureOpenAI(
            api_version=api_version,
            azure_endpoint=self.endpoint,
            **get_aoai_client_kwargs(),
        )

    async def next_decision(self, payload: dict[str, Any]) -> dict[str, Any]:
        try:
            resp = await self.client.chat.completions.create(
                model=self.chat_deployment,
                messages=build_chat_messages(payload),
                temperature=0.1,
            )
        except OpenAIError as e:
            self.logger.error(f"Azure OpenAI call failed: {e}")
            raise LLMError(str(e)) from e

        if not resp.choices:
            raise LLMError("Model returned no choices")
        text = resp.choices[0].message.content or ""
        try:
            return _extract_json(text)
        except ValueError as e:
            # json.JSONDecodeError is a ValueError
            self.logger.warning(f"Unparsable model output: {text[:500]!r}")
            raise InvalidToolCall(f"model output is not a JSON decision: {e}") from e
