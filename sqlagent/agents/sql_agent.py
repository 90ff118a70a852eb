"""sqlagent.agents.sql_agent

ReAct-style agent loop: one decision per iteration, up to max_iterations.

  user query -> context -> decision source
    reasoning    -> assistant message, continue
    tool_call    -> safety gate -> [confirmation] -> executor -> tool message, continue
    final_answer -> assistant message, done

Terminal failures (decision source, invalid decision, serialization, iteration
budget) end the run with a failed AgentResponse. Tool failures, including
safety rejections, are written back into the context so the next decision can
react to them.
"""

from __future__ import annotations

import json
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Optional

from sqlagent.agents.context import ConversationContext
from sqlagent.agents.safety_gate import SafetyGate
from sqlagent.contracts.decision import FinalAnswer, Reasoning, ToolCallDecision, parse_decision
from sqlagent.contracts.models import (
    AgentResponse,
    AgentState,
    AgentStats,
    ToolCall,
    ToolContext,
    ToolResult,
)
from sqlagent.contracts.tool_base import DecisionSource
from sqlagent.errors import (
    AgentError,
    ConfigError,
    InvalidToolCall,
    LLMError,
    MaxIterationsExceeded,
    SerializationError,
)
from sqlagent.policy.sql_policy import SafetyLevel
from sqlagent.tools.executor import ToolExecutor
from sqlagent.tracing import TraceCollector


@dataclass(frozen=True)
class AgentConfig:
    max_iterations: int = 10
    require_confirmation: bool = True
    safety_level: SafetyLevel = SafetyLevel.BALANCED
    timeout_seconds: float = 30.0
    verbose_reasoning: bool = False

    def __post_init__(self) -> None:
        if self.max_iterations < 1:
            raise ConfigError(f"max_iterations must be >= 1, got {self.max_iterations}")
        if self.timeout_seconds <= 0:
            raise ConfigError(f"timeout_seconds must be > 0, got {self.timeout_seconds}")


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


def format_schema(schema: Any) -> str:
    """Render a get_schema result as one line per table."""
    if not isinstance(schema, dict):
        return json.dumps(schema, default=str)
    lines = []
    columns = schema.get("columns") or {}
    for table in schema.get("tables") or []:
        cols = ", ".join(f"{c.get('column_name')} {c.get('data_type') or ''}".strip() for c in columns.get(table, []))
        lines.append(f"{table}({cols})")
    return "\n".join(lines)


class SqlAgent:
    """Single-session agent; one run() at a time."""

    name = "sql_agent"

    def __init__(
        self,
        decision_source: DecisionSource,
        executor: ToolExecutor,
        gate: SafetyGate,
        context: Optional[ConversationContext] = None,
        config: Optional[AgentConfig] = None,
        tracer: Optional[TraceCollector] = None,
        logger=None,
    ):
        self.decision_source = decision_source
        self.executor = executor
        self.gate = gate
        self.context = context or ConversationContext()
        self.config = config or AgentConfig()
        self.tracer = tracer or TraceCollector()
        self.logger = logger

        self._state = AgentState.IDLE
        self._stats = AgentStats()
        self.last_error: Optional[AgentError] = None

    # ----- read-only views -----
    @property
    def state(self) -> AgentState:
        return self._state

    @property
    def stats(self) -> AgentStats:
        return AgentStats(self._stats.iterations, self._stats.tool_calls, self._stats.duration_ms)

    # ----- lifecycle -----
    def reset(self) -> None:
        self.context.clear()
        self.tracer.clear()
        self.gate.workflow.cancel()
        self._stats = AgentStats()
        self.last_error = None
        self._state = AgentState.IDLE

    async def refresh_schema(self) -> bool:
        """Cache the schema in the context via the get_schema tool, when registered."""
        if not self.executor.registry.contains("get_schema"):
            return False
        res = await self.executor.execute("get_schema", {}, self._tool_context())
        self.context.set_database_schema(format_schema(res.result))
        self._log("info", f"Schema cached ({len(self.context.database_schema or '')} chars)")
        return True

    # ----- main loop -----
    async def run(self, query: str) -> AgentResponse:
        start = time.perf_counter()
        self.tracer.clear()
        self.last_error = None
        self._state = AgentState.THINKING
        self.context.add_user_message(query)

        run = _RunState(tool_ctx=self._tool_context())
        try:
            answer = await self._loop(run)
        except AgentError as e:
            return self._fail(e, run, start)

        self._state = AgentState.COMPLETED
        duration = _elapsed_ms(start)
        self._stats.duration_ms += duration
        self._log("info", f"Completed in {run.iterations} iteration(s), {run.tool_calls} tool call(s), {duration} ms")
        return AgentResponse(
            success=True,
            answer=answer,
            iterations=run.iterations,
            tool_calls=run.tool_calls,
            duration_ms=duration,
            executed_sql=run.executed_sql,
            tool_errors=run.tool_errors,
            traces=self._traces(),
        )

    async def _loop(self, run: "_RunState") -> str:
        for i in range(1, self.config.max_iterations + 1):
            run.iterations = i
            self._stats.iterations += 1
            self._state = AgentState.THINKING

            decision = parse_decision(await self._next_decision(self._payload()))

            if isinstance(decision, Reasoning):
                self.context.add_assistant_message(decision.thought)
                self.tracer.add("reasoning", {"iteration": i, "thought": decision.thought})
                self._log("info" if self.config.verbose_reasoning else "debug", f"[{i}] thought: {decision.thought}")
            elif isinstance(decision, ToolCallDecision):
                await self._handle_tool_call(decision.call, run)
            elif isinstance(decision, FinalAnswer):
                self.context.add_assistant_message(decision.text, generated_sql=run.executed_sql)
                self.tracer.add("final_answer", {"iteration": i})
                return decision.text
            else:
                raise InvalidToolCall(f"unhandled decision {type(decision).__name__}")

        raise MaxIterationsExceeded(self.config.max_iterations)

    def _payload(self) -> dict[str, Any]:
        payload = self.context.to_payload()
        payload["tools"] = [d.to_dict() for d in self.executor.registry.get_definitions()]
        payload["safety"] = {
            "level": self.gate.safety_ctx.level.label,
            "read_only": self.gate.safety_ctx.read_only,
        }
        try:
            json.dumps(payload)
        except (TypeError, ValueError) as e:
            raise SerializationError(str(e)) from e
        return payload

    async def _next_decision(self, payload: dict[str, Any]) -> Any:
        try:
            return await self.decision_source.next_decision(payload)
        except AgentError:
            raise
        except Exception as e:
            raise LLMError(str(e)) from e

    async def _handle_tool_call(self, call: ToolCall, run: "_RunState") -> None:
        run.tool_calls += 1
        self._stats.tool_calls += 1
        self._state = AgentState.EXECUTING_TOOL
        self.tracer.add("tool_call", {"call_id": call.call_id, "name": call.name, "arguments": call.arguments})

        outcome = await self.gate.check(call, on_confirmation=self._on_confirmation)
        self._state = AgentState.EXECUTING_TOOL
        if not outcome.allowed:
            self._record_tool_error(call, outcome.error, run)
            return

        start = time.perf_counter()
        try:
            result = await self.executor.execute(call.name, call.arguments, run.tool_ctx, call_id=call.call_id)
        except Exception as e:
            result = ToolResult.failure(call.call_id, call.name, str(e), _elapsed_ms(start))
            if self.executor.registry.contains(call.name):
                self.gate.record_execution(call, result)
            self._record_tool_error(call, AgentError.from_tool_error(call.name, e), run)
            return

        self.gate.record_execution(call, result)
        sql = result.result.get("sql") if isinstance(result.result, dict) else None
        if isinstance(sql, str):
            run.executed_sql = sql

        self.context.add_tool_message(
            json.dumps(result.result, ensure_ascii=False, default=str),
            call.name,
            generated_sql=sql if isinstance(sql, str) else None,
        )
        self.tracer.add("tool_result", {"call_id": call.call_id, "success": True, "duration_ms": result.duration_ms})
        self._log("info", f"Tool {call.name} ok in {result.duration_ms} ms")

    def _record_tool_error(self, call: ToolCall, err: AgentError, run: "_RunState") -> None:
        run.tool_errors.append(err)
        self.context.add_tool_message(json.dumps({"success": False, "error": str(err)}), call.name)
        self.tracer.add("tool_result", {"call_id": call.call_id, "success": False, "error": str(err)})
        self._log("warning", f"Tool {call.name} failed: {err}")

    def _on_confirmation(self, request) -> None:
        self._state = AgentState.AWAITING_CONFIRMATION
        self.tracer.add("confirmation", {"operation": request.operation, "level": request.level.value})

    def _fail(self, err: AgentError, run: "_RunState", start: float) -> AgentResponse:
        self._state = AgentState.ERROR
        self.last_error = err
        duration = _elapsed_ms(start)
        self._stats.duration_ms += duration
        if self.logger is not None:
            self.logger.error(f"Agent run failed after {run.iterations} iteration(s): {err}")
        self.tracer.add("error", {"type": type(err).__name__, "message": str(err)})
        return AgentResponse(
            success=False,
            answer=err.user_message(),
            iterations=run.iterations,
            tool_calls=run.tool_calls,
            duration_ms=duration,
            executed_sql=run.executed_sql,
            error=err,
            tool_errors=run.tool_errors,
            traces=self._traces(),
        )

    def _tool_context(self) -> ToolContext:
        return ToolContext(timeout=self.config.timeout_seconds, request_id=uuid.uuid4().hex)

    def _traces(self) -> Optional[list[dict[str, Any]]]:
        return self.tracer.snapshot() if self.config.verbose_reasoning else None

    def _log(self, level: str, msg: str) -> None:
        if self.logger is not None:
            getattr(self.logger, level)(msg)


@dataclass
class _RunState:
    tool_ctx: ToolContext
    iterations: int = 0
    tool_calls: int = 0
    executed_sql: Optional[str] = None
    tool_errors: list[AgentError] = field(default_factory=list)

