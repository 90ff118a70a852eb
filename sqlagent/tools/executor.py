"""sqlagent.tools.executor

Runs tools from the registry and wraps every invocation in a ToolResult with
wall-clock timing.

Modes:
- execute: one call; raises ToolNotFoundError or the tool's own error
- execute_parallel: all calls at once, results in input order, failures isolated
- execute_batch: calls in order, optionally stopping after the first failure

No retries happen here; the caller decides whether to resubmit.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Iterable, Optional

from sqlagent.contracts.models import ToolCall, ToolContext, ToolResult
from sqlagent.errors import ToolNotFoundError
from sqlagent.tools.registry import ToolRegistry


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


class ToolExecutor:
    def __init__(self, registry: ToolRegistry, logger=None):
        self.registry = registry
        self.logger = logger

    async def execute(self, name: str, args: dict[str, Any], ctx: Optional[ToolContext] = None, call_id: str = "default") -> ToolResult:
        tool = self.registry.get(name)
        if tool is None:
            raise ToolNotFoundError(name)

        start = time.perf_counter()
        out = await tool.execute(args, ctx or ToolContext())
        return ToolResult.ok(call_id, name, out, _elapsed_ms(start))

    async def _execute_wrapped(self, call: ToolCall, ctx: ToolContext) -> ToolResult:
        start = time.perf_counter()
        try:
            return await self.execute(call.name, call.arguments, ctx, call_id=call.call_id)
        except Exception as e:
            if self.logger:
                self.logger.warning(f"Tool call {call.call_id} ({call.name}) failed: {e}")
            return ToolResult.failure(call.call_id, call.name, str(e), _elapsed_ms(start))

    async def execute_parallel(self, calls: Iterable[ToolCall], ctx: Optional[ToolContext] = None) -> list[ToolResult]:
        """Issue every call concurrently; result i belongs to call i."""
        shared = ctx or ToolContext()
        return list(await asyncio.gather(*(self._execute_wrapped(c, shared) for c in calls)))

    async def execute_batch(self, calls: Iterable[ToolCall], stop_on_error: bool = False, ctx: Optional[ToolContext] = None) -> list[ToolResult]:
        """Issue calls strictly in order; with stop_on_error the first failure is the last result."""
        shared = ctx or ToolContext()
        results: list[ToolResult] = []
        for call in calls:
            res = await self._execute_wrapped(call, shared)
            results.append(res)
            if stop_on_error and not res.success:
                break
        return results
