"""sqlagent.agents.safety_gate

Validates SQL carried by a tool call before the executor sees it.

- Calls whose arguments hold no string `sql` pass through unchecked.
- Rejections (blacklist, level, read-only, length) deny the call.
- Allowed statements flagged `requires_confirmation` open a confirmation request;
  it is resolved by the injected ConfirmationHandler, or immediately when the
  workflow runs in auto-confirm mode. Without either, the call is denied, and a
  handler that raises denies it too.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

from sqlagent.contracts.models import ConfirmationReply, ToolCall, ToolResult
from sqlagent.contracts.tool_base import ConfirmationHandler
from sqlagent.errors import SafetyViolation
from sqlagent.policy.audit import AuditTrail
from sqlagent.policy.confirmation import (
    ConfirmationLevel,
    ConfirmationRequest,
    ConfirmationWorkflow,
    confirmation_level_for,
)
from sqlagent.policy.sql_policy import SafetyContext, SafetyValidator, ValidationResult
from sqlagent.tracing import TraceCollector


@dataclass
class GateOutcome:
    allowed: bool
    validation: Optional[ValidationResult] = None
    error: Optional[SafetyViolation] = None
    confirmed: bool = False


class SafetyGate:
    name = "safety_gate"

    def __init__(
        self,
        validator: SafetyValidator,
        safety_ctx: SafetyContext,
        workflow: ConfirmationWorkflow,
        require_confirmation: bool = True,
        handler: Optional[ConfirmationHandler] = None,
        audit: Optional[AuditTrail] = None,
        tracer: Optional[TraceCollector] = None,
        logger=None,
    ):
        self.validator = validator
        self.safety_ctx = safety_ctx
        self.workflow = workflow
        self.require_confirmation = require_confirmation
        self.handler = handler
        self.audit = audit
        self.tracer = tracer
        self.logger = logger

    @staticmethod
    def sql_of(call: ToolCall) -> Optional[str]:
        sql = call.arguments.get("sql")
        return sql if isinstance(sql, str) else None

    async def check(
        self,
        call: ToolCall,
        on_confirmation: Optional[Callable[[ConfirmationRequest], None]] = None,
    ) -> GateOutcome:
        sql = self.sql_of(call)
        if sql is None:
            return GateOutcome(allowed=True)

        res = self.validator.validate(sql, self.safety_ctx)
        self._trace(
            {
                "tool": call.name,
                "operation": res.operation.value,
                "is_allowed": res.is_allowed,
                "requires_confirmation": res.requires_confirmation,
                "warnings": res.warnings,
            }
        )
        for w in res.warnings:
            self._log("warning", f"{call.name}: {w}")

        if not res.is_allowed:
            return self._deny(res, sql, res.error or "Query rejected")

        if not (res.requires_confirmation and self.require_confirmation):
            return GateOutcome(allowed=True, validation=res)

        level = confirmation_level_for(res.operation)
        if level == ConfirmationLevel.NONE:
            return GateOutcome(allowed=True, validation=res)

        req = self.workflow.request(res.operation.label, sql, level)
        if on_confirmation is not None:
            on_confirmation(req)

        try:
            approved = await self._resolve(req)
        except Exception as e:
            self.workflow.cancel()
            self._log("error", f"Confirmation handler failed: {e!r}")
            return self._deny(res, sql, f"{res.operation.label} confirmation failed: {type(e).__name__}: {e}")

        if res.operation.is_ddl and self.audit:
            self.audit.schema_change(res.operation.label, sql, approved)

        if not approved:
            if self.workflow.is_pending():
                self.workflow.cancel()
            reason = f"{res.operation.label} operation was not confirmed"
            if self.handler is None and not self.workflow.auto_confirm:
                reason = f"{res.operation.label} operation requires confirmation and no confirmation handler is available"
            return self._deny(res, sql, reason)

        self._log("info", f"{res.operation.label} confirmed ({level.value})")
        return GateOutcome(allowed=True, validation=res, confirmed=True)

    async def _resolve(self, req: ConfirmationRequest) -> bool:
        if self.workflow.auto_confirm:
            return self.workflow.confirm()
        if self.handler is None:
            return False
        reply = await self.handler.resolve(req)
        return self.apply_reply(reply)

    def apply_reply(self, reply: ConfirmationReply) -> bool:
        if reply.action == "confirm":
            return self.workflow.confirm()
        if reply.action == "typed":
            return self.workflow.confirm_typed(reply.value or "")
        if reply.action == "admin":
            return self.workflow.admin_approve()
        self.workflow.cancel()
        return False

    def record_execution(self, call: ToolCall, result: ToolResult) -> None:
        """Audit an executed statement; calls without SQL are not audited."""
        sql = self.sql_of(call)
        if sql is None or self.audit is None:
            return
        self.audit.query(sql, result.success, result.duration_ms)

    def _deny(self, res: ValidationResult, sql: str, reason: str) -> GateOutcome:
        self._log("warning", f"Blocked {res.operation.label}: {reason}")
        if self.audit:
            self.audit.safety_violation(sql, reason)
        self._trace({"blocked": True, "reason": reason})
        return GateOutcome(allowed=False, validation=res, error=SafetyViolation(reason))

    def _trace(self, payload: dict) -> None:
        if self.tracer is not None:
            self.tracer.add(self.name, payload)

    def _log(self, level: str, msg: str) -> None:
        if self.logger is not None:
            getattr(self.logger, level)(msg)
