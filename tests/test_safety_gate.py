import asyncio
import json
import logging

from fakes import RaisingConfirmationHandler, StaticConfirmationHandler
from sqlagent.agents.safety_gate import SafetyGate
from sqlagent.contracts.models import ConfirmationReply, ToolCall, ToolResult
from sqlagent.policy.audit import AuditTrail
from sqlagent.policy.confirmation import ConfirmationLevel, ConfirmationWorkflow
from sqlagent.policy.sql_policy import SafetyContext, SafetyLevel, SafetyValidator
from sqlagent.tracing import TraceCollector


class ListHandler(logging.Handler):
    def __init__(self):
        super().__init__()
        self.lines = []

    def emit(self, record):
        self.lines.append(record.getMessage())


def audit_pair(name):
    logger = logging.getLogger(name)
    logger.propagate = False
    logger.handlers = []
    logger.setLevel(logging.INFO)
    handler = ListHandler()
    logger.addHandler(handler)
    validator = SafetyValidator()
    return AuditTrail(logger, validator.pii), handler, validator


def make_gate(level=SafetyLevel.BALANCED, handler=None, auto=False, require=True, name="audit.gate"):
    audit, lines, validator = audit_pair(name)
    gate = SafetyGate(
        validator=validator,
        safety_ctx=SafetyContext(level=level),
        workflow=ConfirmationWorkflow(auto_confirm=auto),
        require_confirmation=require,
        handler=handler,
        audit=audit,
        tracer=TraceCollector(),
    )
    return gate, lines


def query(sql):
    return ToolCall("execute_query", {"sql": sql}, "c1")


def test_calls_without_sql_pass_through():
    gate, lines = make_gate()
    out = asyncio.run(gate.check(ToolCall("list_tables", {})))
    assert out.allowed and out.validation is None
    assert lines.lines == []


def test_read_allowed_without_confirmation():
    handler = StaticConfirmationHandler(ConfirmationReply.cancel())
    gate, _ = make_gate(handler=handler)
    out = asyncio.run(gate.check(query("SELECT * FROM users")))
    assert out.allowed and not out.confirmed
    assert handler.requests == []


def test_blacklisted_sql_denied_and_audited_redacted():
    gate, lines = make_gate(level=SafetyLevel.PERMISSIVE, name="audit.blocked")
    out = asyncio.run(gate.check(query("DELETE FROM users WHERE email = 'a@b.com'")))
    assert not out.allowed
    assert "DELETE" in out.error.reason
    event = json.loads(lines.lines[-1])
    assert event["type"] == "safety_violation"
    assert "[EMAIL]" in event["query"]
    assert "a@b.com" not in event["query"]


def test_simple_confirmation_accepted():
    handler = StaticConfirmationHandler(ConfirmationReply.confirm())
    gate, _ = make_gate(handler=handler)
    states = []
    out = asyncio.run(gate.check(query("INSERT INTO t VALUES (1)"), on_confirmation=states.append))
    assert out.allowed and out.confirmed
    assert handler.requests[0].level == ConfirmationLevel.SIMPLE
    assert states and states[0].operation == "INSERT"
    assert not gate.workflow.is_pending()


def test_confirmation_cancelled_is_denied():
    gate, _ = make_gate(handler=StaticConfirmationHandler(ConfirmationReply.cancel()))
    out = asyncio.run(gate.check(query("UPDATE t SET a = 1")))
    assert not out.allowed
    assert "not confirmed" in out.error.reason
    assert not gate.workflow.is_pending()


def test_typed_confirmation_for_ddl_and_schema_change_audit():
    handler = StaticConfirmationHandler(ConfirmationReply.typed("CREATE"))
    gate, lines = make_gate(level=SafetyLevel.PERMISSIVE, handler=handler, name="audit.ddl")
    out = asyncio.run(gate.check(query("CREATE TABLE t (id INT)")))
    assert out.allowed and out.confirmed
    assert handler.requests[0].level == ConfirmationLevel.TYPED
    event = json.loads(lines.lines[-1])
    assert event["type"] == "schema_change"
    assert event["approved"] is True


def test_wrong_typed_keyword_denied():
    gate, _ = make_gate(level=SafetyLevel.PERMISSIVE, handler=StaticConfirmationHandler(ConfirmationReply.typed("yes")))
    out = asyncio.run(gate.check(query("ALTER TABLE t ADD c INT")))
    assert not out.allowed


def test_no_handler_denies_confirmable_statement():
    gate, _ = make_gate()
    out = asyncio.run(gate.check(query("INSERT INTO t VALUES (1)")))
    assert not out.allowed
    assert "no confirmation handler" in out.error.reason


def test_auto_confirm_and_disabled_confirmation():
    gate, _ = make_gate(auto=True)
    assert asyncio.run(gate.check(query("INSERT INTO t VALUES (1)"))).confirmed
    gate, _ = make_gate(require=False)
    out = asyncio.run(gate.check(query("INSERT INTO t VALUES (1)")))
    assert out.allowed and not out.confirmed


def test_record_execution_audits_query():
    gate, lines = make_gate(name="audit.exec")
    call = query("SELECT * FROM u WHERE ssn = '123-45-6789'")
    gate.record_execution(call, ToolResult.ok("c1", "execute_query", {}, 12))
    event = json.loads(lines.lines[-1])
    assert event == {**event, "type": "query", "success": True, "duration_ms": 12}
    assert "[SSN]" in event["query"]


def test_failing_handler_denies_and_clears_pending_request():
    gate, lines = make_gate(handler=RaisingConfirmationHandler(EOFError("stdin closed")), name="audit.eof")
    out = asyncio.run(gate.check(query("INSERT INTO t VALUES (1)")))
    assert not out.allowed
    assert out.error.reason == "INSERT confirmation failed: EOFError: stdin closed"
    assert not gate.workflow.is_pending()
    assert json.loads(lines.lines[-1])["type"] == "safety_violation"


def test_comment_prefixed_drop_denied():
    gate, _ = make_gate(level=SafetyLevel.READ_ONLY, name="audit.comment")
    out = asyncio.run(gate.check(query("/* x */ DROP TABLE users")))
    assert not out.allowed
    assert "DROP" in out.error.reason
