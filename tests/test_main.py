import asyncio
import sqlite3

import pytest

from fakes import ScriptedDecisionSource, StaticConfirmationHandler, final, tool_call
from sqlagent.config import Settings
from sqlagent.contracts.models import ConfirmationReply
from sqlagent.errors import SafetyViolation
from sqlagent.main import build_agent


def test_build_agent_end_to_end_on_sqlite(tmp_path, monkeypatch):
    db_path = tmp_path / "app.db"
    conn = sqlite3.connect(db_path)
    conn.execute("CREATE TABLE users (id INTEGER PRIMARY KEY, name TEXT)")
    conn.executemany("INSERT INTO users (name) VALUES (?)", [("ann",), ("bob",)])
    conn.commit()
    conn.close()

    monkeypatch.setenv("DB_BACKEND", "sqlite")
    monkeypatch.setenv("SQLITE_PATH", str(db_path))
    monkeypatch.setenv("LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.setenv("AGENT_SAFETY_LEVEL", "balanced")
    monkeypatch.setenv("QUERY_MAX_ROWS", "1")
    monkeypatch.delenv("AGENT_READ_ONLY", raising=False)
    monkeypatch.delenv("AGENT_REQUIRE_CONFIRMATION", raising=False)

    source = ScriptedDecisionSource(
        [
            tool_call("execute_query", {"sql": "INSERT INTO users (name) VALUES ('cy')"}, "c1"),
            tool_call("execute_query", {"sql": "SELECT name FROM users ORDER BY id"}, "c2"),
            final("First user is ann."),
        ]
    )
    handler = StaticConfirmationHandler(ConfirmationReply.confirm())
    agent = build_agent(Settings.load(), confirmation_handler=handler, decision_source=source)

    assert asyncio.run(agent.refresh_schema())
    assert "users(id INTEGER, name TEXT)" in agent.context.database_schema

    resp = asyncio.run(agent.run("add cy, then who is first?"))
    assert resp.success, resp.error
    assert resp.tool_calls == 2
    assert resp.executed_sql == "SELECT name FROM users ORDER BY id LIMIT 1"
    assert resp.tool_errors == []
    assert len(handler.requests) == 1

    conn = sqlite3.connect(db_path)
    assert conn.execute("SELECT COUNT(*) FROM users").fetchone()[0] == 3
    conn.close()


@pytest.mark.parametrize(
    "sql",
    [
        "/* x */ DROP TABLE users",
        "-- hi\nDROP TABLE users",
        "/**/DELETE FROM users",
        "/* x */ INSERT INTO users (name) VALUES ('eve')",
    ],
)
def test_comment_prefixed_mutation_never_reaches_sqlite(sql, tmp_path, monkeypatch):
    db_path = tmp_path / "app.db"
    conn = sqlite3.connect(db_path)
    conn.execute("CREATE TABLE users (id INTEGER PRIMARY KEY, name TEXT)")
    conn.execute("INSERT INTO users (name) VALUES ('ann')")
    conn.commit()
    conn.close()

    monkeypatch.setenv("DB_BACKEND", "sqlite")
    monkeypatch.setenv("SQLITE_PATH", str(db_path))
    monkeypatch.setenv("LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.setenv("AGENT_SAFETY_LEVEL", "read-only")
    monkeypatch.delenv("AGENT_READ_ONLY", raising=False)
    monkeypatch.delenv("AGENT_AUTO_CONFIRM", raising=False)

    source = ScriptedDecisionSource([tool_call("execute_query", {"sql": sql}), final("blocked")])
    agent = build_agent(Settings.load(), decision_source=source)

    resp = asyncio.run(agent.run("clean up users"))
    assert resp.success
    assert resp.executed_sql is None
    assert isinstance(resp.tool_errors[0], SafetyViolation)

    conn = sqlite3.connect(db_path)
    assert conn.execute("SELECT name FROM users").fetchall() == [("ann",)]
    conn.close()
