import asyncio
import logging
import sqlite3
import time

import pytest

from sqlagent.contracts.models import ToolContext
from sqlagent.errors import DatabaseError, InvalidToolArgumentsError, ToolTimeoutError
from sqlagent.policy.limits_policy import LimitsPolicy
from sqlagent.tools.builtin_tools import ExecuteQueryTool, create_builtin_tools
from sqlagent.tools.db_sqlite_tool import SqliteDatabaseTool
from sqlagent.tools.registry import ToolRegistry

LOG = logging.getLogger("test")


@pytest.fixture
def db(tmp_path):
    path = tmp_path / "app.db"
    conn = sqlite3.connect(path)
    conn.execute("CREATE TABLE users (id INTEGER PRIMARY KEY, name TEXT NOT NULL, email TEXT)")
    conn.execute("CREATE TABLE orders (id INTEGER PRIMARY KEY, user_id INTEGER, total REAL)")
    conn.executemany("INSERT INTO users (name, email) VALUES (?, ?)", [(f"u{i}", f"u{i}@x.io") for i in range(5)])
    conn.commit()
    conn.close()
    return SqliteDatabaseTool(str(path), LOG)


def run(tool, args, timeout=5):
    return asyncio.run(tool.execute(args, ToolContext(timeout=timeout)))


def test_builtin_tool_names(db):
    reg = ToolRegistry(create_builtin_tools(db, LimitsPolicy()))
    assert reg.keys() == ["execute_query", "get_schema", "list_tables", "describe_table", "explain_query"]
    for d in reg.get_definitions():
        assert d.parameters["type"] == "object"


def test_execute_query_applies_row_limit(db):
    tool = ExecuteQueryTool(db, LimitsPolicy(max_rows=2))
    out = run(tool, {"sql": "SELECT id, name FROM users ORDER BY id"})
    assert out["sql"] == "SELECT id, name FROM users ORDER BY id LIMIT 2"
    assert out["operation"] == "read"
    assert out["columns"] == ["id", "name"]
    assert out["rows"] == [[1, "u0"], [2, "u1"]]
    assert out["row_count"] == 2


def test_execute_query_truncates_columns(db):
    tool = ExecuteQueryTool(db, LimitsPolicy(max_rows=10, max_cols=1))
    out = run(tool, {"sql": "SELECT id, name FROM users"})
    assert out["columns"] == ["id"]
    assert out["truncated"]


def test_execute_query_write_reports_rowcount(db):
    tool = ExecuteQueryTool(db, LimitsPolicy())
    out = run(tool, {"sql": "UPDATE users SET name = 'x' WHERE id <= 3"})
    assert out["operation"] == "update"
    assert out["row_count"] == 3
    assert out["columns"] == []


def test_execute_query_requires_sql(db):
    tool = ExecuteQueryTool(db, LimitsPolicy())
    with pytest.raises(InvalidToolArgumentsError):
        run(tool, {})
    with pytest.raises(InvalidToolArgumentsError):
        run(tool, {"sql": 42})


def test_execute_query_wraps_driver_errors(db):
    tool = ExecuteQueryTool(db, LimitsPolicy())
    with pytest.raises(DatabaseError):
        run(tool, {"sql": "SELECT * FROM nope"})


def test_get_schema_with_filter(db):
    reg = ToolRegistry(create_builtin_tools(db, LimitsPolicy()))
    out = run(reg.get("get_schema"), {"table_filter": "US"})
    assert out["tables"] == ["users"]
    assert [c["column_name"] for c in out["columns"]["users"]] == ["id", "name", "email"]


def test_list_and_describe(db):
    reg = ToolRegistry(create_builtin_tools(db, LimitsPolicy()))
    assert run(reg.get("list_tables"), {})["tables"] == ["orders", "users"]
    cols = run(reg.get("describe_table"), {"table_name": "users"})["columns"]
    name = next(c for c in cols if c["column_name"] == "name")
    assert name["is_nullable"] is False
    assert next(c for c in cols if c["column_name"] == "id")["primary_key"] is True


def test_explain_query(db):
    reg = ToolRegistry(create_builtin_tools(db, LimitsPolicy()))
    out = run(reg.get("explain_query"), {"sql": "SELECT * FROM users WHERE id = 1;"})
    assert out["row_count"] == len(out["plan"]) >= 1


class SlowDb(SqliteDatabaseTool):
    def execute(self, sql, timeout_seconds):
        time.sleep(0.5)
        return super().execute(sql, timeout_seconds)


def test_context_timeout_raises_tool_timeout(tmp_path):
    tool = ExecuteQueryTool(SlowDb(str(tmp_path / "slow.db"), LOG), LimitsPolicy())
    with pytest.raises(ToolTimeoutError):
        run(tool, {"sql": "SELECT 1"}, timeout=0.05)
