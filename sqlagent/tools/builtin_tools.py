"""sqlagent.tools.builtin_tools

Database tools exposed to the decision source:

- execute_query   run one SQL statement (row-limited and truncated for reads)
- get_schema      tables and their columns, optionally filtered by name prefix
- list_tables     table names in a schema
- describe_table  column details for one table
- explain_query   execution plan for a statement

Driver calls are blocking; they run in a worker thread and the context timeout
is applied with asyncio.wait_for. A timed-out driver call is not interrupted,
the caller just stops waiting for it.
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Optional

from sqlagent.contracts.models import ToolContext, ToolDefinition
from sqlagent.contracts.tool_base import DatabaseTool, Tool
from sqlagent.errors import InvalidToolArgumentsError, ToolTimeoutError
from sqlagent.policy.limits_policy import LimitsPolicy
from sqlagent.policy.sql_policy import OperationType, classify_operation


def _require_str(tool: str, args: dict[str, Any], key: str) -> str:
    val = args.get(key)
    if not isinstance(val, str) or not val.strip():
        raise InvalidToolArgumentsError(tool, f"'{key}' must be a non-empty string")
    return val


def _optional_str(tool: str, args: dict[str, Any], key: str) -> Optional[str]:
    val = args.get(key)
    if val is None:
        return None
    if not isinstance(val, str):
        raise InvalidToolArgumentsError(tool, f"'{key}' must be a string")
    return val.strip() or None


class DatabaseToolBase(Tool):
    """Shared plumbing: argument checks and timeout-bounded driver calls."""

    tool_name = ""
    description = ""
    parameters: dict[str, Any] = {"type": "object", "properties": {}}

    def __init__(self, db: DatabaseTool, default_timeout: float = 30.0):
        self.db = db
        self.default_timeout = default_timeout

    def definition(self) -> ToolDefinition:
        return ToolDefinition(self.tool_name, self.description, self.parameters)

    def _timeout(self, ctx: ToolContext) -> float:
        return ctx.timeout if ctx.timeout is not None else self.default_timeout

    async def _call(self, ctx: ToolContext, fn: Callable[..., Any], *args: Any) -> Any:
        timeout = self._timeout(ctx)
        try:
            return await asyncio.wait_for(asyncio.to_thread(fn, *args), timeout=timeout)
        except asyncio.TimeoutError as e:
            raise ToolTimeoutError(timeout) from e


class ExecuteQueryTool(DatabaseToolBase):
    tool_name = "execute_query"
    description = (
        "Execute one SQL statement and return the result as JSON. "
        "Read queries are row-limited; statements that change data may require user confirmation."
    )
    parameters = {
        "type": "object",
        "properties": {"sql": {"type": "string", "description": "The SQL statement to execute"}},
        "required": ["sql"],
    }

    def __init__(self, db: DatabaseTool, limits: LimitsPolicy, default_timeout: float = 30.0):
        super().__init__(db, default_timeout)
        self.limits = limits

    async def execute(self, args: dict[str, Any], ctx: ToolContext) -> Any:
        sql = _require_str(self.tool_name, args, "sql")
        op = classify_operation(sql)
        if op == OperationType.READ:
            sql = self.limits.apply_row_limit(sql, self.db.dialect)

        out = await self._call(ctx, self.db.execute, sql, max(1, int(self._timeout(ctx))))
        columns, rows, truncated = self.limits.truncate_result(list(out.get("columns", [])), list(out.get("rows", [])))
        return {
            "sql": sql,
            "operation": op.value,
            "columns": columns,
            "rows": rows,
            "row_count": len(rows) if columns else int(out.get("rowcount", 0) or 0),
            "truncated": truncated,
            "execution_time_ms": int(out.get("elapsed_ms", 0)),
        }


class GetSchemaTool(DatabaseToolBase):
    tool_name = "get_schema"
    description = (
        "Get the database schema: every table with its columns. "
        "Optionally filter by table name prefix."
    )
    parameters = {
        "type": "object",
        "properties": {"table_filter": {"type": "string", "description": "Optional table name prefix filter"}},
    }

    def _collect(self, prefix: Optional[str]) -> dict[str, Any]:
        tables = self.db.list_tables()
        if prefix:
            tables = [t for t in tables if t.lower().startswith(prefix.lower())]
        return {"tables": tables, "columns": {t: self.db.describe_table(t) for t in tables}}

    async def execute(self, args: dict[str, Any], ctx: ToolContext) -> Any:
        prefix = _optional_str(self.tool_name, args, "table_filter")
        return await self._call(ctx, self._collect, prefix)


class ListTablesTool(DatabaseToolBase):
    tool_name = "list_tables"
    description = "List all table names in a database schema (defaults to the backend's default schema)."
    parameters = {
        "type": "object",
        "properties": {"schema": {"type": "string", "description": "Schema name"}},
    }

    async def execute(self, args: dict[str, Any], ctx: ToolContext) -> Any:
        schema = _optional_str(self.tool_name, args, "schema")
        tables = await self._call(ctx, self.db.list_tables, schema)
        return {"tables": tables}


class DescribeTableTool(DatabaseToolBase):
    tool_name = "describe_table"
    description = "Get column name, type, nullability and default for one table."
    parameters = {
        "type": "object",
        "properties": {"table_name": {"type": "string", "description": "Name of the table to describe"}},
        "required": ["table_name"],
    }

    async def execute(self, args: dict[str, Any], ctx: ToolContext) -> Any:
        table = _require_str(self.tool_name, args, "table_name").strip()
        columns = await self._call(ctx, self.db.describe_table, table)
        return {"table_name": table, "columns": columns}


class ExplainQueryTool(DatabaseToolBase):
    tool_name = "explain_query"
    description = "Get the execution plan for a SQL query without returning its rows."
    parameters = {
        "type": "object",
        "properties": {"sql": {"type": "string", "description": "The SQL query to explain"}},
        "required": ["sql"],
    }

    async def execute(self, args: dict[str, Any], ctx: ToolContext) -> Any:
        sql = _require_str(self.tool_name, args, "sql")
        plan = await self._call(ctx, self.db.explain, sql, max(1, int(self._timeout(ctx))))
        return {"plan": plan, "row_count": len(plan)}


def create_builtin_tools(db: DatabaseTool, limits: LimitsPolicy, default_timeout: float = 30.0) -> list[Tool]:
    return [
        ExecuteQueryTool(db, limits, default_timeout),
        GetSchemaTool(db, default_timeout),
        ListTablesTool(db, default_timeout),
        DescribeTableTool(db, default_timeout),
        ExplainQueryTool(db, default_timeout),
    ]
