"""sqlagent.tools.db_sqlite_tool

SQLite execution backend (testing/dev).
"""

from __future__ import annotations

import sqlite3
import time
from typing import Any, Optional, Sequence

from sqlagent.contracts.tool_base import DatabaseTool
from sqlagent.errors import DatabaseError


class SqliteDatabaseTool(DatabaseTool):
    """SQLite execution wrapper; opens a connection per call."""

    dialect = "sqlite"

    def __init__(self, sqlite_path: str, logger):
        self.sqlite_path = sqlite_path
        self.logger = logger

    def _run(self, sql: str, params: Sequence[Any] = (), timeout_seconds: int = 30) -> dict[str, Any]:
        start = time.time()
        try:
            conn = sqlite3.connect(self.sqlite_path, timeout=timeout_seconds)
        except sqlite3.Error as e:
            raise DatabaseError(f"Cannot open {self.sqlite_path}: {e}") from e
        try:
            cur = conn.cursor()
            cur.execute(sql, params)
            columns = [d[0] for d in cur.description] if cur.description else []
            rows = cur.fetchall() if cur.description else []
            conn.commit()
            elapsed_ms = int((time.time() - start) * 1000)
            return {
                "columns": columns,
                "rows": [list(r) for r in rows],
                "rowcount": len(rows) if cur.description else cur.rowcount,
                "elapsed_ms": elapsed_ms,
            }
        except sqlite3.Error as e:
            raise DatabaseError(str(e)) from e
        finally:
            conn.close()

    def execute(self, sql: str, timeout_seconds: int) -> dict[str, Any]:
        return self._run(sql, timeout_seconds=timeout_seconds)

    def list_tables(self, schema: Optional[str] = None) -> list[str]:
        out = self._run(
            "SELECT name FROM sqlite_master WHERE type IN ('table', 'view') "
            "AND name NOT LIKE 'sqlite_%' ORDER BY name"
        )
        return [r[0] for r in out["rows"]]

    def describe_table(self, table_name: str) -> list[dict[str, Any]]:
        quoted = '"' + table_name.replace('"', '""') + '"'
        out = self._run(f"PRAGMA table_info({quoted})")
        return [
            {
                "column_name": r[1],
                "data_type": r[2],
                "is_nullable": not bool(r[3]),
                "column_default": r[4],
                "primary_key": bool(r[5]),
            }
            for r in out["rows"]
        ]

    def explain(self, sql: str, timeout_seconds: int) -> list[list[Any]]:
        out = self._run(f"EXPLAIN QUERY PLAN {sql.strip().rstrip(';')}", timeout_seconds=timeout_seconds)
        return out["rows"]
