"""sqlagent.tools.db_sqlserver_tool

SQL Server execution backend using **MSI** (or an explicit connection string).

Uses pyodbc. MSI connection string pattern (ODBC Driver 18):
  Driver={ODBC Driver 18 for SQL Server};
  Server=tcp:<server>.database.windows.net,1433;
  Database=<db>;
  Encrypt=yes;
  TrustServerCertificate=no;
  Authentication=ActiveDirectoryMsi;
  UID=<user-assigned-msi-client-id>;   # optional for user-assigned MSI

Safety is enforced upstream by the safety gate, not here.
"""

from __future__ import annotations

import os
import time
from typing import Any, Optional, Sequence

import pyodbc

from sqlagent.contracts.tool_base import DatabaseTool
from sqlagent.errors import DatabaseError


class SqlServerDatabaseTool(DatabaseTool):
    dialect = "sqlserver"

    def __init__(self, server: Optional[str], database: Optional[str], conn_str: Optional[str], logger):
        self.server = server
        self.database = database
        self.conn_str = conn_str
        self.logger = logger

    def _build_conn_str(self) -> str:
        if self.conn_str:
            return self.conn_str

        if not self.server or not self.database:
            raise DatabaseError("AZURE_SQL_SERVER/AZURE_SQL_DATABASE or AZURE_SQL_CONN_STR must be set")

        client_id = (os.getenv("AZURE_MSI_CLIENT_ID") or "").strip()
        uid_part = f"UID={client_id};" if client_id else ""

        return (
            "Driver={ODBC Driver 18 for SQL Server};"
            f"Server=tcp:{self.server},1433;"
            f"Database={self.database};"
            "Encrypt=yes;"
            "TrustServerCertificate=no;"
            "Authentication=ActiveDirectoryMsi;"
            f"{uid_part}"
        )

    def _connect(self, timeout_seconds: int):
        try:
            return pyodbc.connect(self._build_conn_str(), timeout=timeout_seconds)
        except pyodbc.Error as e:
            raise DatabaseError(f"Cannot connect to SQL Server: {e}") from e

    def _run(self, sql: str, params: Sequence[Any] = (), timeout_seconds: int = 30) -> dict[str, Any]:
        start = time.time()
        conn = self._connect(timeout_seconds)
        try:
            cur = conn.cursor()
            cur.timeout = timeout_seconds
            cur.execute(sql, *params)
            columns = [c[0] for c in cur.description] if cur.description else []
            rows = cur.fetchall() if cur.description else []
            if not cur.description:
                conn.commit()
            elapsed_ms = int((time.time() - start) * 1000)
            return {
                "columns": columns,
                "rows": [list(r) for r in rows],
                "rowcount": len(rows) if cur.description else cur.rowcount,
                "elapsed_ms": elapsed_ms,
            }
        except pyodbc.Error as e:
            raise DatabaseError(str(e)) from e
        finally:
            try:
                conn.close()
            except pyodbc.Error as e:
                self.logger.warning(f"Closing SQL Server connection failed: {e}")

    def execute(self, sql: str, timeout_seconds: int) -> dict[str, Any]:
        return self._run(sql, timeout_seconds=timeout_seconds)

    def list_tables(self, schema: Optional[str] = None) -> list[str]:
        out = self._run(
            "SELECT TABLE_NAME FROM INFORMATION_SCHEMA.TABLES WHERE TABLE_SCHEMA = ? ORDER BY TABLE_NAME",
            (schema or "dbo",),
        )
        return [r[0] for r in out["rows"]]

    def describe_table(self, table_name: str) -> list[dict[str, Any]]:
        schema, _, name = table_name.rpartition(".")
        out = self._run(
            "SELECT COLUMN_NAME, DATA_TYPE, IS_NULLABLE, COLUMN_DEFAULT, CHARACTER_MAXIMUM_LENGTH, "
            "NUMERIC_PRECISION, NUMERIC_SCALE FROM INFORMATION_SCHEMA.COLUMNS "
            "WHERE TABLE_SCHEMA = ? AND TABLE_NAME = ? ORDER BY ORDINAL_POSITION",
            (schema or "dbo", name),
        )
        return [
            {
                "column_name": r[0],
                "data_type": r[1],
                "is_nullable": str(r[2]).upper() == "YES",
                "column_default": r[3],
                "character_maximum_length": r[4],
                "numeric_precision": r[5],
                "numeric_scale": r[6],
            }
            for r in out["rows"]
        ]

    def explain(self, sql: str, timeout_seconds: int) -> list[list[Any]]:
        """Estimated plan via SHOWPLAN_TEXT; the statement itself is not executed."""
        conn = self._connect(timeout_seconds)
        try:
            cur = conn.cursor()
            cur.timeout = timeout_seconds
            cur.execute("SET SHOWPLAN_TEXT ON")
            cur.execute(sql)
            plan: list[list[Any]] = []
            while True:
                if cur.description:
                    plan.extend(list(r) for r in cur.fetchall())
                if not cur.nextset():
                    break
            cur.execute("SET SHOWPLAN_TEXT OFF")
            return plan
        except pyodbc.Error as e:
            raise DatabaseError(str(e)) from e
        finally:
            try:
                conn.close()
            except pyodbc.Error as e:
                self.logger.warning(f"Closing SQL Server connection failed: {e}")
