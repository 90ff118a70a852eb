"""sqlagent.policy.limits_policy

Row limits (TOP/LIMIT) for read queries and in-memory truncation of results.
"""

from __future__ import annotations

import re
from typing import Any, List, Tuple


class LimitsPolicy:
    """Applies row limits and truncation rules for the query tool."""

    _select_re = re.compile(r"^\s*select\s+(distinct\s+)?", re.IGNORECASE)
    _top_re = re.compile(r"^\s*select\s+(?:distinct\s+)?top\s+\(?\s*\d+\s*\)?", re.IGNORECASE)
    _limit_re = re.compile(r"\blimit\s+\d+(\s+offset\s+\d+)?\s*$", re.IGNORECASE)

    def __init__(self, max_rows: int = 100, max_cols: int = 50):
        self.max_rows = max_rows
        self.max_cols = max_cols

    def apply_row_limit(self, sql: str, dialect: str) -> str:
        """Add TOP/LIMIT to a plain SELECT; other statements are returned unchanged."""
        s = (sql or "").strip().rstrip(";").strip()
        if not self._select_re.match(s):
            return s

        if dialect == "sqlserver":
            if self._top_re.match(s) or re.search(r"\boffset\s+\d+\s+rows\b", s, re.IGNORECASE):
                return s
            return self._select_re.sub(lambda m: f"SELECT {(m.group(1) or '').upper()}TOP ({self.max_rows}) ", s, count=1)

        if self._limit_re.search(s):
            return s
        return f"{s} LIMIT {self.max_rows}"

    def truncate_result(self, columns: List[str], rows: List[List[Any]]) -> Tuple[List[str], List[List[Any]], bool]:
        truncated = False

        if len(columns) > self.max_cols:
            columns = columns[: self.max_cols]
            rows = [r[: self.max_cols] for r in rows]
            truncated = True

        if len(rows) > self.max_rows:
            rows = rows[: self.max_rows]
            truncated = True

        return columns, rows, truncated
