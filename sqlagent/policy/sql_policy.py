"""sqlagent.policy.sql_policy

Pattern-based SQL safety classification and validation.

This is intentionally not a SQL parser: the operation kind comes from the leading
keyword of the statement, and the blacklist/PII checks are regex tables
(see sqlagent.policy.patterns).

Validation order:
1. classify the leading keyword (leading comments skipped)
2. blacklist veto (returns immediately, at every safety level)
3. length limit
4. PII scan (warning only)
5. read-only session override
6. per-operation policy for the configured SafetyLevel
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import List, Optional

from sqlagent.policy.blacklist import SqlBlacklist
from sqlagent.policy.patterns import SafetyPatterns
from sqlagent.policy.pii import PiiDetector


class OperationType(str, Enum):
    READ = "read"
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"
    ALTER = "alter"
    CREATE = "create"
    DROP = "drop"
    TRUNCATE = "truncate"
    GRANT = "grant"
    MAINTENANCE = "maintenance"
    TRANSACTION = "transaction"
    OTHER = "other"

    @property
    def is_dml(self) -> bool:
        return self in (OperationType.INSERT, OperationType.UPDATE, OperationType.DELETE)

    @property
    def is_ddl(self) -> bool:
        return self in (OperationType.ALTER, OperationType.CREATE, OperationType.DROP, OperationType.TRUNCATE)

    @property
    def label(self) -> str:
        return self.value.upper()


_KEYWORD_OPERATIONS: dict[str, OperationType] = {
    "SELECT": OperationType.READ,
    "WITH": OperationType.READ,
    "SHOW": OperationType.READ,
    "EXPLAIN": OperationType.READ,
    "DESCRIBE": OperationType.READ,
    "DESC": OperationType.READ,
    "VALUES": OperationType.READ,
    "INSERT": OperationType.INSERT,
    "UPDATE": OperationType.UPDATE,
    "DELETE": OperationType.DELETE,
    "ALTER": OperationType.ALTER,
    "CREATE": OperationType.CREATE,
    "DROP": OperationType.DROP,
    "TRUNCATE": OperationType.TRUNCATE,
    "GRANT": OperationType.GRANT,
    "REVOKE": OperationType.GRANT,
    "VACUUM": OperationType.MAINTENANCE,
    "ANALYZE": OperationType.MAINTENANCE,
    "REINDEX": OperationType.MAINTENANCE,
    "CLUSTER": OperationType.MAINTENANCE,
    "CHECKPOINT": OperationType.MAINTENANCE,
    "BEGIN": OperationType.TRANSACTION,
    "START": OperationType.TRANSACTION,
    "COMMIT": OperationType.TRANSACTION,
    "ROLLBACK": OperationType.TRANSACTION,
    "SAVEPOINT": OperationType.TRANSACTION,
    "RELEASE": OperationType.TRANSACTION,
    "END": OperationType.TRANSACTION,
}

_LEADING_WORD = re.compile(r"[A-Z_]+")


def strip_leading_trivia(sql: str) -> str:
    """Drop whitespace and comments in front of the first keyword.

    Block comments nest, as on SQL Server; an unterminated one swallows the rest,
    which leaves nothing to classify.
    """
    s = sql or ""
    i, n = 0, len(s)
    while i < n:
        if s[i].isspace():
            i += 1
        elif s.startswith("--", i):
            end = s.find("\n", i)
            i = n if end < 0 else end + 1
        elif s.startswith("/*", i):
            depth, i = 1, i + 2
            while i < n and depth:
                if s.startswith("/*", i):
                    depth, i = depth + 1, i + 2
                elif s.startswith("*/", i):
                    depth, i = depth - 1, i + 2
                else:
                    i += 1
        else:
            break
    return s[i:]


def classify_operation(sql: str) -> OperationType:
    """Classify by the leading keyword of the uppercased statement, comments skipped."""
    normalized = strip_leading_trivia(sql).rstrip().upper()
    m = _LEADING_WORD.match(normalized)
    if not m:
        return OperationType.OTHER
    return _KEYWORD_OPERATIONS.get(m.group(0), OperationType.OTHER)


class SafetyLevel(IntEnum):
    """Ordered by permissiveness: READ_ONLY < BALANCED < PERMISSIVE."""

    READ_ONLY = 0
    BALANCED = 1
    PERMISSIVE = 2

    def allows_dml(self) -> bool:
        return self >= SafetyLevel.BALANCED

    def requires_dml_confirmation(self) -> bool:
        return self == SafetyLevel.BALANCED

    def allows_ddl(self) -> bool:
        return self == SafetyLevel.PERMISSIVE

    def requires_ddl_confirmation(self) -> bool:
        return self == SafetyLevel.PERMISSIVE

    @property
    def label(self) -> str:
        return self.name.lower().replace("_", "-")

    @classmethod
    def parse(cls, value: str) -> "SafetyLevel":
        key = (value or "").strip().lower().replace("_", "-")
        aliases = {"readonly": "read-only"}
        key = aliases.get(key, key)
        for level in cls:
            if level.label == key:
                return level
        raise ValueError(f"Unknown safety level: {value!r}")


@dataclass(frozen=True)
class SafetyContext:
    level: SafetyLevel = SafetyLevel.READ_ONLY
    read_only: bool = False


@dataclass(frozen=True)
class ValidationDetail:
    kind: str  # blacklist | empty | length | pii | multi_statement | read_only | policy
    message: str


@dataclass
class ValidationResult:
    """Outcome of one validate() call; recomputed every time, never cached."""
    is_allowed: bool
    operation: OperationType
    warnings: List[str] = field(default_factory=list)
    error: Optional[str] = None
    requires_confirmation: bool = False
    details: List[ValidationDetail] = field(default_factory=list)

    def reject(self, kind: str, message: str) -> "ValidationResult":
        self.is_allowed = False
        self.error = message
        self.requires_confirmation = False
        self.details.append(ValidationDetail(kind, message))
        return self

    def warn(self, kind: str, message: str) -> None:
        self.warnings.append(message)
        self.details.append(ValidationDetail(kind, message))


class SafetyValidator:
    """Validates SQL against the blacklist, PII table and safety level."""

    def __init__(
        self,
        patterns: Optional[SafetyPatterns] = None,
        allow_maintenance: bool = False,
        max_query_length: int = 10_000,
    ):
        self.patterns = patterns or SafetyPatterns.default()
        self.blacklist = SqlBlacklist(self.patterns)
        self.pii = PiiDetector(self.patterns)
        self.allow_maintenance = allow_maintenance
        self.max_query_length = max_query_length

    def classify_operation(self, sql: str) -> OperationType:
        return classify_operation(sql)

    def is_mutation(self, sql: str) -> bool:
        op = classify_operation(sql)
        return op.is_dml or op.is_ddl

    def validate(self, sql: str, ctx: SafetyContext) -> ValidationResult:
        s = (sql or "").strip()
        op = classify_operation(s)
        res = ValidationResult(is_allowed=True, operation=op)

        if not strip_leading_trivia(s):
            return res.reject("empty", "Empty SQL")

        category = self.blacklist.find_match(s)
        if category:
            return res.reject("blacklist", f"Query contains prohibited operation: {category}")

        if len(s) > self.max_query_length:
            return res.reject("length", f"Query exceeds maximum length of {self.max_query_length} characters")

        found = self.pii.detect(s)
        if found:
            labels = ", ".join(k.label for k in found)
            res.warn("pii", f"Query may contain PII ({labels})")

        # A trailing semicolon is fine; anything after an inner one is not classified.
        # Pattern-based: a ';' inside a string literal counts too.
        if ";" in s.rstrip(";"):
            res.warn("multi_statement", "Multiple statements detected; only the first statement was classified")

        if ctx.read_only and op != OperationType.READ:
            return res.reject("read_only", "Mutations not allowed in read-only mode")

        return self._apply_level_policy(res, ctx.level)

    def _apply_level_policy(self, res: ValidationResult, level: SafetyLevel) -> ValidationResult:
        op = res.operation

        if op == OperationType.READ:
            return res

        if op.is_dml:
            if not level.allows_dml():
                return res.reject("policy", f"{op.label} operations are not allowed at safety level {level.label}")
            res.requires_confirmation = level.requires_dml_confirmation()
            return res

        if op.is_ddl:
            if not level.allows_ddl():
                return res.reject("policy", f"{op.label} operations are not allowed at safety level {level.label}")
            res.requires_confirmation = level.requires_ddl_confirmation()
            return res

        if op == OperationType.GRANT:
            return res.reject("policy", "GRANT/REVOKE operations are never allowed")

        if op == OperationType.MAINTENANCE and not self.allow_maintenance:
            return res.reject("policy", "Maintenance operations are disabled")

        return res
