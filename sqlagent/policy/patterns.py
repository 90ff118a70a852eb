"""sqlagent.policy.patterns

Pattern tables for the blacklist and the PII scanner.

Built once at startup (SafetyPatterns.default()) and injected into the validator,
the PII detector and the audit trail. Instances are immutable.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Pattern


class PiiType(str, Enum):
    SSN = "SSN"
    CREDIT_CARD = "CREDIT_CARD"
    EMAIL = "EMAIL"
    PHONE = "PHONE"
    IP_ADDRESS = "IP_ADDRESS"

    @property
    def label(self) -> str:
        return self.value


# Whitespace and comments that may precede a keyword. A block comment ends at
# the first "*/".
_LEADING_TRIVIA = r"(?:\s|--[^\n]*(?:\n|$)|/\*(?:[^*]|\*(?!/))*\*/)*"

# Statement start = beginning of text, right after a ';' separator, or right after
# a comment close (SQL Server nests block comments). A ';' inside a string literal
# also counts, so `SELECT 'a; DELETE x'` is vetoed.
_STMT_START = r"(?:^|;|\*/)" + _LEADING_TRIVIA

_BLACKLIST_SOURCES: tuple[tuple[str, str], ...] = (
    ("DROP", _STMT_START + r"DROP\s+(?:TABLE|DATABASE|SCHEMA|EVENT|INDEX|PROCEDURE|FUNCTION|TRIGGER|VIEW)\b"),
    ("TRUNCATE", _STMT_START + r"TRUNCATE\s+"),
    # Every DELETE, with or without WHERE.
    ("DELETE", _STMT_START + r"DELETE\s+"),
    ("GRANT/REVOKE", _STMT_START + r"(?:GRANT|REVOKE)\s+"),
    ("EXECUTE", _STMT_START + r"EXECUTE\s*\("),
)

# Order matters for redaction: card numbers before phone numbers.
_PII_SOURCES: tuple[tuple[PiiType, str], ...] = (
    (PiiType.SSN, r"\b\d{3}-\d{2}-\d{4}\b"),
    (PiiType.CREDIT_CARD, r"\b\d{4}[-\s]?\d{4}[-\s]?\d{4}[-\s]?\d{4}\b"),
    (PiiType.EMAIL, r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b"),
    (PiiType.PHONE, r"\b(?:\+?1[-.\s]?)?\(?[0-9]{3}\)?[-.\s]?[0-9]{3}[-.\s]?[0-9]{4}\b"),
    (PiiType.IP_ADDRESS, r"\b(?:[0-9]{1,3}\.){3}[0-9]{1,3}\b"),
)


@dataclass(frozen=True)
class SafetyPatterns:
    """Compiled blacklist (category -> regex) and PII (type -> regex) tables."""
    blacklist: tuple[tuple[str, Pattern[str]], ...]
    pii: tuple[tuple[PiiType, Pattern[str]], ...]

    @classmethod
    def default(cls) -> "SafetyPatterns":
        return cls.from_sources(_BLACKLIST_SOURCES, _PII_SOURCES)

    @classmethod
    def from_sources(
        cls,
        blacklist: tuple[tuple[str, str], ...],
        pii: tuple[tuple[PiiType, str], ...],
    ) -> "SafetyPatterns":
        return cls(
            blacklist=tuple((name, re.compile(src, re.IGNORECASE)) for name, src in blacklist),
            pii=tuple((kind, re.compile(src)) for kind, src in pii),
        )
