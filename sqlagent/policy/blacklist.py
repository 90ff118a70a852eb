"""sqlagent.policy.blacklist

Unconditional veto for obviously destructive statements.
"""

from __future__ import annotations

from typing import Optional

from sqlagent.policy.patterns import SafetyPatterns


class SqlBlacklist:
    """Matches SQL against the blacklist table of a SafetyPatterns object."""

    def __init__(self, patterns: SafetyPatterns):
        self.patterns = patterns

    def find_match(self, sql: str) -> Optional[str]:
        """Return the category of the first matching pattern (e.g. "DROP"), or None."""
        for category, regex in self.patterns.blacklist:
            if regex.search(sql or ""):
                return category
        return None

    def contains_blacklisted(self, sql: str) -> bool:
        return self.find_match(sql) is not None
