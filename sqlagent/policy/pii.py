"""sqlagent.policy.pii

Regex PII scanner. Advisory only: findings become warnings, never rejections.
"""

from __future__ import annotations

from sqlagent.policy.patterns import PiiType, SafetyPatterns


class PiiDetector:
    def __init__(self, patterns: SafetyPatterns):
        self.patterns = patterns

    def detect(self, content: str) -> list[PiiType]:
        """Return the PII types present in `content`, in table order."""
        text = content or ""
        return [kind for kind, regex in self.patterns.pii if regex.search(text)]

    def contains_pii(self, content: str) -> bool:
        return bool(self.detect(content))

    def redact(self, content: str) -> str:
        """Replace each match with its label, e.g. "[EMAIL]"."""
        out = content or ""
        for kind, regex in self.patterns.pii:
            out = regex.sub(f"[{kind.label}]", out)
        return out
