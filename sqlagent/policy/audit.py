"""sqlagent.policy.audit

Audit trail for executed queries, schema changes and safety violations.

One JSON object per line. SQL is PII-redacted before it is written.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any

from sqlagent.policy.pii import PiiDetector


class AuditTrail:
    def __init__(self, logger, pii_detector: PiiDetector, user: str = "agent"):
        self.logger = logger
        self.pii = pii_detector
        self.user = user

    def _emit(self, event_type: str, payload: dict[str, Any]) -> dict[str, Any]:
        event = {
            "type": event_type,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "user": self.user,
            **payload,
        }
        self.logger.info(json.dumps(event, ensure_ascii=False, default=str))
        return event

    def query(self, sql: str, success: bool, duration_ms: int) -> dict[str, Any]:
        return self._emit("query", {"query": self.pii.redact(sql), "success": success, "duration_ms": duration_ms})

    def schema_change(self, operation: str, sql: str, approved: bool) -> dict[str, Any]:
        return self._emit("schema_change", {"operation": operation, "sql": self.pii.redact(sql), "approved": approved})

    def safety_violation(self, sql: str, reason: str) -> dict[str, Any]:
        return self._emit("safety_violation", {"query": self.pii.redact(sql), "reason": reason})
