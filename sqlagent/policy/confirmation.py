"""sqlagent.policy.confirmation

Confirmation workflow for mutating statements.

One workflow instance tracks at most one pending request. A request is consumed
by exactly one resolution (confirm / confirm_typed / admin_approve / cancel) or
expires passively five minutes after creation.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable, Optional

from sqlagent.policy.sql_policy import OperationType

CONFIRMATION_TTL = timedelta(minutes=5)


class ConfirmationLevel(str, Enum):
    NONE = "none"
    SIMPLE = "simple"  # y/n
    TYPED = "typed"  # user must type the operation keyword, e.g. "DROP"
    ADMIN_APPROVAL = "admin_approval"


def confirmation_level_for(operation: OperationType) -> ConfirmationLevel:
    if operation in (OperationType.INSERT, OperationType.UPDATE):
        return ConfirmationLevel.SIMPLE
    if operation == OperationType.DELETE or operation.is_ddl:
        return ConfirmationLevel.TYPED
    if operation in (OperationType.GRANT, OperationType.MAINTENANCE):
        return ConfirmationLevel.ADMIN_APPROVAL
    return ConfirmationLevel.NONE


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ConfirmationRequest:
    id: str
    operation: str
    sql: str
    level: ConfirmationLevel
    created_at: datetime
    expired: bool = False

    def is_expired(self, now: datetime) -> bool:
        return self.expired or now - self.created_at >= CONFIRMATION_TTL

    @property
    def expected_value(self) -> str:
        return self.operation.strip().upper()


class ConfirmationWorkflow:
    """Single-slot confirmation state machine; not thread-safe, one session at a time."""

    def __init__(self, auto_confirm: bool = False, clock: Optional[Callable[[], datetime]] = None):
        self.auto_confirm = auto_confirm
        self._clock = clock or _utcnow
        self._pending: Optional[ConfirmationRequest] = None
        self._expected: Optional[str] = None

    @property
    def pending(self) -> Optional[ConfirmationRequest]:
        return self._pending if self.is_pending() else None

    @property
    def expected_value(self) -> Optional[str]:
        return self._expected if self.is_pending() else None

    def request(self, operation: str, sql: str, level: ConfirmationLevel) -> Optional[ConfirmationRequest]:
        """Open a request; returns None when the level needs no confirmation.

        A request still pending is superseded (marked expired) by the new one.
        """
        if level == ConfirmationLevel.NONE:
            return None
        if self._pending is not None:
            self._pending.expired = True
        req = ConfirmationRequest(
            id=uuid.uuid4().hex,
            operation=operation,
            sql=sql,
            level=level,
            created_at=self._clock(),
        )
        self._pending = req
        self._expected = req.expected_value
        return req

    def is_pending(self) -> bool:
        req = self._pending
        if req is None:
            return False
        if req.is_expired(self._clock()):
            req.expired = True
            self._clear()
            return False
        return True

    def confirm(self) -> bool:
        """Simple confirmation; valid for SIMPLE and TYPED requests."""
        if self.auto_confirm:
            self._clear()
            return True
        if not self.is_pending() or self._pending.level not in (ConfirmationLevel.SIMPLE, ConfirmationLevel.TYPED):
            return False
        self._clear()
        return True

    def confirm_typed(self, value: str) -> bool:
        """Typed confirmation; `value` must equal the expected keyword after trimming."""
        if self.auto_confirm:
            self._clear()
            return True
        if not self.is_pending() or self._pending.level != ConfirmationLevel.TYPED:
            return False
        if (value or "").strip() != self._expected:
            return False
        self._clear()
        return True

    def admin_approve(self) -> bool:
        if self.auto_confirm:
            self._clear()
            return True
        if not self.is_pending() or self._pending.level != ConfirmationLevel.ADMIN_APPROVAL:
            return False
        self._clear()
        return True

    def cancel(self) -> None:
        if self._pending is not None:
            self._pending.expired = True
        self._clear()

    def _clear(self) -> None:
        self._pending = None
        self._expected = None
