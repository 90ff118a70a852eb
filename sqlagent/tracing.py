"""sqlagent.tracing

Trace collection for verbose reasoning mode.
Each agent step appends a structured payload; the response carries them when enabled.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any


@dataclass
class TraceCollector:
    """Collects per-step traces for a single agent run."""
    traces: list[dict[str, Any]] = field(default_factory=list)

    def add(self, step_name: str, payload: dict[str, Any]) -> None:
        self.traces.append({"step": step_name, "payload": payload})

    def clear(self) -> None:
        self.traces.clear()

    def snapshot(self) -> list[dict[str, Any]]:
        return list(self.traces)
