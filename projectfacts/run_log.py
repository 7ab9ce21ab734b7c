"""Run log — ordered record of what each phase did, and how long it took."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Literal

import structlog

log = structlog.get_logger("projectfacts.engine")

Outcome = Literal["started", "ok", "degraded", "failed", "skipped", "info"]


@dataclass
class RunLogEntry:
    phase: str
    event: str
    outcome: Outcome
    detail: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "phase": self.phase,
            "event": self.event,
            "outcome": self.outcome,
            "detail": dict(self.detail),
        }


@dataclass
class PhaseTiming:
    phase: str
    status: str = "running"  # "running" | "completed" | "failed" | "skipped"
    start_time: float | None = None
    end_time: float | None = None

    @property
    def duration(self) -> float | None:
        if self.start_time is not None and self.end_time is not None:
            return round(self.end_time - self.start_time, 3)
        return None

    def to_dict(self) -> dict[str, Any]:
        return {"phase": self.phase, "status": self.status, "duration": self.duration}


class RunLog:
    """Append-only log of phase events, with per-phase timing.

    Every event is also emitted through structlog as ``run.<event>``.
    """

    def __init__(self) -> None:
        self.entries: list[RunLogEntry] = []
        self.phases: list[PhaseTiming] = []
        self._by_name: dict[str, PhaseTiming] = {}

    def record(self, phase: str, event: str, outcome: Outcome, **detail: Any) -> RunLogEntry:
        entry = RunLogEntry(phase=phase, event=event, outcome=outcome, detail=detail)
        self.entries.append(entry)
        log.info("run." + event, phase=phase, outcome=outcome, **detail)
        return entry

    def start_phase(self, phase: str) -> None:
        p = PhaseTiming(phase=phase, start_time=time.monotonic())
        self.phases.append(p)
        self._by_name[phase] = p
        self.record(phase, "phase_started", "started")

    def complete_phase(self, phase: str, outcome: Outcome = "ok", **detail: Any) -> None:
        p = self._by_name.get(phase)
        if p:
            p.status = "completed"
            p.end_time = time.monotonic()
        self.record(phase, "phase_completed", outcome, duration=p.duration if p else None, **detail)

    def fail_phase(self, phase: str, error: str, **detail: Any) -> None:
        p = self._by_name.get(phase)
        if p:
            p.status = "failed"
            p.end_time = time.monotonic()
        self.record(phase, "phase_failed", "failed", error=error, duration=p.duration if p else None, **detail)

    def skip_phase(self, phase: str, reason: str) -> None:
        p = PhaseTiming(phase=phase, status="skipped")
        self.phases.append(p)
        self._by_name[phase] = p
        self.record(phase, "phase_skipped", "skipped", reason=reason)

    def events(self, phase: str | None = None) -> list[RunLogEntry]:
        return [e for e in self.entries if phase is None or e.phase == phase]

    def to_list(self) -> list[dict[str, Any]]:
        return [e.to_dict() for e in self.entries]

    def get_summary(self) -> dict[str, Any]:
        total_duration = sum(p.duration or 0 for p in self.phases)
        return {
            "phases": [p.to_dict() for p in self.phases],
            "total_duration": round(total_duration, 3),
        }
