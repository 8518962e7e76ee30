"""Phase and status reporting for a migration run."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Callable

import structlog

log = structlog.get_logger("cpm_migrator.progress")

ProgressCallback = Callable[[str], None]


@dataclass
class PhaseRecord:
    """One transaction phase: backup, manifest, rewrite or rollback."""

    phase: str
    status: str = "running"  # "running" | "completed" | "failed" | "skipped"
    started: float | None = None
    finished: float | None = None
    detail: str = ""
    error: str | None = None

    @property
    def duration(self) -> float | None:
        if self.started is None or self.finished is None:
            return None
        return round(self.finished - self.started, 3)

    def as_dict(self) -> dict[str, Any]:
        return {
            "phase": self.phase,
            "status": self.status,
            "duration": self.duration,
            "detail": self.detail,
            "error": self.error,
        }


class ProgressTracker:
    """Record the phases of one migration and relay status lines.

    Phase changes are logged as ``progress.phase`` events. *on_message*
    receives the short lines (``"Backed up App.csproj"``) meant for a human.
    """

    def __init__(self, on_message: ProgressCallback | None = None) -> None:
        self.phases: list[PhaseRecord] = []
        self.on_message = on_message

    @property
    def current(self) -> PhaseRecord | None:
        if self.phases and self.phases[-1].status == "running":
            return self.phases[-1]
        return None

    def report(self, message: str) -> None:
        if self.on_message is not None:
            self.on_message(message)

    def start_phase(self, phase: str) -> None:
        record = PhaseRecord(phase=phase, started=time.monotonic())
        self.phases.append(record)
        log.debug("progress.phase", phase=phase, status=record.status)

    def complete_phase(self, phase: str, detail: str = "") -> None:
        self._finish(phase, "completed", detail=detail)

    def fail_phase(self, phase: str, error: str) -> None:
        self._finish(phase, "failed", error=error)

    def skip_phase(self, phase: str, reason: str) -> None:
        self.phases.append(PhaseRecord(phase=phase, status="skipped", detail=reason))
        log.debug("progress.phase", phase=phase, status="skipped", reason=reason)

    def get_summary(self) -> dict[str, Any]:
        return {
            "phases": [record.as_dict() for record in self.phases],
            "total_duration": round(sum(r.duration or 0 for r in self.phases), 3),
        }

    def _finish(self, phase: str, status: str, detail: str = "", error: str | None = None) -> None:
        record = next((r for r in reversed(self.phases) if r.phase == phase), None)
        if record is None:
            return
        record.status = status
        record.finished = time.monotonic()
        record.detail = detail or record.detail
        record.error = error
        log.debug("progress.phase", phase=phase, status=status, duration=record.duration)
