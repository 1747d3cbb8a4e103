"""Progress tracking for staged script runs."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Callable

import structlog

from monox.scheduler import TaskOutcome, TaskResult

logger = structlog.get_logger("monox.progress")


@dataclass
class StageProgress:
    index: int
    packages: list[str]
    status: str = "pending"  # "pending" | "running" | "completed" | "failed" | "skipped"
    start_time: float | None = None
    end_time: float | None = None
    succeeded: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)  # package -> reason
    skipped: list[str] = field(default_factory=list)
    cancelled: list[str] = field(default_factory=list)
    detail: str = ""

    @property
    def duration(self) -> float | None:
        if self.start_time and self.end_time:
            return round(self.end_time - self.start_time, 2)
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "stage": self.index,
            "status": self.status,
            "packages": self.packages,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "skipped": self.skipped,
            "cancelled": self.cancelled,
            "duration": self.duration,
            "detail": self.detail,
        }


@dataclass
class RunSummary:
    script: str
    stages: list[StageProgress]
    duration: float

    @property
    def succeeded(self) -> int:
        return sum(len(s.succeeded) for s in self.stages)

    @property
    def failed(self) -> int:
        return sum(len(s.failed) for s in self.stages)

    @property
    def skipped(self) -> int:
        return sum(len(s.skipped) for s in self.stages)

    @property
    def cancelled(self) -> int:
        return sum(len(s.cancelled) for s in self.stages)

    @property
    def exit_code(self) -> int:
        """0 iff no task failed or timed out."""
        return 1 if self.failed else 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "script": self.script,
            "stages": [s.to_dict() for s in self.stages],
            "succeeded": self.succeeded,
            "failed": self.failed,
            "skipped": self.skipped,
            "cancelled": self.cancelled,
            "duration": self.duration,
            "exit_code": self.exit_code,
        }


class ProgressTracker:
    """Track per-stage outcomes of one script run."""

    def __init__(self, script: str) -> None:
        self.script = script
        self.stages: list[StageProgress] = []
        self._by_index: dict[int, StageProgress] = {}
        self.callbacks: list[Callable[[StageProgress], None]] = []
        self._start = time.monotonic()
        self._end: float | None = None

    def start_stage(
        self, index: int, packages: list[str], skipped: list[str] | None = None
    ) -> StageProgress:
        s = StageProgress(
            index=index,
            packages=list(packages),
            status="running",
            start_time=time.monotonic(),
            skipped=list(skipped or []),
        )
        self.stages.append(s)
        self._by_index[index] = s
        self._notify(s)
        return s

    def record(self, index: int, package: str, result: TaskResult[Any]) -> None:
        """File one task outcome under its stage."""
        s = self._by_index.get(index)
        if s is None:
            return
        if result.outcome is TaskOutcome.SUCCESS:
            s.succeeded.append(package)
        elif result.outcome is TaskOutcome.CANCELLED:
            s.cancelled.append(package)
        else:
            s.failed[package] = result.error or result.outcome.value

    def complete_stage(self, index: int) -> None:
        s = self._by_index.get(index)
        if s:
            s.status = "failed" if s.failed else "completed"
            s.end_time = time.monotonic()
            s.succeeded.sort()
            s.cancelled.sort()
            self._notify(s)

    def skip_stage(self, index: int, packages: list[str], reason: str) -> None:
        """Record a stage that never started; its packages count as cancelled."""
        s = StageProgress(
            index=index,
            packages=list(packages),
            status="skipped",
            cancelled=sorted(packages),
            detail=reason,
        )
        self.stages.append(s)
        self._by_index[index] = s
        self._notify(s)

    def finish(self) -> None:
        self._end = time.monotonic()

    def get_summary(self) -> RunSummary:
        end = self._end if self._end is not None else time.monotonic()
        return RunSummary(
            script=self.script,
            stages=list(self.stages),
            duration=round(end - self._start, 2),
        )

    def _notify(self, s: StageProgress) -> None:
        for cb in self.callbacks:
            try:
                cb(s)
            except Exception:
                logger.debug("progress.callback_error", stage=s.index, exc_info=True)
