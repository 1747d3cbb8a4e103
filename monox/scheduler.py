"""AsyncTaskScheduler: run named async work items with bounded concurrency."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Generic, TypeVar

import structlog

from monox.core.config import default_parallelism

logger = structlog.get_logger("monox.scheduler")

T = TypeVar("T")

TaskWork = Callable[[], Awaitable[T]]
ProgressCallback = Callable[[int, int], None]


class TaskOutcome(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class TaskResult(Generic[T]):
    """Terminal result of one task: success, failure, timeout or cancelled."""

    outcome: TaskOutcome
    value: T | None = None
    error: str | None = None

    @classmethod
    def success(cls, value: T) -> TaskResult[T]:
        return cls(TaskOutcome.SUCCESS, value=value)

    @classmethod
    def failure(cls, message: str) -> TaskResult[T]:
        return cls(TaskOutcome.FAILED, error=message)

    @classmethod
    def timeout(cls) -> TaskResult[T]:
        return cls(TaskOutcome.TIMEOUT, error="timed out")

    @classmethod
    def cancelled(cls) -> TaskResult[T]:
        return cls(TaskOutcome.CANCELLED)

    @property
    def is_success(self) -> bool:
        return self.outcome is TaskOutcome.SUCCESS

    @property
    def is_failure(self) -> bool:
        """Failed or timed out. Cancelled tasks are not failures."""
        return self.outcome in (TaskOutcome.FAILED, TaskOutcome.TIMEOUT)

    def erase(self) -> TaskResult[None]:
        """Same outcome with the payload dropped."""
        return TaskResult(self.outcome, error=self.error)


TaskCompletedCallback = Callable[[str, TaskResult[None]], None]


@dataclass
class TaskStatus:
    id: str
    started_at: float | None = None
    completed_at: float | None = None
    is_completed: bool = False
    is_success: bool = False
    outcome: TaskOutcome | None = None

    @property
    def duration(self) -> float | None:
        if self.started_at is not None and self.completed_at is not None:
            return round(self.completed_at - self.started_at, 3)
        return None


@dataclass
class SchedulerConfig:
    max_concurrency: int = field(default_factory=default_parallelism)
    timeout: float | None = None  # seconds
    fail_fast: bool = False
    verbose: bool = False
    progress_callback: ProgressCallback | None = None
    task_completed_callback: TaskCompletedCallback | None = None

    def __post_init__(self) -> None:
        if self.max_concurrency < 1:
            raise ValueError(f"max_concurrency must be >= 1, got {self.max_concurrency}")


@dataclass
class ExecutionSummary:
    total_tasks: int
    completed_tasks: int
    successful_tasks: int
    failed_tasks: int
    cancelled_tasks: int
    total_duration: float


class AsyncTaskScheduler:
    """Runs batches of ``(task_id, work)`` pairs, at most N at a time.

    *work* is a zero-argument callable returning an awaitable, so tasks that
    get cancelled never create their coroutine. Every task reaches exactly
    one terminal :class:`TaskResult`. With ``fail_fast`` the first failure or
    timeout stops dispatch: queued tasks become cancelled while tasks already
    running finish normally.
    """

    def __init__(self, config: SchedulerConfig | None = None) -> None:
        self.config = config or SchedulerConfig()
        self._status: dict[str, TaskStatus] = {}
        self._stop = False
        self._batch_total = 0
        self._batch_completed = 0
        self._completed = 0
        self._successful = 0
        self._failed = 0
        self._cancelled = 0

    # ── counters ─────────────────────────────────────────────────────────

    @property
    def completed_count(self) -> int:
        return self._completed

    @property
    def successful_count(self) -> int:
        return self._successful

    @property
    def failed_count(self) -> int:
        return self._failed

    @property
    def cancelled_count(self) -> int:
        return self._cancelled

    @property
    def is_stopped(self) -> bool:
        return self._stop

    # ── public ───────────────────────────────────────────────────────────

    async def execute_batch(
        self, tasks: Sequence[tuple[str, TaskWork[T]]]
    ) -> list[tuple[str, TaskResult[T]]]:
        """Run *tasks* and return one ``(task_id, result)`` per submitted task.

        Each batch starts with the stop flag cleared.
        """
        if not tasks:
            return []

        self._stop = False
        semaphore = asyncio.Semaphore(self.config.max_concurrency)
        self._batch_total = len(tasks)
        self._batch_completed = 0
        self._debug("scheduler.batch_start", tasks=len(tasks))

        results = await asyncio.gather(
            *(self._run(task_id, work, semaphore) for task_id, work in tasks)
        )

        self._debug(
            "scheduler.batch_complete",
            succeeded=sum(1 for _, r in results if r.is_success),
            total=len(results),
        )
        return list(results)

    async def execute_task(self, task_id: str, work: TaskWork[T]) -> TaskResult[T]:
        """Run a single task as a batch of one."""
        [(_, result)] = await self.execute_batch([(task_id, work)])
        return result

    def stop_all(self) -> None:
        """Cancel every task of the running batch that has not started yet.

        The flag only acts on the batch in progress; the next
        ``execute_batch`` clears it.
        """
        self._stop = True
        if self.config.verbose:
            logger.warning("scheduler.stopping_all_tasks")

    def get_task_status(self, task_id: str) -> TaskStatus | None:
        return self._status.get(task_id)

    def get_all_task_status(self) -> dict[str, TaskStatus]:
        return dict(self._status)

    def has_running_tasks(self) -> bool:
        return any(s.started_at is not None and not s.is_completed for s in self._status.values())

    def get_execution_summary(self) -> ExecutionSummary:
        statuses = list(self._status.values())
        starts = [s.started_at for s in statuses if s.started_at is not None]
        ends = [s.completed_at for s in statuses if s.completed_at is not None and s.started_at]
        total_duration = round(max(ends) - min(starts), 3) if starts and ends else 0.0
        return ExecutionSummary(
            total_tasks=len(statuses),
            completed_tasks=sum(1 for s in statuses if s.is_completed),
            successful_tasks=sum(1 for s in statuses if s.is_success),
            failed_tasks=sum(
                1 for s in statuses if s.outcome in (TaskOutcome.FAILED, TaskOutcome.TIMEOUT)
            ),
            cancelled_tasks=sum(1 for s in statuses if s.outcome is TaskOutcome.CANCELLED),
            total_duration=total_duration,
        )

    # ── internals ────────────────────────────────────────────────────────

    async def _run(
        self, task_id: str, work: TaskWork[T], semaphore: asyncio.Semaphore
    ) -> tuple[str, TaskResult[T]]:
        if self._stop:
            return task_id, self._finish(task_id, TaskResult.cancelled())

        async with semaphore:
            # Stop may have been raised while this task waited for a permit.
            if self._stop:
                result: TaskResult[T] = TaskResult.cancelled()
            else:
                self._record_start(task_id)
                result = await self._invoke(work)
                if self.config.fail_fast and result.is_failure:
                    # Set before the permit is released so no waiter starts.
                    self._stop = True
                    if self.config.verbose:
                        logger.warning("scheduler.fail_fast_triggered", task_id=task_id)

        return task_id, self._finish(task_id, result)

    async def _invoke(self, work: TaskWork[T]) -> TaskResult[T]:
        timeout = self.config.timeout
        if timeout is None:
            return await self._guarded(work)
        # Payload errors, its own TimeoutError included, are already a
        # Failure here; only the deadline can raise out of wait_for.
        try:
            return await asyncio.wait_for(self._guarded(work), timeout=timeout)
        except asyncio.TimeoutError:
            return TaskResult.timeout()

    @staticmethod
    async def _guarded(work: TaskWork[T]) -> TaskResult[T]:
        try:
            value = await work()
        except Exception as exc:
            return TaskResult.failure(str(exc) or type(exc).__name__)
        return TaskResult.success(value)

    def _record_start(self, task_id: str) -> None:
        self._status[task_id] = TaskStatus(id=task_id, started_at=time.monotonic())
        self._debug("scheduler.task_start", task_id=task_id)

    def _finish(self, task_id: str, result: TaskResult[T]) -> TaskResult[T]:
        status = self._status.setdefault(task_id, TaskStatus(id=task_id))
        status.completed_at = time.monotonic()
        status.is_completed = True
        status.is_success = result.is_success
        status.outcome = result.outcome

        self._completed += 1
        self._batch_completed += 1
        if result.is_success:
            self._successful += 1
        elif result.is_failure:
            self._failed += 1
        else:
            self._cancelled += 1

        self._log_result(status, result)
        self._notify(task_id, result)
        return result

    def _notify(self, task_id: str, result: TaskResult[T]) -> None:
        progress = self.config.progress_callback
        if progress is not None:
            try:
                progress(self._batch_completed, self._batch_total)
            except Exception:
                logger.debug("scheduler.progress_callback_error", task_id=task_id, exc_info=True)

        completed = self.config.task_completed_callback
        if completed is not None:
            try:
                completed(task_id, result.erase())
            except Exception:
                logger.debug("scheduler.completed_callback_error", task_id=task_id, exc_info=True)

    def _log_result(self, status: TaskStatus, result: TaskResult[T]) -> None:
        if not self.config.verbose:
            return
        if result.outcome is TaskOutcome.SUCCESS:
            logger.info("scheduler.task_success", task_id=status.id, duration=status.duration)
        elif result.outcome is TaskOutcome.FAILED:
            logger.error(
                "scheduler.task_failed",
                task_id=status.id,
                duration=status.duration,
                error=result.error,
            )
        elif result.outcome is TaskOutcome.TIMEOUT:
            logger.warning("scheduler.task_timeout", task_id=status.id, duration=status.duration)
        else:
            logger.warning("scheduler.task_cancelled", task_id=status.id)

    def _debug(self, event: str, **kw: object) -> None:
        if self.config.verbose:
            logger.info(event, **kw)
        else:
            logger.debug(event, **kw)


def optimal_concurrency(task_count: int, parallelism: int | None = None) -> int:
    """Concurrency for *task_count* I/O-bound lookups, clamped to ``[1, task_count]``."""
    cpus = parallelism or default_parallelism()
    n = task_count
    if n <= 10:
        threads = min(n, 2)
    elif n <= 50:
        threads = min(n // 2, cpus)
    elif n <= 200:
        threads = min(n // 4, cpus * 2)
    else:
        threads = min(n // 8, cpus * 3)
    return max(1, min(threads, n))
