"""Unit tests for AsyncTaskScheduler."""

from __future__ import annotations

import asyncio

import pytest

from monox.scheduler import (
    AsyncTaskScheduler,
    SchedulerConfig,
    TaskOutcome,
    TaskResult,
    optimal_concurrency,
)


class Gauge:
    """Counts how many payloads run at once."""

    def __init__(self) -> None:
        self.running = 0
        self.peak = 0
        self.started: list[str] = []

    def work(self, name: str, delay: float = 0.01, fail: bool = False):
        async def _run():
            self.started.append(name)
            self.running += 1
            self.peak = max(self.peak, self.running)
            try:
                await asyncio.sleep(delay)
            finally:
                self.running -= 1
            if fail:
                raise RuntimeError(f"{name} broke")
            return name.upper()

        return _run


@pytest.mark.asyncio
async def test_all_tasks_succeed():
    gauge = Gauge()
    scheduler = AsyncTaskScheduler(SchedulerConfig(max_concurrency=4))
    results = await scheduler.execute_batch([(n, gauge.work(n)) for n in "abcde"])

    assert sorted(task_id for task_id, _ in results) == list("abcde")
    assert all(r.is_success for _, r in results)
    assert dict(results)["c"].value == "C"
    assert scheduler.completed_count == 5
    assert scheduler.successful_count == 5
    assert scheduler.failed_count == 0


@pytest.mark.asyncio
async def test_empty_batch():
    assert await AsyncTaskScheduler().execute_batch([]) == []


@pytest.mark.asyncio
async def test_concurrency_bound():
    gauge = Gauge()
    scheduler = AsyncTaskScheduler(SchedulerConfig(max_concurrency=2))
    await scheduler.execute_batch([(f"t{i}", gauge.work(f"t{i}", 0.02)) for i in range(8)])
    assert gauge.peak == 2


@pytest.mark.asyncio
async def test_siblings_run_concurrently():
    gauge = Gauge()
    scheduler = AsyncTaskScheduler(SchedulerConfig(max_concurrency=2))
    await scheduler.execute_batch([("app1", gauge.work("app1", 0.05)), ("app2", gauge.work("app2", 0.05))])
    assert gauge.peak == 2


@pytest.mark.asyncio
async def test_failure_does_not_cancel_peers_without_fail_fast():
    gauge = Gauge()
    scheduler = AsyncTaskScheduler(SchedulerConfig(max_concurrency=1))
    results = dict(
        await scheduler.execute_batch(
            [("bad", gauge.work("bad", fail=True)), ("ok1", gauge.work("ok1")), ("ok2", gauge.work("ok2"))]
        )
    )
    assert results["bad"].outcome is TaskOutcome.FAILED
    assert results["bad"].error == "bad broke"
    assert results["ok1"].is_success and results["ok2"].is_success
    assert scheduler.failed_count == 1


@pytest.mark.asyncio
async def test_fail_fast_cancels_queued_tasks():
    gauge = Gauge()
    scheduler = AsyncTaskScheduler(SchedulerConfig(max_concurrency=1, fail_fast=True))
    results = dict(
        await scheduler.execute_batch(
            [("bad", gauge.work("bad", fail=True)), ("q1", gauge.work("q1")), ("q2", gauge.work("q2"))]
        )
    )
    assert results["bad"].outcome is TaskOutcome.FAILED
    assert results["q1"].outcome is TaskOutcome.CANCELLED
    assert results["q2"].outcome is TaskOutcome.CANCELLED
    assert gauge.started == ["bad"]
    assert scheduler.cancelled_count == 2
    assert scheduler.is_stopped


@pytest.mark.asyncio
async def test_fail_fast_lets_running_tasks_finish():
    gauge = Gauge()
    scheduler = AsyncTaskScheduler(SchedulerConfig(max_concurrency=2, fail_fast=True))
    results = dict(
        await scheduler.execute_batch(
            [
                ("bad", gauge.work("bad", delay=0.01, fail=True)),
                ("slow", gauge.work("slow", delay=0.05)),
                ("queued", gauge.work("queued")),
            ]
        )
    )
    assert results["slow"].is_success
    assert results["queued"].outcome is TaskOutcome.CANCELLED


@pytest.mark.asyncio
async def test_timeout():
    gauge = Gauge()
    scheduler = AsyncTaskScheduler(SchedulerConfig(max_concurrency=2, timeout=0.05))
    results = dict(
        await scheduler.execute_batch([("slow", gauge.work("slow", 1.0)), ("fast", gauge.work("fast"))])
    )
    assert results["slow"].outcome is TaskOutcome.TIMEOUT
    assert results["slow"].is_failure
    assert results["fast"].is_success


@pytest.mark.asyncio
async def test_timeout_triggers_fail_fast():
    gauge = Gauge()
    scheduler = AsyncTaskScheduler(SchedulerConfig(max_concurrency=1, timeout=0.05, fail_fast=True))
    results = dict(
        await scheduler.execute_batch([("slow", gauge.work("slow", 1.0)), ("next", gauge.work("next"))])
    )
    assert results["slow"].outcome is TaskOutcome.TIMEOUT
    assert results["next"].outcome is TaskOutcome.CANCELLED


@pytest.mark.asyncio
async def test_progress_callback_strictly_increasing():
    seen: list[tuple[int, int]] = []
    gauge = Gauge()
    scheduler = AsyncTaskScheduler(
        SchedulerConfig(max_concurrency=3, progress_callback=lambda c, t: seen.append((c, t)))
    )
    await scheduler.execute_batch([(f"t{i}", gauge.work(f"t{i}")) for i in range(6)])

    assert [c for c, _ in seen] == [1, 2, 3, 4, 5, 6]
    assert {t for _, t in seen} == {6}


@pytest.mark.asyncio
async def test_task_completed_callback_gets_erased_result():
    seen: dict[str, TaskResult[None]] = {}
    gauge = Gauge()
    scheduler = AsyncTaskScheduler(
        SchedulerConfig(task_completed_callback=lambda tid, r: seen.__setitem__(tid, r))
    )
    await scheduler.execute_batch([("a", gauge.work("a")), ("b", gauge.work("b", fail=True))])

    assert seen["a"].is_success and seen["a"].value is None
    assert seen["b"].outcome is TaskOutcome.FAILED


@pytest.mark.asyncio
async def test_callback_errors_are_swallowed():
    def boom(completed, total):
        raise ValueError("render bug")

    gauge = Gauge()
    scheduler = AsyncTaskScheduler(SchedulerConfig(progress_callback=boom))
    results = await scheduler.execute_batch([("a", gauge.work("a"))])
    assert results[0][1].is_success


@pytest.mark.asyncio
async def test_stop_all_cancels_pending():
    gauge = Gauge()
    scheduler = AsyncTaskScheduler(SchedulerConfig(max_concurrency=1))

    async def stopper():
        scheduler.stop_all()
        return "stopped"

    results = dict(await scheduler.execute_batch([("stop", stopper), ("after", gauge.work("after"))]))
    assert results["stop"].is_success
    assert results["after"].outcome is TaskOutcome.CANCELLED


@pytest.mark.asyncio
async def test_next_batch_clears_stop_flag():
    gauge = Gauge()
    scheduler = AsyncTaskScheduler(SchedulerConfig(max_concurrency=1))
    scheduler.stop_all()
    assert scheduler.is_stopped

    [(_, result)] = await scheduler.execute_batch([("a", gauge.work("a"))])
    assert result.is_success
    assert not scheduler.is_stopped


@pytest.mark.asyncio
async def test_payload_timeout_error_is_failure_under_deadline():
    async def upstream():
        raise asyncio.TimeoutError("upstream read timed out")

    scheduler = AsyncTaskScheduler(SchedulerConfig(timeout=5.0))
    [(_, result)] = await scheduler.execute_batch([("fetch", upstream)])
    assert result.outcome is TaskOutcome.FAILED
    assert result.error == "upstream read timed out"
    assert scheduler.failed_count == 1


@pytest.mark.asyncio
async def test_payload_timeout_error_is_failure_without_deadline():
    async def upstream():
        raise asyncio.TimeoutError("upstream read timed out")

    scheduler = AsyncTaskScheduler(SchedulerConfig())
    [(_, result)] = await scheduler.execute_batch([("fetch", upstream)])
    assert result.outcome is TaskOutcome.FAILED
    assert result.error == "upstream read timed out"


@pytest.mark.asyncio
async def test_status_and_summary():
    gauge = Gauge()
    scheduler = AsyncTaskScheduler(SchedulerConfig(max_concurrency=2))
    await scheduler.execute_batch([("a", gauge.work("a")), ("b", gauge.work("b", fail=True))])

    status = scheduler.get_task_status("a")
    assert status is not None and status.is_completed and status.is_success
    assert status.duration is not None
    assert set(scheduler.get_all_task_status()) == {"a", "b"}
    assert not scheduler.has_running_tasks()

    summary = scheduler.get_execution_summary()
    assert summary.total_tasks == 2
    assert summary.completed_tasks == 2
    assert summary.successful_tasks == 1
    assert summary.failed_tasks == 1
    assert summary.cancelled_tasks == 0


@pytest.mark.asyncio
async def test_execute_task():
    result = await AsyncTaskScheduler().execute_task("one", Gauge().work("one"))
    assert result.value == "ONE"


def test_invalid_concurrency():
    with pytest.raises(ValueError):
        SchedulerConfig(max_concurrency=0)


class TestOptimalConcurrency:
    @pytest.mark.parametrize(
        "n, cpus, expected",
        [
            (0, 8, 1),
            (1, 8, 1),
            (10, 8, 2),
            (30, 8, 8),
            (30, 32, 15),
            (100, 8, 16),
            (100, 4, 8),
            (400, 8, 24),
            (400, 32, 50),
        ],
    )
    def test_heuristic(self, n, cpus, expected):
        assert optimal_concurrency(n, cpus) == expected
