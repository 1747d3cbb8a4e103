"""Workspace orchestrator: the end-user flows on top of analysis and scheduling."""

from __future__ import annotations

import functools
from collections.abc import Sequence
from pathlib import Path
from typing import Callable, Protocol

import structlog

from monox.core.config import MonoxConfig
from monox.exceptions import ConfigError, CycleDetectedError, ScriptMissingError
from monox.executor import ScriptExecutor, ScriptResult
from monox.health.checker import HealthChecker
from monox.health.models import OutdatedReport, VersionConflict
from monox.health.registry import PackageManagerRegistry, RegistryClient
from monox.manifest.editor import ManifestEdit, apply_edits
from monox.manifest.planner import (
    plan_conflict_fixes,
    plan_dependency_update,
    plan_updates_from_outdated,
)
from monox.progress import ProgressTracker, RunSummary, StageProgress
from monox.scheduler import (
    AsyncTaskScheduler,
    ProgressCallback,
    SchedulerConfig,
    TaskCompletedCallback,
)
from monox.workspace.analyzer import WorkspaceAnalyzer
from monox.workspace.models import AnalysisResult, Package
from monox.workspace.scanner import scan

log = structlog.get_logger("monox.orchestrator")


class ScriptRunner(Protocol):
    async def run(self, package: Package, script: str) -> ScriptResult: ...


class WorkspaceOrchestrator:
    """Combines analysis, scheduling and health checks for one workspace.

    The configuration value is fixed at construction; build a new
    orchestrator to run with different settings.
    """

    def __init__(
        self,
        config: MonoxConfig,
        *,
        registry: RegistryClient | None = None,
        executor: ScriptRunner | None = None,
    ) -> None:
        self.config = config
        self.verbose = config.output.verbose
        self.registry = registry or PackageManagerRegistry(config.package_manager)
        self.executor = executor or ScriptExecutor(
            config.package_manager, retry_count=config.execution.retry_count
        )
        self.stage_callbacks: list[Callable[[StageProgress], None]] = []
        self.task_completed_callback: TaskCompletedCallback | None = None
        self.progress: ProgressTracker | None = None

    @property
    def workspace_root(self) -> Path:
        return self.config.workspace_root

    def analyzer(self) -> WorkspaceAnalyzer:
        return WorkspaceAnalyzer(
            self.workspace_root, self.config.workspace.ignore, verbose=self.verbose
        )

    def health_checker(self) -> HealthChecker:
        return HealthChecker(
            self.workspace_root,
            self.registry,
            self.config.workspace.ignore,
            verbose=self.verbose,
        )

    # ── analysis ─────────────────────────────────────────────────────────

    def analyze(self) -> AnalysisResult:
        return self.analyzer().analyze()

    def analyze_package(self, name: str) -> AnalysisResult:
        return self.analyzer().analyze_package(name)

    # ── script runs ──────────────────────────────────────────────────────

    async def run_script(self, script: str) -> RunSummary:
        """Run *script* across the workspace, stage by stage."""
        result = self.analyze()
        if result.cycles:
            raise CycleDetectedError(result.cycles)
        return await self._run_stages(script, result.stages)

    async def run_script_for_package(self, name: str, script: str) -> RunSummary:
        """Run *script* for *name* and everything it depends on."""
        return await self.run_script_for_packages([name], script)

    async def run_script_for_packages(self, names: Sequence[str], script: str) -> RunSummary:
        result = self.analyzer().analyze_packages(names)
        if not result.stages and result.cycles:
            raise CycleDetectedError(result.cycles)
        for package in result.packages:
            if not package.has_script(script):
                raise ScriptMissingError(package.name, script)
        return await self._run_stages(script, result.stages)

    async def run_task(self, task_name: str) -> RunSummary:
        """Resolve a predefined task from the configuration and run it."""
        task = self.config.find_task(task_name)
        if task.packages is not None:
            if not task.packages:
                raise ConfigError(f"Task '{task.name}' has an empty packages list")
            return await self.run_script_for_packages(task.packages, task.command)
        if task.pkg_name == "*":
            return await self.run_script(task.command)
        if task.pkg_name:
            return await self.run_script_for_package(task.pkg_name, task.command)
        raise ConfigError(f"Task '{task.name}' has no target package")

    async def _run_stages(self, script: str, stages: list[list[Package]]) -> RunSummary:
        tracker = ProgressTracker(script)
        tracker.callbacks.extend(self.stage_callbacks)
        self.progress = tracker

        execution = self.config.execution
        fail_fast = not execution.continue_on_failure
        stopped = False

        for index, stage in enumerate(stages, 1):
            names = [p.name for p in stage]
            if stopped:
                tracker.skip_stage(index, names, reason="stopped after a failed stage")
                continue

            runnable = [p for p in stage if p.has_script(script)]
            skipped = [p.name for p in stage if not p.has_script(script)]
            tracker.start_stage(index, names, skipped)
            log.debug(
                "orchestrator.stage_start", stage=index, run=len(runnable), skipped=len(skipped)
            )

            scheduler = AsyncTaskScheduler(
                SchedulerConfig(
                    max_concurrency=execution.max_concurrency,
                    timeout=self.config.task_timeout,
                    fail_fast=fail_fast,
                    verbose=self.verbose,
                    task_completed_callback=self.task_completed_callback,
                )
            )
            results = await scheduler.execute_batch(
                [(p.name, functools.partial(self.executor.run, p, script)) for p in runnable]
            )
            for name, task_result in results:
                tracker.record(index, name, task_result)
            tracker.complete_stage(index)

            if fail_fast and any(r.is_failure for _, r in results):
                log.warning("orchestrator.stopping_after_failure", stage=index)
                stopped = True

        tracker.finish()
        summary = tracker.get_summary()
        log.debug(
            "orchestrator.run_complete",
            script=script,
            succeeded=summary.succeeded,
            failed=summary.failed,
            skipped=summary.skipped,
            cancelled=summary.cancelled,
            duration=summary.duration,
        )
        return summary

    # ── health ───────────────────────────────────────────────────────────

    def check_circular(self) -> list[list[str]]:
        return self.health_checker().check_circular()

    def detect_version_conflicts(self) -> list[VersionConflict]:
        return self.health_checker().check_version_conflicts()

    async def check_outdated(
        self, progress_callback: ProgressCallback | None = None
    ) -> OutdatedReport:
        return await self.health_checker().check_outdated(progress_callback)

    # ── manifest edits ───────────────────────────────────────────────────

    def plan_fix(self) -> tuple[list[VersionConflict], list[ManifestEdit]]:
        conflicts = self.detect_version_conflicts()
        return conflicts, plan_conflict_fixes(conflicts)

    async def plan_update_all(
        self, progress_callback: ProgressCallback | None = None
    ) -> list[ManifestEdit]:
        report = await self.check_outdated(progress_callback)
        return plan_updates_from_outdated(report.outdated)

    async def plan_update_dependency(
        self, dependency: str, version: str | None = None
    ) -> tuple[str | None, list[ManifestEdit]]:
        """Edits moving *dependency* to *version* (the registry's latest when omitted).

        Returns ``(None, [])`` when the latest version cannot be determined.
        """
        if version is None:
            version = await self.registry.latest_version(dependency)
            if version is None:
                log.warning("orchestrator.version_lookup_failed", dependency=dependency)
                return None, []
        return version, plan_dependency_update(self._packages(), dependency, version)

    def apply_edits(self, edits: list[ManifestEdit]) -> list[ManifestEdit]:
        manifests = {p.name: p.manifest_path for p in self._packages()}
        return apply_edits(edits, manifests, verbose=self.verbose)

    def _packages(self) -> list[Package]:
        packages = scan(self.workspace_root, self.analyzer().ignore, verbose=self.verbose)
        return sorted(packages, key=lambda p: p.name)


