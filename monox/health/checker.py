"""Workspace health checks: cycles, version conflicts, outdated dependencies."""

from __future__ import annotations

import functools
from collections.abc import Iterable
from pathlib import Path

import structlog

from monox.health.models import (
    ConflictUsage,
    DependencyUsage,
    OutdatedDependency,
    OutdatedReport,
    VersionConflict,
)
from monox.health.registry import RegistryClient
from monox.health.versions import (
    extract_version_from_spec,
    is_satisfied,
    recommended_version,
    should_skip_dependency,
)
from monox.scheduler import (
    AsyncTaskScheduler,
    ProgressCallback,
    SchedulerConfig,
    optimal_concurrency,
)
from monox.workspace.analyzer import WorkspaceAnalyzer
from monox.workspace.models import Package
from monox.workspace.scanner import scan

log = structlog.get_logger("monox.checker")


class HealthChecker:
    """Runs the health checks against one workspace.

    Every check scans the workspace afresh, so results always reflect the
    manifests on disk.
    """

    def __init__(
        self,
        workspace_root: Path,
        registry: RegistryClient,
        ignore_patterns: Iterable[str] = (),
        *,
        verbose: bool = False,
    ) -> None:
        self.analyzer = WorkspaceAnalyzer(workspace_root, ignore_patterns, verbose=verbose)
        self.registry = registry
        self.verbose = verbose

    def check_circular(self) -> list[list[str]]:
        return self.analyzer.analyze().cycles

    def check_version_conflicts(self) -> list[VersionConflict]:
        return find_version_conflicts(collect_dependency_usages(self._packages()))

    async def check_outdated(
        self, progress_callback: ProgressCallback | None = None
    ) -> OutdatedReport:
        """Query the registry once per distinct dependency name.

        *progress_callback* receives ``(completed, total)`` with ``total``
        fixed to the number of distinct dependencies.
        """
        unique = collect_unique_dependencies(self._packages())
        total = len(unique)
        if not unique:
            return OutdatedReport(outdated=[], total_examined=0)

        scheduler = AsyncTaskScheduler(
            SchedulerConfig(
                max_concurrency=optimal_concurrency(total),
                verbose=self.verbose,
                progress_callback=progress_callback,
            )
        )
        tasks = [
            (name, functools.partial(self.registry.latest_version, name)) for name in unique
        ]
        results = await scheduler.execute_batch(tasks)

        latest_by_name: dict[str, str] = {}
        for name, result in results:
            if result.is_success and result.value:
                latest_by_name[name] = result.value
            elif not result.is_success:
                log.debug("checker.lookup_failed", dependency=name, error=result.error)

        outdated: list[OutdatedDependency] = []
        for name, usage in unique.items():
            latest = latest_by_name.get(name)
            if latest is not None:
                outdated.extend(outdated_records(usage, latest))

        if self.verbose:
            log.info(
                "checker.outdated_done",
                examined=total,
                outdated=len({o.name for o in outdated}),
            )
        return OutdatedReport(outdated=outdated, total_examined=total)

    def _packages(self) -> list[Package]:
        packages = scan(self.analyzer.workspace_root, self.analyzer.ignore, verbose=self.verbose)
        return sorted(packages, key=lambda p: p.name)


def collect_unique_dependencies(packages: Iterable[Package]) -> dict[str, DependencyUsage]:
    """Distinct registry-resolved dependencies, keyed and ordered by name."""
    unique: dict[str, DependencyUsage] = {}
    for package in packages:
        for name, spec, kind in package.iter_dependencies():
            if should_skip_dependency(spec):
                continue
            usage = unique.get(name)
            if usage is None:
                usage = unique[name] = DependencyUsage(name=name, version_spec=spec)
            usage.used_by.append((package.name, kind.value, spec))
    return dict(sorted(unique.items()))


def outdated_records(usage: DependencyUsage, latest: str) -> list[OutdatedDependency]:
    """One record per using package, or none when the spec is current."""
    current = extract_version_from_spec(usage.version_spec)
    if current == latest or is_satisfied(current, latest):
        return []
    return [
        OutdatedDependency(
            name=usage.name,
            current=current,
            latest=latest,
            package=package,
            dep_type=kind,
            version_spec=spec,
        )
        for package, kind, spec in usage.used_by
    ]


def collect_dependency_usages(packages: Iterable[Package]) -> dict[str, list[ConflictUsage]]:
    usages: dict[str, list[ConflictUsage]] = {}
    for package in packages:
        for name, spec, kind in package.iter_dependencies():
            if should_skip_dependency(spec):
                continue
            usages.setdefault(name, []).append(
                ConflictUsage(
                    package=package.name,
                    version_spec=spec,
                    resolved_version=extract_version_from_spec(spec),
                    dep_type=kind.value,
                )
            )
    return dict(sorted(usages.items()))


def find_version_conflicts(usages: dict[str, list[ConflictUsage]]) -> list[VersionConflict]:
    """Dependencies declared at two or more distinct resolved versions."""
    conflicts = []
    for name, entries in usages.items():
        if len(entries) < 2:
            continue
        versions = sorted({u.resolved_version for u in entries})
        if len(versions) > 1:
            conflicts.append(
                VersionConflict(
                    name=name,
                    conflicts=entries,
                    recommended_version=recommended_version(versions),
                )
            )
    return conflicts
