"""Scan, graph and stage-plan a workspace."""

from __future__ import annotations

import time
from collections.abc import Iterable, Sequence
from pathlib import Path

import networkx as nx
import structlog

from monox.exceptions import PackageNotFoundError
from monox.workspace.graph import (
    build_graph,
    dependency_closure,
    detect_cycles,
    plan_stages,
    restrict_stages,
    self_dependencies,
)
from monox.workspace.ignore import IgnoreMatcher
from monox.workspace.models import AnalysisResult, AnalysisStatistics
from monox.workspace.scanner import scan

log = structlog.get_logger("monox.analyzer")


class WorkspaceAnalyzer:
    """Runs the scan -> graph -> plan pipeline for one workspace root."""

    def __init__(
        self,
        workspace_root: Path,
        ignore_patterns: Iterable[str] = (),
        *,
        verbose: bool = False,
    ) -> None:
        self.workspace_root = Path(workspace_root)
        self.ignore = IgnoreMatcher(ignore_patterns)
        self.verbose = verbose

    def analyze(self) -> AnalysisResult:
        result, _ = self._analyze()
        return result

    def analyze_package(self, name: str) -> AnalysisResult:
        """Plan only what is needed to build *name* (its dependency closure)."""
        return self.analyze_packages([name])

    def analyze_packages(self, names: Sequence[str]) -> AnalysisResult:
        """Plan the union of the dependency closures of *names*.

        The result lists only the targets as packages but keeps the full
        cycle list. When a target sits in a cycle the stage list is empty.
        """
        start = time.monotonic()
        full, graph = self._analyze()

        targets = []
        for name in names:
            package = full.find(name)
            if package is None:
                raise PackageNotFoundError(name)
            targets.append(package)

        closure = dependency_closure(graph, names)
        target_in_cycle = any(name in cycle for cycle in full.cycles for name in names)

        if target_in_cycle:
            self._info("analyzer.target_in_cycle", targets=list(names))
            stages = []
        elif full.stages:
            stages = restrict_stages(full.stages, closure)
        else:
            stages = plan_stages(p for p in full.packages if p.name in closure)

        statistics = AnalysisStatistics(
            total_packages=len(targets),
            total_stages=len(stages),
            packages_with_workspace_deps=sum(1 for p in targets if p.has_workspace_dependencies()),
            circular_dependency_count=len(full.cycles),
            analysis_duration_ms=int((time.monotonic() - start) * 1000),
        )
        self._info("analyzer.closure_planned", targets=list(names), closure=len(closure))
        return AnalysisResult(
            packages=targets,
            stages=stages,
            cycles=full.cycles,
            self_dependencies=full.self_dependencies,
            statistics=statistics,
        )

    # ── internals ────────────────────────────────────────────────────────

    def _analyze(self) -> tuple[AnalysisResult, nx.DiGraph]:
        start = time.monotonic()
        self._info("analyzer.scanning", root=str(self.workspace_root))

        packages = scan(self.workspace_root, self.ignore, verbose=self.verbose)
        packages.sort(key=lambda p: p.name)
        graph, _ = build_graph(packages)

        cycles = detect_cycles(graph)
        loops = self_dependencies(graph)
        for name in loops:
            log.warning("analyzer.self_dependency", package=name)

        if cycles:
            for i, cycle in enumerate(cycles, 1):
                self._info("analyzer.cycle", index=i, members=" -> ".join(cycle))
            stages = []
        else:
            stages = plan_stages(packages)

        statistics = AnalysisStatistics(
            total_packages=len(packages),
            total_stages=len(stages),
            packages_with_workspace_deps=sum(1 for p in packages if p.has_workspace_dependencies()),
            circular_dependency_count=len(cycles),
            analysis_duration_ms=int((time.monotonic() - start) * 1000),
        )
        self._info(
            "analyzer.completed",
            packages=len(packages),
            stages=len(stages),
            cycles=len(cycles),
            duration_ms=statistics.analysis_duration_ms,
        )
        result = AnalysisResult(
            packages=packages,
            stages=stages,
            cycles=cycles,
            self_dependencies=loops,
            statistics=statistics,
        )
        return result, graph

    def _info(self, event: str, **kw: object) -> None:
        if self.verbose:
            log.info(event, **kw)
        else:
            log.debug(event, **kw)
