"""Data models for workspace analysis."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


class DependencyKind(str, Enum):
    """Manifest section a dependency is declared in; the value is the JSON key."""

    RUNTIME = "dependencies"
    DEVELOPMENT = "devDependencies"
    PEER = "peerDependencies"


@dataclass
class Package:
    """A package manifest found below the workspace root."""

    name: str
    version: str
    folder: Path  # relative to the workspace root
    path: Path  # absolute directory
    declared: dict[DependencyKind, dict[str, str]] = field(default_factory=dict)
    scripts: dict[str, str] = field(default_factory=dict)
    workspace_dependencies: set[str] = field(default_factory=set)

    @property
    def manifest_path(self) -> Path:
        return self.path / "package.json"

    @property
    def dependencies(self) -> dict[str, str]:
        """All dependency kinds merged; peer wins over dev wins over runtime."""
        merged: dict[str, str] = {}
        for kind in DependencyKind:
            merged.update(self.declared.get(kind, {}))
        return merged

    def iter_dependencies(self) -> Iterator[tuple[str, str, DependencyKind]]:
        """Yield ``(name, spec, kind)`` for every declared dependency."""
        for kind in DependencyKind:
            for name, spec in self.declared.get(kind, {}).items():
                yield name, spec, kind

    def has_script(self, script: str) -> bool:
        return script in self.scripts

    def has_workspace_dependencies(self) -> bool:
        return bool(self.workspace_dependencies)


@dataclass
class AnalysisStatistics:
    total_packages: int = 0
    total_stages: int = 0
    packages_with_workspace_deps: int = 0
    circular_dependency_count: int = 0
    analysis_duration_ms: int = 0


@dataclass
class AnalysisResult:
    """Scan + graph + plan output.

    ``stages`` is empty whenever ``cycles`` is not.
    """

    packages: list[Package]
    stages: list[list[Package]]
    cycles: list[list[str]]
    self_dependencies: list[str] = field(default_factory=list)
    statistics: AnalysisStatistics = field(default_factory=AnalysisStatistics)

    def find(self, name: str) -> Package | None:
        for package in self.packages:
            if package.name == name:
                return package
        return None

    def to_dict(self) -> dict:
        return {
            "packages": [package_to_dict(p) for p in self.packages],
            "stages": [[p.name for p in stage] for stage in self.stages],
            "circular_dependencies": self.cycles,
            "self_dependencies": self.self_dependencies,
            "statistics": {
                "total_packages": self.statistics.total_packages,
                "total_stages": self.statistics.total_stages,
                "packages_with_workspace_deps": self.statistics.packages_with_workspace_deps,
                "circular_dependency_count": self.statistics.circular_dependency_count,
                "analysis_duration_ms": self.statistics.analysis_duration_ms,
            },
        }


def package_to_dict(package: Package) -> dict:
    return {
        "name": package.name,
        "version": package.version,
        "folder": package.folder.as_posix(),
        "dependencies": package.dependencies,
        "workspace_dependencies": sorted(package.workspace_dependencies),
        "scripts": package.scripts,
    }
