"""Records produced by the health checks."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field


@dataclass
class DependencyUsage:
    """One dependency name with every package that declares it.

    ``version_spec`` is the spec seen first (packages are visited by name);
    ``used_by`` keeps each package's own spec.
    """

    name: str
    version_spec: str
    used_by: list[tuple[str, str, str]] = field(default_factory=list)  # (package, kind, spec)


@dataclass(frozen=True)
class OutdatedDependency:
    name: str
    current: str
    latest: str
    package: str
    dep_type: str
    version_spec: str = ""  # spec as written in this package, used when planning edits

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class ConflictUsage:
    package: str
    version_spec: str
    resolved_version: str
    dep_type: str


@dataclass
class VersionConflict:
    name: str
    conflicts: list[ConflictUsage]
    recommended_version: str

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "conflicts": [asdict(u) for u in self.conflicts],
            "recommended_version": self.recommended_version,
        }


@dataclass
class OutdatedReport:
    outdated: list[OutdatedDependency]
    total_examined: int

    @property
    def unique_outdated_count(self) -> int:
        return len({o.name for o in self.outdated})

    def to_dict(self) -> dict:
        return {
            "outdated": [o.to_dict() for o in self.outdated],
            "total_examined": self.total_examined,
            "unique_outdated": self.unique_outdated_count,
        }
