"""Workspace health: version conflicts, outdated dependencies, registry lookups."""

from monox.health.checker import HealthChecker
from monox.health.models import (
    ConflictUsage,
    DependencyUsage,
    OutdatedDependency,
    OutdatedReport,
    VersionConflict,
)
from monox.health.registry import PackageManagerRegistry, RegistryClient

__all__ = [
    "ConflictUsage",
    "DependencyUsage",
    "HealthChecker",
    "OutdatedDependency",
    "OutdatedReport",
    "PackageManagerRegistry",
    "RegistryClient",
    "VersionConflict",
]
