"""Plan manifest edits for conflict fixes and dependency updates."""

from __future__ import annotations

from collections.abc import Iterable

from monox.health.models import OutdatedDependency, VersionConflict
from monox.health.versions import (
    extract_version_from_spec,
    preserve_version_format,
    should_skip_dependency,
)
from monox.manifest.editor import ManifestEdit
from monox.workspace.models import Package


def plan_conflict_fixes(conflicts: Iterable[VersionConflict]) -> list[ManifestEdit]:
    """Move every usage off its version onto the conflict's recommended one."""
    edits = []
    for conflict in conflicts:
        target = conflict.recommended_version
        for usage in conflict.conflicts:
            if usage.resolved_version == target:
                continue
            edits.append(
                ManifestEdit(
                    package=usage.package,
                    dependency=conflict.name,
                    old_version=usage.version_spec,
                    new_version=preserve_version_format(usage.version_spec, target),
                    dep_type=usage.dep_type,
                )
            )
    return edits


def plan_updates_from_outdated(outdated: Iterable[OutdatedDependency]) -> list[ManifestEdit]:
    edits = []
    for record in outdated:
        spec = record.version_spec or record.current
        new_spec = preserve_version_format(spec, record.latest)
        if new_spec == spec:
            continue
        edits.append(
            ManifestEdit(
                package=record.package,
                dependency=record.name,
                old_version=spec,
                new_version=new_spec,
                dep_type=record.dep_type,
            )
        )
    return edits


def plan_dependency_update(
    packages: Iterable[Package], dependency: str, version: str
) -> list[ManifestEdit]:
    """Edits moving *dependency* to *version* in every manifest that declares it."""
    edits = []
    for package in packages:
        for name, spec, kind in package.iter_dependencies():
            if name != dependency or should_skip_dependency(spec):
                continue
            if extract_version_from_spec(spec) == version:
                continue
            edits.append(
                ManifestEdit(
                    package=package.name,
                    dependency=dependency,
                    old_version=spec,
                    new_version=preserve_version_format(spec, version),
                    dep_type=kind.value,
                )
            )
    return edits
