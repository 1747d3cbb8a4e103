"""Manifest editing and edit planning."""

from monox.manifest.editor import ManifestEdit, apply_edits, replace_dependency_version
from monox.manifest.planner import (
    plan_conflict_fixes,
    plan_dependency_update,
    plan_updates_from_outdated,
)

__all__ = [
    "ManifestEdit",
    "apply_edits",
    "plan_conflict_fixes",
    "plan_dependency_update",
    "plan_updates_from_outdated",
    "replace_dependency_version",
]
