"""Minimum-diff manifest edits.

Versions are rewritten by a textual replacement of ``"dep": "old"`` so the
rest of the file keeps its formatting.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import asdict, dataclass
from pathlib import Path

import structlog

from monox.exceptions import ManifestUnreadableError, ManifestWriteError

log = structlog.get_logger("monox.manifest")


@dataclass(frozen=True)
class ManifestEdit:
    package: str
    dependency: str
    old_version: str
    new_version: str
    dep_type: str

    def to_dict(self) -> dict:
        return asdict(self)


def replace_dependency_version(
    content: str, dependency: str, old_version: str, new_version: str
) -> tuple[str, bool]:
    """Replace the first ``"dependency": "old_version"`` in *content*.

    Returns ``(new_content, replaced)``.
    """
    pattern = re.compile(rf'"{re.escape(dependency)}"\s*:\s*"{re.escape(old_version)}"')
    replacement = f'"{dependency}": "{new_version}"'
    new_content, count = pattern.subn(lambda _: replacement, content, count=1)
    return new_content, count > 0


def apply_edits(
    edits: Iterable[ManifestEdit],
    manifests: Mapping[str, Path],
    *,
    verbose: bool = False,
) -> list[ManifestEdit]:
    """Apply *edits* to the manifests named in *manifests* (package -> path).

    Each file is read and written at most once, and only written when at
    least one replacement matched. Returns the edits that were applied.
    """
    by_package: dict[str, list[ManifestEdit]] = {}
    for edit in edits:
        by_package.setdefault(edit.package, []).append(edit)

    applied: list[ManifestEdit] = []
    for package, package_edits in sorted(by_package.items()):
        path = manifests.get(package)
        if path is None:
            log.warning("manifest.package_unknown", package=package)
            continue

        try:
            content = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise ManifestUnreadableError(path, str(exc)) from exc
        changed = []
        for edit in package_edits:
            content, replaced = replace_dependency_version(
                content, edit.dependency, edit.old_version, edit.new_version
            )
            if replaced:
                changed.append(edit)
            else:
                log.warning(
                    "manifest.spec_not_found",
                    package=package,
                    dependency=edit.dependency,
                    spec=edit.old_version,
                )

        if changed:
            try:
                path.write_text(content, encoding="utf-8")
            except OSError as exc:
                raise ManifestWriteError(path, str(exc)) from exc
            applied.extend(changed)
            if verbose:
                log.info("manifest.updated", package=package, edits=len(changed), path=str(path))

    return applied
