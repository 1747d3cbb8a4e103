"""Walk the workspace and parse every package.json."""

from __future__ import annotations

import json
import os
from collections.abc import Callable
from pathlib import Path

import structlog

from monox.exceptions import (
    ManifestError,
    ManifestUnparseableError,
    ManifestUnreadableError,
    WorkspaceEmptyError,
    WorkspaceNotFoundError,
)
from monox.workspace.ignore import IgnoreMatcher
from monox.workspace.models import DependencyKind, Package

log = structlog.get_logger("monox.scanner")

MANIFEST_FILENAME = "package.json"

IgnorePredicate = Callable[[str], bool]


def scan(
    workspace_root: Path,
    ignore: IgnorePredicate | None = None,
    *,
    verbose: bool = False,
) -> list[Package]:
    """Return one :class:`Package` per manifest below *workspace_root*.

    The manifest sitting directly in the root is not a package. Ignored
    directories are pruned without descending; symlinked directories are
    not followed. Unreadable or malformed manifests are skipped.

    Raises :class:`WorkspaceNotFoundError` when the root is missing and
    :class:`WorkspaceEmptyError` when no package manifest is found.
    """
    root = Path(workspace_root).resolve()
    if not root.is_dir():
        raise WorkspaceNotFoundError(root)

    should_ignore = ignore if ignore is not None else IgnoreMatcher()
    base = root.parent
    by_name: dict[str, Package] = {}

    for dirpath, dirnames, filenames in os.walk(root, followlinks=False):
        current = Path(dirpath)

        kept = []
        for dirname in sorted(dirnames):
            rel = _relative(current / dirname, base)
            if should_ignore(rel):
                _report("scanner.path_ignored", verbose, path=rel)
                continue
            kept.append(dirname)
        dirnames[:] = kept

        if MANIFEST_FILENAME not in filenames:
            continue
        manifest = current / MANIFEST_FILENAME
        if should_ignore(_relative(manifest, base)):
            continue
        if current == root:
            _report("scanner.root_manifest_skipped", verbose, path=str(manifest))
            continue

        try:
            package = parse_manifest(manifest, root)
        except ManifestError as exc:
            _report("scanner.manifest_skipped", verbose, path=str(exc.path), reason=exc.reason)
            continue

        previous = by_name.get(package.name)
        if previous is not None:
            log.warning(
                "scanner.duplicate_package",
                name=package.name,
                kept=package.folder.as_posix(),
                dropped=previous.folder.as_posix(),
            )
        by_name[package.name] = package

    if not by_name:
        raise WorkspaceEmptyError(root)

    _report("scanner.completed", verbose, root=str(root), packages=len(by_name))
    return list(by_name.values())


def parse_manifest(manifest_path: Path, workspace_root: Path) -> Package:
    """Parse a single package.json into a :class:`Package`.

    Missing ``name`` falls back to the directory name, missing ``version``
    to ``"0.0.0"``. Non-string map values are dropped.
    """
    try:
        content = manifest_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ManifestUnreadableError(manifest_path, str(exc)) from exc

    try:
        data = json.loads(content)
    except json.JSONDecodeError as exc:
        raise ManifestUnparseableError(manifest_path, f"invalid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ManifestUnparseableError(manifest_path, "top-level value is not an object")

    package_dir = manifest_path.parent
    name = data.get("name")
    version = data.get("version")

    return Package(
        name=name if isinstance(name, str) and name else package_dir.name,
        version=version if isinstance(version, str) and version else "0.0.0",
        folder=package_dir.relative_to(workspace_root),
        path=package_dir,
        declared={kind: _string_map(data.get(kind.value)) for kind in DependencyKind},
        scripts=_string_map(data.get("scripts")),
    )


def _string_map(value: object) -> dict[str, str]:
    if not isinstance(value, dict):
        return {}
    return {str(k): v for k, v in value.items() if isinstance(v, str)}


def _relative(path: Path, base: Path) -> str:
    try:
        return path.relative_to(base).as_posix()
    except ValueError:
        return path.as_posix()


def _report(event: str, verbose: bool, **kw: object) -> None:
    if verbose:
        log.info(event, **kw)
    else:
        log.debug(event, **kw)
