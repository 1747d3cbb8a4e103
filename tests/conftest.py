"""Shared pytest fixtures for MonoX tests."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from monox.core.config import MonoxConfig


def manifest(
    name: str,
    *,
    version: str = "1.0.0",
    deps: dict[str, str] | None = None,
    dev: dict[str, str] | None = None,
    peer: dict[str, str] | None = None,
    scripts: dict[str, str] | None = None,
) -> dict:
    data: dict = {"name": name, "version": version}
    if deps:
        data["dependencies"] = deps
    if dev:
        data["devDependencies"] = dev
    if peer:
        data["peerDependencies"] = peer
    if scripts:
        data["scripts"] = scripts
    return data


@pytest.fixture
def make_workspace(tmp_path):
    """Factory: ``make_workspace({"packages/a": {...manifest...}})`` -> root path.

    Values may be dicts (dumped as JSON) or raw strings written as-is. The
    root gets its own ``package.json`` which is never a package.
    """

    def _make(packages: dict[str, dict | str], root_name: str = "ws") -> Path:
        root = tmp_path / root_name
        root.mkdir()
        (root / "package.json").write_text(json.dumps({"name": "root", "private": True}))
        for folder, content in packages.items():
            d = root / folder
            d.mkdir(parents=True, exist_ok=True)
            text = content if isinstance(content, str) else json.dumps(content, indent=2)
            (d / "package.json").write_text(text)
        return root

    return _make


@pytest.fixture
def make_config():
    """Factory for a MonoxConfig rooted at a workspace."""

    def _make(root: Path, **execution) -> MonoxConfig:
        return MonoxConfig.model_validate(
            {
                "workspace": {"root": str(root)},
                "execution": {"max_concurrency": 4, **execution},
            }
        )

    return _make


@pytest.fixture
def chain_workspace(make_workspace):
    """a <- b <- c, all with a build script."""
    build = {"build": "tsc"}
    return make_workspace(
        {
            "packages/a": manifest("a", scripts=build),
            "packages/b": manifest("b", deps={"a": "workspace:*"}, scripts=build),
            "packages/c": manifest("c", deps={"b": "workspace:*"}, scripts=build),
        }
    )
