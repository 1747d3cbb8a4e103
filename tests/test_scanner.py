"""Tests for the manifest scanner."""

from __future__ import annotations

import json

import pytest

from monox.exceptions import ManifestUnparseableError, WorkspaceEmptyError, WorkspaceNotFoundError
from monox.workspace.ignore import IgnoreMatcher
from monox.workspace.models import DependencyKind
from monox.workspace.scanner import parse_manifest, scan

from conftest import manifest


class TestScan:
    def test_finds_packages_and_skips_root(self, make_workspace):
        root = make_workspace(
            {
                "packages/a": manifest("a"),
                "apps/web": manifest("web", deps={"a": "workspace:*"}),
            }
        )
        packages = scan(root)
        assert sorted(p.name for p in packages) == ["a", "web"]

    def test_folder_is_relative_to_root(self, make_workspace):
        root = make_workspace({"packages/a": manifest("a")})
        [package] = scan(root)
        assert package.folder.as_posix() == "packages/a"
        assert package.path == (root / "packages" / "a").resolve()

    def test_node_modules_pruned(self, make_workspace):
        root = make_workspace(
            {
                "packages/a": manifest("a"),
                "packages/a/node_modules/left-pad": manifest("left-pad"),
            }
        )
        assert [p.name for p in scan(root)] == ["a"]

    def test_user_patterns_pruned(self, make_workspace):
        root = make_workspace(
            {
                "packages/a": manifest("a"),
                "examples/demo": manifest("demo"),
            }
        )
        assert [p.name for p in scan(root, IgnoreMatcher(["examples"]))] == ["a"]

    def test_malformed_manifest_skipped(self, make_workspace):
        root = make_workspace(
            {
                "packages/a": manifest("a"),
                "packages/broken": "{ not json",
            }
        )
        assert [p.name for p in scan(root)] == ["a"]

    def test_symlinked_directories_not_followed(self, make_workspace, tmp_path):
        root = make_workspace({"packages/a": manifest("a")})
        outside = tmp_path / "outside" / "linked"
        outside.mkdir(parents=True)
        (outside / "package.json").write_text(json.dumps(manifest("linked")))
        try:
            (root / "packages" / "linked").symlink_to(outside, target_is_directory=True)
        except OSError:
            pytest.skip("symlinks not supported here")

        assert [p.name for p in scan(root)] == ["a"]

    def test_missing_root(self, tmp_path):
        with pytest.raises(WorkspaceNotFoundError):
            scan(tmp_path / "nope")

    def test_empty_workspace(self, make_workspace):
        root = make_workspace({})
        with pytest.raises(WorkspaceEmptyError):
            scan(root)

    def test_duplicate_name_keeps_last_seen(self, make_workspace):
        root = make_workspace(
            {
                "a1": manifest("dup", version="1.0.0"),
                "a2": manifest("dup", version="2.0.0"),
            }
        )
        [package] = scan(root)
        assert package.version == "2.0.0"


class TestParseManifest:
    def test_fallbacks(self, make_workspace):
        root = make_workspace({"packages/nameless": "{}"})
        package = parse_manifest(root / "packages/nameless/package.json", root)
        assert package.name == "nameless"
        assert package.version == "0.0.0"
        assert package.dependencies == {}

    def test_dependency_kinds(self, make_workspace):
        root = make_workspace(
            {
                "p": manifest(
                    "p",
                    deps={"left": "^1.0.0"},
                    dev={"jest": "^29.0.0"},
                    peer={"react": ">=18"},
                    scripts={"build": "tsc"},
                )
            }
        )
        package = parse_manifest(root / "p/package.json", root)
        assert package.declared[DependencyKind.RUNTIME] == {"left": "^1.0.0"}
        assert package.declared[DependencyKind.DEVELOPMENT] == {"jest": "^29.0.0"}
        assert package.declared[DependencyKind.PEER] == {"react": ">=18"}
        assert package.has_script("build")
        assert set(package.dependencies) == {"left", "jest", "react"}

    def test_non_string_values_dropped(self, make_workspace):
        root = make_workspace({"p": {"name": "p", "dependencies": {"x": 1, "y": "^1"}}})
        package = parse_manifest(root / "p/package.json", root)
        assert package.dependencies == {"y": "^1"}

    def test_array_manifest_rejected(self, make_workspace):
        root = make_workspace({"p": "[]"})
        with pytest.raises(ManifestUnparseableError):
            parse_manifest(root / "p/package.json", root)
