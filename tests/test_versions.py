"""Tests for version-spec helpers."""

from __future__ import annotations

import pytest

from monox.health.versions import (
    extract_version_from_spec,
    is_satisfied,
    preserve_version_format,
    recommended_version,
    should_skip_dependency,
)


class TestShouldSkip:
    @pytest.mark.parametrize(
        "spec",
        [
            "workspace:*",
            "workspace:^1.0.0",
            "file:../lib",
            "link:../lib",
            "git+https://github.com/a/b.git",
            "github:user/repo",
        ],
    )
    def test_local_specs_skipped(self, spec):
        assert should_skip_dependency(spec)

    @pytest.mark.parametrize("spec", ["^1.2.0", "~2.0.0", "1.0.0", "latest", ">=3 <4"])
    def test_registry_specs_kept(self, spec):
        assert not should_skip_dependency(spec)


class TestExtractVersion:
    @pytest.mark.parametrize(
        "spec, expected",
        [
            ("^1.2.0", "1.2.0"),
            ("~1.2.0", "1.2.0"),
            (">=1.2.0", "1.2.0"),
            ("<=1.2.0", "1.2.0"),
            (">1.2.0", "1.2.0"),
            ("<1.2.0", "1.2.0"),
            ("=1.2.0", "1.2.0"),
            ("1.2.0", "1.2.0"),
        ],
    )
    def test_strips_prefix(self, spec, expected):
        assert extract_version_from_spec(spec) == expected

    def test_idempotent_on_bare_versions(self):
        bare = extract_version_from_spec("^4.17.21")
        assert extract_version_from_spec(bare) == bare

    def test_strips_exactly_one_operator(self):
        assert extract_version_from_spec(">==1.0.0") == "=1.0.0"


def test_is_satisfied_is_equality():
    assert is_satisfied("1.0.0", "1.0.0")
    assert not is_satisfied("1.0.0", "1.0.1")


class TestRecommendedVersion:
    def test_lexicographic_max(self):
        assert recommended_version(["1.2.0", "1.3.0"]) == "1.3.0"

    def test_lexicographic_not_semantic(self):
        assert recommended_version(["10.0.0", "9.0.0"]) == "9.0.0"

    def test_empty(self):
        assert recommended_version([]) == "unknown"


@pytest.mark.parametrize(
    "original, expected",
    [
        ("^1.0.0", "^2.0.0"),
        ("~1.0.0", "~2.0.0"),
        (">=1.0.0", ">=2.0.0"),
        ("<=1.0.0", "<=2.0.0"),
        (">1.0.0", ">2.0.0"),
        ("<1.0.0", "<2.0.0"),
        ("=1.0.0", "=2.0.0"),
        ("1.0.0", "2.0.0"),
    ],
)
def test_preserve_version_format(original, expected):
    assert preserve_version_format(original, "2.0.0") == expected
