"""Version-spec helpers shared by the health checks and the manifest planners."""

from __future__ import annotations

LOCAL_SPEC_PREFIXES = ("workspace:", "file:", "link:")
LOCAL_SPEC_MARKERS = ("git+", "github:")

# Longest first so ">=" wins over ">".
RANGE_PREFIXES = (">=", "<=", "^", "~", ">", "<", "=")


def should_skip_dependency(version_spec: str) -> bool:
    """True for specs resolved locally rather than from the registry."""
    return version_spec.startswith(LOCAL_SPEC_PREFIXES) or any(
        marker in version_spec for marker in LOCAL_SPEC_MARKERS
    )


def range_prefix(version_spec: str) -> str:
    """The leading range operator of *version_spec*, or ``""``."""
    for prefix in RANGE_PREFIXES:
        if version_spec.startswith(prefix):
            return prefix
    return ""


def extract_version_from_spec(version_spec: str) -> str:
    """Strip one leading range operator: ``"^1.2.0"`` -> ``"1.2.0"``."""
    return version_spec[len(range_prefix(version_spec)):]


def is_satisfied(current: str, latest: str) -> bool:
    """Whether *current* already satisfies *latest*. Literal equality only."""
    return current == latest


def recommended_version(versions: list[str]) -> str:
    """Pick the version to unify on: lexicographic maximum, ``"unknown"`` if none.

    Note that ``"9.0.0"`` sorts above ``"10.0.0"``.
    """
    return max(versions, default="unknown")


def preserve_version_format(original_spec: str, new_version: str) -> str:
    """Apply *original_spec*'s range operator to *new_version*."""
    return f"{range_prefix(original_spec)}{new_version}"
