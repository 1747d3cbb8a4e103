"""Ignore rules applied while walking the workspace."""

from __future__ import annotations

from collections.abc import Iterable
from fnmatch import fnmatchcase

ALWAYS_IGNORED = "node_modules"


class IgnoreMatcher:
    """Decide whether a path (relative to the workspace's parent) is skipped.

    A user pattern matches when the glob matches the whole path, when the
    path starts with the pattern, or when the path contains the pattern.
    The last two let bare directory names such as ``dist`` work as patterns.
    """

    def __init__(self, patterns: Iterable[str] = ()) -> None:
        self.patterns = [p for p in patterns if p]

    def __call__(self, relative_path: str) -> bool:
        return self.should_ignore(relative_path)

    def should_ignore(self, relative_path: str) -> bool:
        path = relative_path.replace("\\", "/")
        if ALWAYS_IGNORED in path:
            return True
        for pattern in self.patterns:
            if fnmatchcase(path, pattern):
                return True
            if path.startswith(pattern):
                return True
            if pattern in path:
                return True
        return False
