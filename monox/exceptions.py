"""Custom exceptions for MonoX."""

from __future__ import annotations

from pathlib import Path


class MonoxError(Exception):
    """Base exception for all MonoX errors."""


class ConfigError(MonoxError):
    """Raised when monox.toml cannot be parsed or holds invalid values."""


class WorkspaceNotFoundError(MonoxError):
    """Raised when the workspace root does not exist."""

    def __init__(self, root: Path):
        self.root = root
        super().__init__(f"Workspace root does not exist: {root}")


class WorkspaceEmptyError(MonoxError):
    """Raised when no package manifest is found below the workspace root."""

    def __init__(self, root: Path):
        self.root = root
        super().__init__(f"No package.json found below workspace root: {root}")


class ManifestError(MonoxError):
    """Base class for per-manifest problems. Never fatal during a scan."""

    def __init__(self, path: Path, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"{path}: {reason}")


class ManifestUnreadableError(ManifestError):
    """Raised when a manifest cannot be read from disk."""


class ManifestUnparseableError(ManifestError):
    """Raised when a manifest is not a JSON object."""


class ManifestWriteError(ManifestError):
    """Raised when an edited manifest cannot be written back."""


class CycleDetectedError(MonoxError):
    """Raised when a flow needs a stage plan but the workspace graph has cycles."""

    def __init__(self, cycles: list[list[str]]):
        self.cycles = cycles
        rendered = "; ".join(" -> ".join(cycle) for cycle in cycles)
        super().__init__(f"Circular dependencies detected: {rendered}")


class PackageNotFoundError(MonoxError):
    """Raised when a named package is not part of the workspace."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Package '{name}' not found in workspace")


class ScriptMissingError(MonoxError):
    """Raised when a specifically-named package lacks the requested script."""

    def __init__(self, package: str, script: str):
        self.package = package
        self.script = script
        super().__init__(f"Package '{package}' has no script '{script}'")


class TaskNotFoundError(MonoxError):
    """Raised when a predefined task is not declared in the configuration."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Task '{name}' is not defined in the configuration")


class ScriptFailedError(MonoxError):
    """Raised inside a run-script unit of work when the child exits non-zero."""

    def __init__(self, package: str, script: str, exit_code: int, stderr: str = ""):
        self.package = package
        self.script = script
        self.exit_code = exit_code
        self.stderr = stderr
        message = f"'{script}' failed in {package} (exit {exit_code})"
        tail = stderr.strip().splitlines()[-1:] if stderr else []
        if tail:
            message += f": {tail[0]}"
        super().__init__(message)
