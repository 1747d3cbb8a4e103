"""monox.toml configuration: pydantic models, loader and runtime overrides."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, fields
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

from monox.exceptions import ConfigError, TaskNotFoundError

CONFIG_FILENAME = "monox.toml"

DEFAULT_IGNORE_PATTERNS = [".git", "dist", "*.log"]


def default_parallelism() -> int:
    """Host's logical parallelism, never below 1."""
    return os.cpu_count() or 1


class PackageManager(str, Enum):
    """Known package managers; the value is the binary name to invoke."""

    NPM = "npm"
    YARN = "yarn"
    PNPM = "pnpm"


class _Section(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)


class WorkspaceConfig(_Section):
    root: str = "."
    package_manager: PackageManager = PackageManager.PNPM
    ignore: list[str] = Field(default_factory=lambda: list(DEFAULT_IGNORE_PATTERNS))

    @field_validator("package_manager", mode="before")
    @classmethod
    def _lowercase_manager(cls, v: object) -> object:
        return v.lower() if isinstance(v, str) else v


class ExecutionConfig(_Section):
    max_concurrency: int = Field(default_factory=default_parallelism, ge=1)
    task_timeout: int = Field(default=300, ge=0)  # seconds, 0 = no timeout
    retry_count: int = Field(default=0, ge=0)
    continue_on_failure: bool = False


class OutputConfig(_Section):
    show_progress: bool = True
    verbose: bool = False
    colored: bool = True


class I18nConfig(_Section):
    language: str = "en_us"


class TaskDefinition(_Section):
    """A predefined named invocation for ``monox exec``.

    ``pkg_name == "*"`` targets the whole workspace; ``packages`` (when set)
    wins over ``pkg_name``. ``command`` is the script name to run.
    """

    name: str
    command: str
    pkg_name: str = ""
    packages: list[str] | None = None
    desc: str | None = None


@dataclass
class RuntimeOverrides:
    """Command-line values merged over the file configuration. ``None`` = not given."""

    verbose: bool | None = None
    colored: bool | None = None
    show_progress: bool | None = None
    max_concurrency: int | None = None
    task_timeout: int | None = None
    retry_count: int | None = None
    continue_on_failure: bool | None = None
    workspace_root: str | None = None
    language: str | None = None


# override field -> (section, key)
_OVERRIDE_TARGETS: dict[str, tuple[str, str]] = {
    "verbose": ("output", "verbose"),
    "colored": ("output", "colored"),
    "show_progress": ("output", "show_progress"),
    "max_concurrency": ("execution", "max_concurrency"),
    "task_timeout": ("execution", "task_timeout"),
    "retry_count": ("execution", "retry_count"),
    "continue_on_failure": ("execution", "continue_on_failure"),
    "workspace_root": ("workspace", "root"),
    "language": ("i18n", "language"),
}


class MonoxConfig(_Section):
    """Root configuration value. Immutable; ``merge`` returns a new instance."""

    workspace: WorkspaceConfig = Field(default_factory=WorkspaceConfig)
    tasks: list[TaskDefinition] = Field(default_factory=list)
    execution: ExecutionConfig = Field(default_factory=ExecutionConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    i18n: I18nConfig = Field(default_factory=I18nConfig)

    @property
    def workspace_root(self) -> Path:
        root = Path(self.workspace.root)
        if root == Path("."):
            return Path.cwd()
        return root.resolve()

    @property
    def task_timeout(self) -> float | None:
        """Per-task timeout in seconds, ``None`` when disabled."""
        timeout = self.execution.task_timeout
        return float(timeout) if timeout > 0 else None

    @property
    def package_manager(self) -> str:
        return self.workspace.package_manager.value

    def find_task(self, name: str) -> TaskDefinition:
        for task in self.tasks:
            if task.name == name:
                return task
        raise TaskNotFoundError(name)

    def merge(self, overrides: RuntimeOverrides) -> MonoxConfig:
        """Return a copy with every present override applied."""
        updates: dict[str, dict[str, object]] = {}
        for f in fields(overrides):
            value = getattr(overrides, f.name)
            if value is None:
                continue
            section, key = _OVERRIDE_TARGETS[f.name]
            updates.setdefault(section, {})[key] = value

        if not updates:
            return self

        data = self.model_dump()
        for section, values in updates.items():
            data[section].update(values)
        try:
            return MonoxConfig.model_validate(data)
        except ValidationError as exc:
            raise ConfigError(f"Invalid command-line override: {exc}") from exc


def load_config(path: Path | None = None) -> MonoxConfig:
    """Load *path* (default ``./monox.toml``); defaults when the file is absent."""
    config_path = path or Path(CONFIG_FILENAME)
    if not config_path.exists():
        return MonoxConfig()

    try:
        data = tomllib.loads(config_path.read_text(encoding="utf-8"))
    except (OSError, tomllib.TOMLDecodeError) as exc:
        raise ConfigError(f"Cannot read {config_path}: {exc}") from exc

    try:
        return MonoxConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration in {config_path}: {exc}") from exc


DEFAULT_CONFIG_TEMPLATE = """\
# MonoX configuration

[workspace]
# Workspace root directory
root = "."
# Package manager used to run scripts and query the registry: pnpm | yarn | npm
package_manager = "pnpm"
# Paths to skip while scanning (node_modules is always skipped)
ignore = [".git", "dist", "*.log"]

[execution]
# Maximum number of scripts running at the same time
max_concurrency = {max_concurrency}
# Per-task timeout in seconds (0 = no timeout)
task_timeout = 300
# Extra attempts for a failing script
retry_count = 0
# Keep going with later stages after a failure
continue_on_failure = false

[output]
show_progress = true
verbose = false
colored = true

[i18n]
language = "en_us"

[[tasks]]
name = "build"
pkg_name = "*"
desc = "Build all packages"
command = "build"

[[tasks]]
name = "test"
pkg_name = "*"
desc = "Run tests"
command = "test"

[[tasks]]
name = "lint"
pkg_name = "*"
desc = "Lint code"
command = "lint"
"""


def write_default_config(path: Path) -> None:
    """Write the default template to *path*."""
    path.write_text(
        DEFAULT_CONFIG_TEMPLATE.format(max_concurrency=default_parallelism()),
        encoding="utf-8",
    )
