"""Tests for monox.toml loading and runtime overrides."""

from __future__ import annotations

import pytest

from monox.core.config import (
    MonoxConfig,
    PackageManager,
    RuntimeOverrides,
    load_config,
    write_default_config,
)
from monox.exceptions import ConfigError, TaskNotFoundError


class TestLoadConfig:
    def test_missing_file_gives_defaults(self, tmp_path):
        config = load_config(tmp_path / "monox.toml")
        assert config.workspace.package_manager is PackageManager.PNPM
        assert config.workspace.ignore == [".git", "dist", "*.log"]
        assert config.execution.task_timeout == 300
        assert config.execution.retry_count == 0
        assert config.execution.continue_on_failure is False
        assert config.execution.max_concurrency >= 1
        assert config.i18n.language == "en_us"

    def test_file_values(self, tmp_path):
        path = tmp_path / "monox.toml"
        path.write_text(
            '[workspace]\npackage_manager = "Yarn"\nignore = ["tmp"]\n'
            "[execution]\nmax_concurrency = 3\ntask_timeout = 0\n"
            '[future]\nunknown = "ignored"\n'
        )
        config = load_config(path)
        assert config.package_manager == "yarn"
        assert config.workspace.ignore == ["tmp"]
        assert config.execution.max_concurrency == 3
        assert config.task_timeout is None

    def test_invalid_toml(self, tmp_path):
        path = tmp_path / "monox.toml"
        path.write_text("[workspace\n")
        with pytest.raises(ConfigError):
            load_config(path)

    def test_invalid_value(self, tmp_path):
        path = tmp_path / "monox.toml"
        path.write_text("[execution]\nmax_concurrency = 0\n")
        with pytest.raises(ConfigError):
            load_config(path)

    def test_unknown_package_manager(self, tmp_path):
        path = tmp_path / "monox.toml"
        path.write_text('[workspace]\npackage_manager = "bun"\n')
        with pytest.raises(ConfigError):
            load_config(path)

    def test_default_template_round_trips(self, tmp_path):
        path = tmp_path / "monox.toml"
        write_default_config(path)
        config = load_config(path)
        assert [t.name for t in config.tasks] == ["build", "test", "lint"]
        assert config.find_task("build").pkg_name == "*"


class TestMerge:
    def test_present_overrides_win(self):
        config = MonoxConfig().merge(
            RuntimeOverrides(verbose=True, max_concurrency=7, task_timeout=5, workspace_root="/tmp/ws")
        )
        assert config.output.verbose is True
        assert config.execution.max_concurrency == 7
        assert config.task_timeout == 5.0
        assert config.workspace.root == "/tmp/ws"

    def test_absent_overrides_keep_file_values(self):
        base = MonoxConfig.model_validate({"execution": {"retry_count": 2}})
        merged = base.merge(RuntimeOverrides(continue_on_failure=True))
        assert merged.execution.retry_count == 2
        assert merged.execution.continue_on_failure is True
        assert base.execution.continue_on_failure is False

    def test_invalid_override(self):
        with pytest.raises(ConfigError):
            MonoxConfig().merge(RuntimeOverrides(max_concurrency=0))


class TestTasks:
    def test_find_task(self):
        config = MonoxConfig.model_validate(
            {"tasks": [{"name": "ci", "command": "test", "packages": ["a", "b"]}]}
        )
        assert config.find_task("ci").packages == ["a", "b"]

    def test_unknown_task(self):
        with pytest.raises(TaskNotFoundError):
            MonoxConfig().find_task("deploy")
