"""Run-script unit of work: ``<package-manager> run <script>`` in a package folder."""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from monox.exceptions import ScriptFailedError
from monox.process import run_command
from monox.workspace.models import Package

log = structlog.get_logger("monox.executor")


@dataclass(frozen=True)
class ScriptResult:
    package: str
    script: str
    exit_code: int
    stdout: str
    stderr: str
    duration: float
    attempts: int = 1


class ScriptExecutor:
    """Launches package scripts through the configured package manager.

    A failing script is relaunched up to ``retry_count`` extra times. The
    last failure is raised as :class:`ScriptFailedError`.
    """

    def __init__(self, package_manager: str = "pnpm", retry_count: int = 0) -> None:
        self.package_manager = package_manager
        self.retry_count = max(0, retry_count)

    def command_for(self, script: str) -> list[str]:
        return [self.package_manager, "run", script]

    async def run(self, package: Package, script: str) -> ScriptResult:
        cmd = self.command_for(script)
        attempts = self.retry_count + 1

        for attempt in range(1, attempts + 1):
            try:
                output = await run_command(cmd, cwd=package.path)
            except OSError as exc:
                # The binary itself is missing; retrying cannot help.
                raise ScriptFailedError(package.name, script, -1, str(exc)) from exc

            if output.ok:
                return ScriptResult(
                    package=package.name,
                    script=script,
                    exit_code=output.exit_code,
                    stdout=output.stdout,
                    stderr=output.stderr,
                    duration=output.duration,
                    attempts=attempt,
                )

            if attempt < attempts:
                log.info(
                    "executor.retrying",
                    package=package.name,
                    script=script,
                    exit_code=output.exit_code,
                    attempt=attempt,
                )

        raise ScriptFailedError(package.name, script, output.exit_code, output.stderr)
