"""Test doubles for monox: run orchestrator flows without npm/pnpm.

Usage::

    from monox.testing import FakeRegistry, FakeScriptExecutor

    registry = FakeRegistry({"react": "18.3.1"})       # unknown names -> None
    executor = FakeScriptExecutor(fail={"web"})          # "web" exits 1
    orchestrator = WorkspaceOrchestrator(config, registry=registry, executor=executor)
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable, Mapping

from monox.exceptions import ScriptFailedError
from monox.executor import ScriptResult
from monox.workspace.models import Package


class FakeRegistry:
    """Answers latest-version queries from a fixed mapping.

    Parameters
    ----------
    versions:
        Dependency name -> latest version. Missing names answer ``None``.
    delay:
        Seconds to sleep before answering, to exercise concurrency.
    """

    def __init__(self, versions: Mapping[str, str] | None = None, *, delay: float = 0.0) -> None:
        self.versions = dict(versions or {})
        self.delay = delay
        self._calls: list[str] = []

    @property
    def calls(self) -> list[str]:
        """Names queried, in call order."""
        return self._calls

    async def latest_version(self, name: str) -> str | None:
        self._calls.append(name)
        if self.delay:
            await asyncio.sleep(self.delay)
        return self.versions.get(name)


class FakeScriptExecutor:
    """Pretends to run package scripts.

    Packages in *fail* exit with code 1; packages in *hang* sleep for
    *hang_for* seconds (use with a task timeout). Tracks the peak number of
    scripts running at once in ``max_running``.
    """

    def __init__(
        self,
        *,
        fail: Iterable[str] = (),
        hang: Iterable[str] = (),
        delay: float = 0.0,
        hang_for: float = 10.0,
    ) -> None:
        self.fail = set(fail)
        self.hang = set(hang)
        self.delay = delay
        self.hang_for = hang_for
        self.calls: list[tuple[str, str]] = []
        self.running = 0
        self.max_running = 0

    @property
    def packages_run(self) -> list[str]:
        return [name for name, _ in self.calls]

    async def run(self, package: Package, script: str) -> ScriptResult:
        self.calls.append((package.name, script))
        self.running += 1
        self.max_running = max(self.max_running, self.running)
        try:
            if package.name in self.hang:
                await asyncio.sleep(self.hang_for)
            elif self.delay:
                await asyncio.sleep(self.delay)
        finally:
            self.running -= 1

        if package.name in self.fail:
            raise ScriptFailedError(package.name, script, 1, "fake failure")
        return ScriptResult(
            package=package.name,
            script=script,
            exit_code=0,
            stdout=f"ran {script}",
            stderr="",
            duration=self.delay,
        )
