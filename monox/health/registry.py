"""Registry latest-version lookups."""

from __future__ import annotations

import json
from typing import Protocol

import structlog

from monox.process import run_command

log = structlog.get_logger("monox.registry")


class RegistryClient(Protocol):
    async def latest_version(self, name: str) -> str | None:
        """Latest published version of *name*, ``None`` when it cannot be determined."""
        ...


class PackageManagerRegistry:
    """Asks the package-manager CLI: ``<pm> view <name> version --json``."""

    def __init__(self, package_manager: str = "npm") -> None:
        self.package_manager = package_manager

    async def latest_version(self, name: str) -> str | None:
        cmd = [self.package_manager, "view", name, "version", "--json"]
        try:
            output = await run_command(cmd)
        except OSError as exc:
            log.debug("registry.lookup_failed", dependency=name, error=str(exc))
            return None

        if not output.ok:
            log.debug("registry.lookup_failed", dependency=name, exit_code=output.exit_code)
            return None
        return parse_view_output(output.stdout)


def parse_view_output(stdout: str) -> str | None:
    """Extract a version from ``view ... --json`` output.

    Accepts a JSON string, a JSON object with a ``version`` key, or falls
    back to the quote-stripped text.
    """
    text = stdout.strip()
    if not text:
        return None
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        data = None

    if isinstance(data, str):
        return data or None
    if isinstance(data, dict) and isinstance(data.get("version"), str):
        return data["version"]
    return text.strip('"') or None
