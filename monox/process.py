"""Child-process helper: run a command, capture its output, kill it if abandoned."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from pathlib import Path

import structlog

log = structlog.get_logger("monox.process")


@dataclass(frozen=True)
class CommandOutput:
    exit_code: int
    stdout: str
    stderr: str
    duration: float

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


async def run_command(cmd: list[str], cwd: Path | None = None) -> CommandOutput:
    """Run *cmd* in *cwd* with stdout/stderr captured.

    Raises ``OSError`` when the binary cannot be started. If the awaiting
    task is cancelled (for example by a timeout) the child is killed before
    the cancellation propagates.
    """
    start = time.monotonic()
    proc = await asyncio.create_subprocess_exec(
        *cmd,
        cwd=str(cwd) if cwd is not None else None,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    try:
        stdout, stderr = await proc.communicate()
    except asyncio.CancelledError:
        if proc.returncode is None:
            proc.kill()
            log.debug("process.killed", cmd=cmd, pid=proc.pid)
        raise

    return CommandOutput(
        exit_code=proc.returncode if proc.returncode is not None else -1,
        stdout=stdout.decode(errors="replace"),
        stderr=stderr.decode(errors="replace"),
        duration=round(time.monotonic() - start, 3),
    )
