"""Timed subprocess execution with a hard timeout.

Runs a shell command in its own process group, captures its output and
wall-clock duration, and kills the whole group when the timeout is hit
so that build tools which fork workers do not linger.
"""

from __future__ import annotations

import logging
import os
import signal
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path

from stackduel.errors import BuildTimeout

log = logging.getLogger("stackduel")


@dataclass
class TimedResult:
    """Result of a timed subprocess execution."""

    wall_time_s: float
    exit_code: int
    stdout: str
    stderr: str

    @property
    def wall_time_ms(self) -> float:
        return self.wall_time_s * 1000.0


def run_timed(
    command: str,
    *,
    cwd: str | Path | None = None,
    env: dict[str, str] | None = None,
    timeout: float = 120.0,
) -> TimedResult:
    """Execute a shell command and capture its output and duration.

    Args:
        command: Shell command string.
        cwd: Working directory for the subprocess.
        env: Variables layered over the inherited environment.
        timeout: Maximum execution time in seconds.

    Returns:
        TimedResult with the exit code and captured output.

    Raises:
        BuildTimeout: If the command is still running after *timeout*
            seconds. The process group has been killed by then and the
            exception carries whatever output was captured.
        OSError: If the command could not be started at all.
    """
    run_env = dict(os.environ)
    if env:
        run_env.update(env)

    wall_start = time.monotonic()
    proc = subprocess.Popen(
        command,
        shell=True,
        cwd=str(cwd) if cwd else None,
        env=run_env,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
        errors="replace",
        start_new_session=True,
    )
    try:
        stdout, stderr = proc.communicate(timeout=timeout)
    except subprocess.TimeoutExpired:
        _kill_process_group(proc.pid)
        try:
            stdout, stderr = proc.communicate(timeout=5)
        except subprocess.TimeoutExpired:
            proc.kill()
            stdout, stderr = proc.communicate()
        elapsed = time.monotonic() - wall_start
        log.debug("Command timed out after %.1fs: %s", elapsed, command)
        raise BuildTimeout(
            command,
            timeout,
            elapsed_s=elapsed,
            stdout=stdout or "",
            stderr=stderr or "",
        ) from None

    return TimedResult(
        wall_time_s=time.monotonic() - wall_start,
        exit_code=proc.returncode,
        stdout=stdout or "",
        stderr=stderr or "",
    )


def _kill_process_group(pid: int) -> None:
    """Attempt to kill the entire process group on timeout."""
    try:
        os.killpg(os.getpgid(pid), signal.SIGKILL)
    except (ProcessLookupError, PermissionError, OSError):
        pass
