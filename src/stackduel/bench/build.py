"""Build analysis for one target.

Runs the target's production build with a hard timeout, then inspects
the artifact directory it produced: total size and number of script and
stylesheet files. Build-log severity is approximated by counting the
words "warning" and "error" in the output; this is a coarse heuristic,
not a log parser.
"""

from __future__ import annotations

import fnmatch
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Sequence

from stackduel.bench.config import DEFAULT_ARTIFACT_GLOBS, TargetDef
from stackduel.bench.results import BuildResult
from stackduel.bench.timing import run_timed
from stackduel.errors import BuildTimeout

log = logging.getLogger("stackduel")


@dataclass(frozen=True)
class BuildSpec:
    """What to build for one target and where its artifacts land."""

    name: str
    command: str
    workdir: Path
    artifact_dir: str = "dist"
    artifact_globs: tuple[str, ...] = DEFAULT_ARTIFACT_GLOBS
    env: dict[str, str] = field(default_factory=lambda: {"NODE_ENV": "production"})
    timeout_sec: float = 120.0

    @classmethod
    def from_target(cls, target: TargetDef, *, timeout_sec: float) -> BuildSpec:
        return cls(
            name=target.name,
            command=target.build_command,
            workdir=target.build_workdir,
            artifact_dir=target.artifact_dir,
            artifact_globs=target.artifact_globs,
            timeout_sec=timeout_sec,
        )

    @property
    def artifact_path(self) -> Path:
        return self.workdir / self.artifact_dir


# ---------------------------------------------------------------------------
# Output heuristics
# ---------------------------------------------------------------------------


def count_severity(output: str) -> tuple[int, int]:
    """Count case-insensitive occurrences of "warning" and "error".

    Returns:
        Tuple of (warning_count, error_count).
    """
    lowered = output.lower()
    return lowered.count("warning"), lowered.count("error")


# ---------------------------------------------------------------------------
# Artifact scanning
# ---------------------------------------------------------------------------


def scan_artifacts(directory: Path, globs: Sequence[str]) -> tuple[int, int] | None:
    """Sum sizes of files under *directory* whose names match *globs*.

    Returns:
        ``(total_bytes, file_count)``, or None if *directory* does not
        exist. Any filesystem error while walking yields ``(0, 0)``.
    """
    if not directory.is_dir():
        return None

    total = 0
    count = 0
    try:
        for root, _dirs, files in os.walk(directory, onerror=_raise):
            for name in files:
                if any(fnmatch.fnmatch(name, pattern) for pattern in globs):
                    total += os.path.getsize(os.path.join(root, name))
                    count += 1
    except OSError as exc:
        log.debug("Artifact scan of %s failed: %s", directory, exc)
        return 0, 0
    return total, count


def _raise(exc: OSError) -> None:
    raise exc


# ---------------------------------------------------------------------------
# BuildAnalyzer
# ---------------------------------------------------------------------------


class BuildAnalyzer:
    """Builds one target and measures the result."""

    def analyze(self, spec: BuildSpec) -> BuildResult:
        """Run the build described by *spec* and analyze its output.

        A timeout, a non-zero exit or a command that cannot be started
        all produce ``success=False``; none of them raise. Bundle metrics
        are only reported for successful builds.
        """
        log.info("Building %s...", spec.name)
        log.info("  Directory: %s", spec.workdir)
        log.info("  Command: %s", spec.command)

        try:
            timed = run_timed(
                spec.command,
                cwd=spec.workdir,
                env=spec.env,
                timeout=spec.timeout_sec,
            )
        except BuildTimeout as exc:
            log.warning("  %s build timed out after %.0fs", spec.name, exc.timeout_sec)
            stderr = exc.stderr + ("\n" if exc.stderr else "") + str(exc)
            warnings, errors = count_severity(exc.stdout + exc.stderr)
            return BuildResult(
                success=False,
                duration_ms=exc.elapsed_s * 1000.0,
                exit_code=-1,
                stdout=exc.stdout,
                stderr=stderr,
                warning_count=warnings,
                error_count=errors,
                timed_out=True,
            )
        except OSError as exc:
            log.warning("  %s build could not be started: %s", spec.name, exc)
            return BuildResult(success=False, duration_ms=0.0, exit_code=-1, stderr=str(exc))

        success = timed.exit_code == 0
        warnings, errors = count_severity(timed.stdout + timed.stderr)

        if success:
            log.info("  %s built successfully in %.2fms", spec.name, timed.wall_time_ms)
        else:
            log.warning("  %s build failed (exit code %d)", spec.name, timed.exit_code)
            if timed.stderr.strip():
                log.warning("  Error: %s", timed.stderr.strip())

        bundle_size: int | None = None
        chunk_count: int | None = None
        if success:
            scanned = scan_artifacts(spec.artifact_path, spec.artifact_globs)
            if scanned is None:
                log.warning("  Artifact directory %s not found", spec.artifact_path)
            else:
                bundle_size, chunk_count = scanned

        return BuildResult(
            success=success,
            duration_ms=timed.wall_time_ms,
            exit_code=timed.exit_code,
            stdout=timed.stdout,
            stderr=timed.stderr,
            bundle_size_bytes=bundle_size,
            chunk_count=chunk_count,
            warning_count=warnings,
            error_count=errors,
        )
