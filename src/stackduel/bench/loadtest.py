"""Load testing through an external load generator.

The concurrent request flood itself is delegated to a load generator
behind the narrow ``LoadGenerator`` interface: given a ``LoadSettings``
it opens the requested connections, keeps them busy for the duration,
aborts requests that exceed the timeout and reports what happened. The
concrete generator shipped here drives `oha <https://github.com/hatoo/oha>`_;
tests substitute a fake.

``LoadTestRunner`` only maps the generator's report onto the canonical
``LoadTestResult``. It never recomputes percentiles: generator numbers
are copied as-is, converted from seconds to milliseconds where needed.
"""

from __future__ import annotations

import json
import logging
import shutil
import subprocess
from dataclasses import dataclass
from typing import Any, Protocol

from stackduel.bench.results import LatencyStats, LoadTestResult, ThroughputStats, utc_timestamp
from stackduel.errors import LoadGeneratorError

log = logging.getLogger("stackduel")


# ---------------------------------------------------------------------------
# Generator interface
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LoadSettings:
    """Fixed configuration handed to the load generator."""

    url: str
    duration_sec: int = 30
    connections: int = 50
    pipelining: int = 1
    timeout_sec: int = 10


@dataclass
class RawLoadResult:
    """Unprocessed generator report plus wall-clock bounds of the run."""

    data: dict[str, Any]
    start_time: str
    end_time: str


class LoadGenerator(Protocol):
    """Capability that floods one URL with concurrent requests."""

    def check(self) -> str:
        """Return a version string, or raise LoadGeneratorError if unusable."""
        ...

    def run_load_test(self, settings: LoadSettings) -> RawLoadResult:
        """Run one load test and return its raw report."""
        ...


# ---------------------------------------------------------------------------
# oha
# ---------------------------------------------------------------------------


class OhaLoadGenerator:
    """LoadGenerator backed by the ``oha`` command-line tool.

    Summary latencies in oha's JSON report are in seconds; ``rps``
    holds the per-second request rate distribution.
    """

    def __init__(self, executable: str = "oha", *, grace_sec: float = 30.0) -> None:
        self.executable = executable
        self.grace_sec = grace_sec

    def check(self) -> str:
        if shutil.which(self.executable) is None:
            raise LoadGeneratorError(
                f"{self.executable} is not installed. Install it with: cargo install oha"
            )
        try:
            proc = subprocess.run(
                [self.executable, "--version"],
                capture_output=True,
                text=True,
                timeout=10,
            )
        except (OSError, subprocess.TimeoutExpired) as exc:
            raise LoadGeneratorError(f"Could not run {self.executable}: {exc}") from exc
        if proc.returncode != 0:
            raise LoadGeneratorError(f"{self.executable} --version failed: {proc.stderr.strip()}")
        version = proc.stdout.strip()
        log.info("%s", version)
        return version

    def build_command(self, settings: LoadSettings) -> list[str]:
        """The oha argument list for *settings*."""
        return [
            self.executable,
            settings.url,
            "-z",
            f"{settings.duration_sec}s",
            "-c",
            str(settings.connections),
            "-t",
            f"{settings.timeout_sec}s",
            "--no-tui",
            "--output-format",
            "json",
        ]

    def run_load_test(self, settings: LoadSettings) -> RawLoadResult:
        if settings.pipelining > 1:
            log.warning(
                "oha does not support pipelining; ignoring pipelining=%d", settings.pipelining
            )

        cmd = self.build_command(settings)
        log.debug("Running: %s", " ".join(cmd))
        start = utc_timestamp()
        try:
            proc = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=settings.duration_sec + settings.timeout_sec + self.grace_sec,
            )
        except subprocess.TimeoutExpired as exc:
            raise LoadGeneratorError(f"{self.executable} did not finish in time") from exc
        except OSError as exc:
            raise LoadGeneratorError(f"Failed to execute {self.executable}: {exc}") from exc
        end = utc_timestamp()

        if proc.returncode != 0:
            raise LoadGeneratorError(f"{self.executable} failed: {proc.stderr.strip()}")
        try:
            data = json.loads(proc.stdout)
        except ValueError as exc:
            raise LoadGeneratorError(f"Failed to parse {self.executable} JSON output") from exc
        if not isinstance(data, dict):
            raise LoadGeneratorError(f"Unexpected {self.executable} output: not a JSON object")

        return RawLoadResult(data=data, start_time=start, end_time=end)


# ---------------------------------------------------------------------------
# Mapping
# ---------------------------------------------------------------------------


def _num(mapping: Any, key: str, default: float = 0.0) -> float:
    """Numeric field lookup that tolerates missing keys and nulls."""
    if not isinstance(mapping, dict):
        return default
    value = mapping.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    return value


def _ms(seconds: float) -> float:
    return seconds * 1000.0


def map_oha_result(raw: RawLoadResult, *, default_duration: float = 0.0) -> LoadTestResult:
    """Map an oha JSON report onto LoadTestResult.

    Errors are non-2xx responses plus transport errors; transport
    errors whose message mentions a timeout are counted separately as
    timeouts.
    """
    data = raw.data
    summary = data.get("summary") or {}
    percentiles = data.get("latencyPercentiles") or {}
    rps = data.get("rps") or {}
    status_dist = data.get("statusCodeDistribution") or {}
    error_dist = data.get("errorDistribution") or {}

    non_2xx = 0
    responses = 0
    for code, count in status_dist.items():
        responses += int(count)
        if not str(code).startswith("2"):
            non_2xx += int(count)

    timeouts = 0
    transport_errors = 0
    for message, count in error_dist.items():
        if "timeout" in str(message).lower() or "timed out" in str(message).lower():
            timeouts += int(count)
        else:
            transport_errors += int(count)

    requests_per_sec = _num(summary, "requestsPerSec")
    throughput = ThroughputStats(
        avg=_num(rps, "mean", requests_per_sec),
        min=_num(rps, "min"),
        max=_num(rps, "max"),
        stddev=_num(rps, "stddev"),
    )
    latency = LatencyStats(
        avg=_ms(_num(summary, "average")),
        min=_ms(_num(summary, "fastest")),
        max=_ms(_num(summary, "slowest")),
        stddev=_ms(_num(summary, "stddev")),
        p50=_ms(_num(percentiles, "p50")),
        p90=_ms(_num(percentiles, "p90")),
        p95=_ms(_num(percentiles, "p95")),
        p99=_ms(_num(percentiles, "p99")),
    )

    return LoadTestResult(
        throughput=throughput,
        latency=latency,
        errors=non_2xx + transport_errors,
        timeouts=timeouts,
        duration_sec=_num(summary, "total", default_duration),
        start_time=raw.start_time,
        end_time=raw.end_time,
        total_requests=responses + transport_errors + timeouts,
        bytes_per_sec=_num(summary, "sizePerSec"),
    )


# ---------------------------------------------------------------------------
# LoadTestRunner
# ---------------------------------------------------------------------------


class LoadTestRunner:
    """Runs one load test per call through a LoadGenerator."""

    def __init__(self, generator: LoadGenerator | None = None) -> None:
        self.generator: LoadGenerator = generator or OhaLoadGenerator()

    def run(
        self,
        endpoint: str,
        duration_sec: int,
        connections: int,
        pipelining: int,
        timeout_sec: int,
    ) -> LoadTestResult:
        """Flood *endpoint* and return the canonical result.

        Raises:
            LoadGeneratorError: If the generator fails or its report
                cannot be read.
        """
        settings = LoadSettings(
            url=endpoint,
            duration_sec=duration_sec,
            connections=connections,
            pipelining=pipelining,
            timeout_sec=timeout_sec,
        )
        log.info("  URL: %s", endpoint)
        log.info("  Duration: %ds, Connections: %d", duration_sec, connections)

        raw = self.generator.run_load_test(settings)
        result = map_oha_result(raw, default_duration=float(duration_sec))

        log.info(
            "  Completed: %d requests (%d errors, %d timeouts)",
            result.total_requests,
            result.errors,
            result.timeouts,
        )
        return result
