"""Result data structures and the results store.

Hierarchy::

    ComparisonRecord (one comparison run, persisted)
      → metrics: dict[str, MetricComparison]
      → details: {"a": ..., "b": ...}   raw per-target results
      → config: run parameters

    Per-target results (transient, folded into ``details``):
      AggregateStats   (performance mode, one per scenario)
      LoadTestResult   (loadtest mode)
      BuildResult      (buildtest mode)

Files produced in the results directory::

    <mode>-<YYYY-MM-DD>.json     one per run (suffixed -2, -3 on collision)
    latest.json                  copy of the most recent record
"""

from __future__ import annotations

import json
import logging
import os
import re
import tempfile
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from stackduel.errors import StorageFailure

log = logging.getLogger("stackduel")

LATEST_NAME = "latest.json"

_SEQUENCE_RE = re.compile(r"-\d{4}-\d{2}-\d{2}(?:-(\d+))?$")


# ---------------------------------------------------------------------------
# Load test results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ThroughputStats:
    """Requests per second over the load test."""

    avg: float = 0.0
    min: float = 0.0
    max: float = 0.0
    stddev: float = 0.0

    def to_dict(self) -> dict[str, float]:
        return {"avg": self.avg, "min": self.min, "max": self.max, "stddev": self.stddev}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ThroughputStats:
        known = {f for f in cls.__dataclass_fields__}
        return cls(**{k: v for k, v in data.items() if k in known})


@dataclass(frozen=True)
class LatencyStats:
    """Latency distribution over the load test, in milliseconds."""

    avg: float = 0.0
    min: float = 0.0
    max: float = 0.0
    stddev: float = 0.0
    p50: float = 0.0
    p90: float = 0.0
    p95: float = 0.0
    p99: float = 0.0

    def to_dict(self) -> dict[str, float]:
        return {
            "avg": self.avg,
            "min": self.min,
            "max": self.max,
            "stddev": self.stddev,
            "p50": self.p50,
            "p90": self.p90,
            "p95": self.p95,
            "p99": self.p99,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LatencyStats:
        known = {f for f in cls.__dataclass_fields__}
        return cls(**{k: v for k, v in data.items() if k in known})


@dataclass(frozen=True)
class LoadTestResult:
    """Canonical result of one load test against one target."""

    throughput: ThroughputStats
    latency: LatencyStats
    errors: int
    timeouts: int
    duration_sec: float
    start_time: str
    end_time: str
    total_requests: int = 0
    bytes_per_sec: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict."""
        return {
            "throughput": self.throughput.to_dict(),
            "latency": self.latency.to_dict(),
            "errors": self.errors,
            "timeouts": self.timeouts,
            "durationSec": self.duration_sec,
            "startTime": self.start_time,
            "endTime": self.end_time,
            "totalRequests": self.total_requests,
            "bytesPerSec": self.bytes_per_sec,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LoadTestResult:
        """Deserialize from a dict produced by :meth:`to_dict`."""
        return cls(
            throughput=ThroughputStats.from_dict(data.get("throughput", {})),
            latency=LatencyStats.from_dict(data.get("latency", {})),
            errors=data.get("errors", 0),
            timeouts=data.get("timeouts", 0),
            duration_sec=data.get("durationSec", 0.0),
            start_time=data.get("startTime", ""),
            end_time=data.get("endTime", ""),
            total_requests=data.get("totalRequests", 0),
            bytes_per_sec=data.get("bytesPerSec", 0.0),
        )


# ---------------------------------------------------------------------------
# Build results
# ---------------------------------------------------------------------------


@dataclass
class BuildResult:
    """Outcome of one production build of one target."""

    success: bool
    duration_ms: float
    exit_code: int
    stdout: str = ""
    stderr: str = ""
    bundle_size_bytes: int | None = None
    chunk_count: int | None = None
    warning_count: int = 0
    error_count: int = 0
    timed_out: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict."""
        return {
            "success": self.success,
            "durationMs": self.duration_ms,
            "exitCode": self.exit_code,
            "stdout": self.stdout,
            "stderr": self.stderr,
            "bundleSizeBytes": self.bundle_size_bytes,
            "chunkCount": self.chunk_count,
            "warningCount": self.warning_count,
            "errorCount": self.error_count,
            "timedOut": self.timed_out,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BuildResult:
        """Deserialize from a dict produced by :meth:`to_dict`."""
        return cls(
            success=data["success"],
            duration_ms=data.get("durationMs", 0.0),
            exit_code=data.get("exitCode", -1),
            stdout=data.get("stdout", ""),
            stderr=data.get("stderr", ""),
            bundle_size_bytes=data.get("bundleSizeBytes"),
            chunk_count=data.get("chunkCount"),
            warning_count=data.get("warningCount", 0),
            error_count=data.get("errorCount", 0),
            timed_out=data.get("timedOut", False),
        )


# ---------------------------------------------------------------------------
# Comparison records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MetricComparison:
    """One metric compared between target A and target B."""

    value_a: float
    value_b: float
    percent_diff: float
    winner: str | None  # "A", "B", or None on a tie

    def to_dict(self) -> dict[str, Any]:
        return {
            "valueA": self.value_a,
            "valueB": self.value_b,
            "percentDiff": self.percent_diff,
            "winner": self.winner,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MetricComparison:
        return cls(
            value_a=data["valueA"],
            value_b=data["valueB"],
            percent_diff=data["percentDiff"],
            winner=data.get("winner"),
        )


def utc_timestamp(when: datetime | None = None) -> str:
    """ISO-8601 UTC timestamp with second precision: ``2026-10-17T14:03:22Z``."""
    when = when or datetime.now(timezone.utc)
    return when.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


@dataclass
class ComparisonRecord:
    """A complete A/B comparison, as persisted."""

    mode: str
    target_a: str
    target_b: str
    metrics: dict[str, MetricComparison] = field(default_factory=dict)
    details: dict[str, Any] = field(default_factory=dict)
    config: dict[str, Any] = field(default_factory=dict)
    timestamp: str = field(default_factory=utc_timestamp)

    @property
    def date(self) -> str:
        """The ``YYYY-MM-DD`` part of the timestamp."""
        return self.timestamp[:10]

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict."""
        return {
            "timestamp": self.timestamp,
            "mode": self.mode,
            "targetA": self.target_a,
            "targetB": self.target_b,
            "metrics": {name: m.to_dict() for name, m in self.metrics.items()},
            "details": self.details,
            "config": self.config,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ComparisonRecord:
        """Deserialize from a dict produced by :meth:`to_dict`."""
        return cls(
            timestamp=data["timestamp"],
            mode=data["mode"],
            target_a=data["targetA"],
            target_b=data["targetB"],
            metrics={
                name: MetricComparison.from_dict(m) for name, m in data.get("metrics", {}).items()
            },
            details=data.get("details", {}),
            config=data.get("config", {}),
        )


# ---------------------------------------------------------------------------
# ResultsStore
# ---------------------------------------------------------------------------


def _atomic_write_text(path: Path, text: str) -> None:
    """Write text to *path* atomically using a temp file and os.replace."""
    fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=".stackduel-", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
        os.replace(tmp_path, path)
    except BaseException:
        # Clean up the temp file on failure
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise


class ResultsStore:
    """Owns the results directory: timestamped records plus ``latest.json``.

    Only one comparison runs at a time, so writes are not locked.
    """

    def __init__(self, results_dir: Path) -> None:
        self.results_dir = Path(results_dir)

    @property
    def latest_path(self) -> Path:
        return self.results_dir / LATEST_NAME

    def _record_path(self, record: ComparisonRecord) -> Path:
        """First unused ``<mode>-<date>[-N].json`` name for *record*."""
        stem = f"{record.mode}-{record.date}"
        path = self.results_dir / f"{stem}.json"
        n = 2
        while path.exists():
            path = self.results_dir / f"{stem}-{n}.json"
            n += 1
        return path

    def persist(self, record: ComparisonRecord) -> Path:
        """Write *record* as a new entry and point ``latest.json`` at it.

        Returns:
            Path of the newly written record file.

        Raises:
            StorageFailure: If the results directory cannot be written.
        """
        text = json.dumps(record.to_dict(), indent=2) + "\n"
        try:
            self.results_dir.mkdir(parents=True, exist_ok=True)
            path = self._record_path(record)
            _atomic_write_text(path, text)
            _atomic_write_text(self.latest_path, text)
        except OSError as exc:
            raise StorageFailure(str(self.results_dir), str(exc)) from exc
        log.info("Results saved to %s", path)
        return path

    def latest(self) -> ComparisonRecord | None:
        """The most recently persisted record, or None if there is none."""
        if not self.latest_path.exists():
            return None
        return ComparisonRecord.from_dict(json.loads(self.latest_path.read_text()))

    def history(self, mode: str | None = None) -> list[ComparisonRecord]:
        """All persisted records, oldest first, optionally filtered by mode."""
        if not self.results_dir.is_dir():
            return []
        entries: list[tuple[str, int, ComparisonRecord]] = []
        for path in self.results_dir.glob("*.json"):
            if path.name == LATEST_NAME:
                continue
            try:
                record = ComparisonRecord.from_dict(json.loads(path.read_text()))
            except (ValueError, KeyError) as exc:
                log.warning("Skipping unreadable results file %s: %s", path, exc)
                continue
            if mode is None or record.mode == mode:
                entries.append((record.timestamp, _sequence(path), record))
        # Timestamps have one-second resolution; same-second runs keep
        # the order in which their file names were allocated.
        entries.sort(key=lambda e: (e[0], e[1]))
        return [record for _, _, record in entries]


def _sequence(path: Path) -> int:
    """Collision number of a record file: 1 for the bare name, N for ``-N``."""
    match = _SEQUENCE_RE.search(path.stem)
    if match is None or match.group(1) is None:
        return 1
    return int(match.group(1))
