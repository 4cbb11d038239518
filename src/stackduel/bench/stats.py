"""Summary statistics for request samples.

Converts the successful samples of one sampling run into an
``AggregateStats`` record: min, max, mean, nearest-rank percentiles,
average body size and the success rate.

Percentiles use the nearest-rank rule on the ascending-sorted latencies:
the value at index ``floor(n * p)``, clamped to ``[0, n - 1]``. There is
no interpolation, so with small sample counts p95 and p99 frequently
land on the same value (for ``n = 10`` both are the maximum). Results
stored by earlier runs were computed the same way, which keeps them
comparable.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Sequence

from stackduel.errors import EmptySampleSet


# ---------------------------------------------------------------------------
# Samples
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Sample:
    """One successful measured request."""

    latency_ms: float
    body_size: int


# ---------------------------------------------------------------------------
# AggregateStats
# ---------------------------------------------------------------------------


@dataclass
class AggregateStats:
    """Summary of one scenario against one target.

    When no request succeeded, ``failed`` is True and every latency and
    size field is ``None``: there is nothing to summarize, and zeros
    would read as an impossibly fast server.
    """

    min: float | None
    max: float | None
    avg: float | None
    p50: float | None
    p95: float | None
    p99: float | None
    avg_size: int | None
    error_count: int
    attempted: int
    success_rate_pct: float
    failed: bool = False

    def require(self) -> AggregateStats:
        """Return self, or raise EmptySampleSet if there were no successes."""
        if self.failed:
            raise EmptySampleSet(
                f"No valid responses ({self.error_count}/{self.attempted} requests failed)"
            )
        return self

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict."""
        return {
            "min": self.min,
            "max": self.max,
            "avg": self.avg,
            "p50": self.p50,
            "p95": self.p95,
            "p99": self.p99,
            "avgSize": self.avg_size,
            "errorCount": self.error_count,
            "attempted": self.attempted,
            "successRatePct": self.success_rate_pct,
            "failed": self.failed,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AggregateStats:
        """Deserialize from a dict produced by :meth:`to_dict`."""
        return cls(
            min=data.get("min"),
            max=data.get("max"),
            avg=data.get("avg"),
            p50=data.get("p50"),
            p95=data.get("p95"),
            p99=data.get("p99"),
            avg_size=data.get("avgSize"),
            error_count=data.get("errorCount", 0),
            attempted=data.get("attempted", 0),
            success_rate_pct=data.get("successRatePct", 0.0),
            failed=data.get("failed", False),
        )


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------


def percentile(sorted_values: Sequence[float], p: float) -> float:
    """Nearest-rank percentile of an ascending-sorted, non-empty sequence.

    Picks ``sorted_values[floor(n * p)]`` with the index clamped to the
    valid range.
    """
    n = len(sorted_values)
    if n == 0:
        raise ValueError("percentile() of an empty sequence")
    idx = int(math.floor(n * p))
    idx = max(0, min(idx, n - 1))
    return sorted_values[idx]


def success_rate(attempted: int, error_count: int) -> float:
    """Percentage of attempted requests that succeeded (0.0 if none attempted)."""
    if attempted <= 0:
        return 0.0
    return 100.0 * (attempted - error_count) / attempted


def aggregate(
    samples: Sequence[Sample],
    error_count: int,
    attempted: int,
) -> AggregateStats:
    """Summarize the successful samples of one sampling run.

    Args:
        samples: Successful requests, in the order they were observed.
        error_count: Number of measured requests that failed.
        attempted: Number of measured requests issued.

    Returns:
        AggregateStats. With no samples, a failed record with ``None``
        latency and size fields (this function never raises on empty
        input).
    """
    rate = success_rate(attempted, error_count)

    if not samples:
        return AggregateStats(
            min=None,
            max=None,
            avg=None,
            p50=None,
            p95=None,
            p99=None,
            avg_size=None,
            error_count=error_count,
            attempted=attempted,
            success_rate_pct=rate,
            failed=True,
        )

    latencies = sorted(s.latency_ms for s in samples)
    n = len(latencies)
    mean_size = sum(s.body_size for s in samples) / n

    return AggregateStats(
        min=latencies[0],
        max=latencies[-1],
        avg=sum(latencies) / n,
        p50=percentile(latencies, 0.50),
        p95=percentile(latencies, 0.95),
        p99=percentile(latencies, 0.99),
        # Round half up, not banker's rounding.
        avg_size=int(math.floor(mean_size + 0.5)),
        error_count=error_count,
        attempted=attempted,
        success_rate_pct=rate,
    )
