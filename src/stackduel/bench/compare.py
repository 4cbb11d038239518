"""A/B comparison of measured metrics.

Every metric is compared the same way: the percent difference of A
relative to B, and a winner chosen by the metric's polarity (lower is
better for latencies, sizes and error counts; higher is better for
throughput).
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

from stackduel.bench.results import BuildResult, LoadTestResult, MetricComparison
from stackduel.bench.stats import AggregateStats
from stackduel.errors import InvalidComparison

log = logging.getLogger("stackduel")

LOWER_IS_BETTER = True
HIGHER_IS_BETTER = False


# ---------------------------------------------------------------------------
# Single metric
# ---------------------------------------------------------------------------


def compare(metric: str, a: float, b: float, lower_is_better: bool) -> MetricComparison:
    """Compare one metric between target A and target B.

    ``percent_diff`` is ``(a - b) / b * 100``: negative means A's value
    is smaller. Equal values have no winner.

    Raises:
        InvalidComparison: If *b* is zero.
    """
    if b == 0:
        raise InvalidComparison(metric)
    percent_diff = (a - b) / b * 100.0

    winner: str | None
    if a == b:
        winner = None
    elif (a < b) == lower_is_better:
        winner = "A"
    else:
        winner = "B"
    return MetricComparison(value_a=a, value_b=b, percent_diff=percent_diff, winner=winner)


def _add(
    metrics: dict[str, MetricComparison],
    name: str,
    a: float | None,
    b: float | None,
    lower_is_better: bool,
) -> None:
    """Compare and store one metric, skipping missing or zero baselines."""
    if a is None or b is None:
        log.debug("Skipping %s: value missing on one side", name)
        return
    try:
        metrics[name] = compare(name, a, b, lower_is_better)
    except InvalidComparison as exc:
        log.debug("Skipping %s: %s", name, exc)


# ---------------------------------------------------------------------------
# Per-mode builders
# ---------------------------------------------------------------------------

_SCENARIO_FIELDS = (
    ("avg", "avg"),
    ("p50", "p50"),
    ("p95", "p95"),
    ("p99", "p99"),
    ("avgSize", "avg_size"),
)


def compare_performance(
    stats_a: Mapping[str, AggregateStats],
    stats_b: Mapping[str, AggregateStats],
) -> dict[str, MetricComparison]:
    """Compare per-scenario sampling stats; keys are ``<scenario>.<metric>``.

    Scenarios missing or failed on either side are skipped.
    """
    metrics: dict[str, MetricComparison] = {}
    for scenario, a in stats_a.items():
        b = stats_b.get(scenario)
        if b is None:
            log.warning("Scenario %s was not measured on target B; skipping", scenario)
            continue
        if a.failed or b.failed:
            log.warning("Scenario %s failed on at least one target; skipping", scenario)
            continue
        for key, attr in _SCENARIO_FIELDS:
            _add(metrics, f"{scenario}.{key}", getattr(a, attr), getattr(b, attr), LOWER_IS_BETTER)
    return metrics


def compare_loadtest(
    a: LoadTestResult | None,
    b: LoadTestResult | None,
) -> dict[str, MetricComparison]:
    """Compare two load test results. Returns nothing if either is missing."""
    metrics: dict[str, MetricComparison] = {}
    if a is None or b is None:
        log.warning("Load test result missing for at least one target; nothing to compare")
        return metrics

    _add(metrics, "throughput.avg", a.throughput.avg, b.throughput.avg, HIGHER_IS_BETTER)
    for key in ("avg", "p50", "p95", "p99"):
        _add(
            metrics,
            f"latency.{key}",
            getattr(a.latency, key),
            getattr(b.latency, key),
            LOWER_IS_BETTER,
        )
    _add(metrics, "errors", a.errors, b.errors, LOWER_IS_BETTER)
    _add(metrics, "timeouts", a.timeouts, b.timeouts, LOWER_IS_BETTER)
    return metrics


def compare_builds(
    a: BuildResult | None,
    b: BuildResult | None,
) -> dict[str, MetricComparison]:
    """Compare two builds. A failed build on either side yields no metrics."""
    metrics: dict[str, MetricComparison] = {}
    if a is None or b is None or not a.success or not b.success:
        log.warning("At least one build failed; build metrics not compared")
        return metrics

    _add(metrics, "durationMs", a.duration_ms, b.duration_ms, LOWER_IS_BETTER)
    _add(metrics, "bundleSizeBytes", a.bundle_size_bytes, b.bundle_size_bytes, LOWER_IS_BETTER)
    _add(metrics, "chunkCount", a.chunk_count, b.chunk_count, LOWER_IS_BETTER)
    return metrics


# ---------------------------------------------------------------------------
# Summary
# ---------------------------------------------------------------------------


def summarize(metrics: Mapping[str, MetricComparison]) -> dict[str, Any]:
    """Count wins per side.

    Returns:
        Dict with ``total``, ``winsA``, ``winsB`` and ``ties``.
    """
    wins_a = sum(1 for m in metrics.values() if m.winner == "A")
    wins_b = sum(1 for m in metrics.values() if m.winner == "B")
    return {
        "total": len(metrics),
        "winsA": wins_a,
        "winsB": wins_b,
        "ties": len(metrics) - wins_a - wins_b,
    }


def average_response_time(
    stats_a: Mapping[str, AggregateStats],
    stats_b: Mapping[str, AggregateStats],
) -> dict[str, Any] | None:
    """Mean of the per-scenario average latencies, per side.

    Only scenarios measured successfully on both targets count.
    ``improvementPct`` is ``(avgB - avgA) / avgB * 100``: positive means
    A is faster.

    Returns:
        Dict with ``scenarios``, ``avgA``, ``avgB`` and ``improvementPct``
        (None when ``avgB`` is zero), or None if no scenario qualifies.
    """
    pairs = [
        (a.avg, stats_b[name].avg)
        for name, a in stats_a.items()
        if name in stats_b and not a.failed and not stats_b[name].failed
    ]
    pairs = [(a, b) for a, b in pairs if a is not None and b is not None]
    if not pairs:
        return None
    avg_a = sum(a for a, _ in pairs) / len(pairs)
    avg_b = sum(b for _, b in pairs) / len(pairs)
    improvement = (avg_b - avg_a) / avg_b * 100.0 if avg_b else None
    return {
        "scenarios": len(pairs),
        "avgA": avg_a,
        "avgB": avg_b,
        "improvementPct": improvement,
    }
