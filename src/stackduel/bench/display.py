"""Terminal display formatting for comparison results.

Produces aligned tables and summaries for per-target measurements and
for the A/B comparison itself. Rendering works from the serialized
``ComparisonRecord`` so stored results display exactly like fresh ones.
"""

from __future__ import annotations

from typing import Any, Mapping

from stackduel.bench.compare import average_response_time, summarize
from stackduel.bench.results import BuildResult, ComparisonRecord, LoadTestResult, MetricComparison
from stackduel.bench.stats import AggregateStats
from stackduel.formatting import format_bytes, format_ms, format_pct, format_table


# ---------------------------------------------------------------------------
# Metric values
# ---------------------------------------------------------------------------


def _format_value(metric: str, value: float | None) -> str:
    """Format a compared value with the unit implied by its metric name."""
    if value is None:
        return "N/A"
    leaf = metric.rsplit(".", 1)[-1]
    if leaf in ("avgSize", "bundleSizeBytes"):
        return format_bytes(int(value))
    if metric.startswith("throughput."):
        return f"{value:.2f} req/s"
    if leaf in ("errors", "timeouts", "chunkCount"):
        return f"{int(value)}"
    return format_ms(value)


# ---------------------------------------------------------------------------
# Per-target sections
# ---------------------------------------------------------------------------


def format_performance_results(name: str, results: Mapping[str, AggregateStats]) -> str:
    """Per-scenario sampling lines for one target."""
    rows: list[list[str]] = []
    for scenario, stats in results.items():
        if stats.failed:
            rows.append(
                [scenario, "failed", "", "", "", "", f"{stats.error_count}/{stats.attempted}"]
            )
            continue
        rows.append(
            [
                scenario,
                format_ms(stats.avg),
                format_ms(stats.p50),
                format_ms(stats.p95),
                format_ms(stats.p99),
                format_bytes(stats.avg_size),
                f"{stats.error_count}/{stats.attempted}",
            ]
        )
    table = format_table(
        ["Scenario", "Avg", "P50", "P95", "P99", "Size", "Errors"],
        rows,
        alignments=["l", "r", "r", "r", "r", "r", "r"],
        max_col_width={0: 30},
    )
    return f"{name}\n{table}"


def format_loadtest_result(name: str, result: LoadTestResult | None) -> str:
    """Load test summary for one target."""
    if result is None:
        return f"{name}\n  Load test failed"
    lines = [
        name,
        f"  Requests/sec:  {result.throughput.avg:.2f} avg, "
        f"{result.throughput.min:.2f} min, {result.throughput.max:.2f} max",
        f"  Latency:       {format_ms(result.latency.avg)} avg, "
        f"{format_ms(result.latency.p50)} p50, {format_ms(result.latency.p95)} p95, "
        f"{format_ms(result.latency.p99)} p99",
        f"  Requests:      {result.total_requests} "
        f"({result.errors} errors, {result.timeouts} timeouts)",
        f"  Transfer:      {format_bytes(int(result.bytes_per_sec))}/s",
    ]
    return "\n".join(lines)


def format_build_result(name: str, result: BuildResult) -> str:
    """Build summary for one target."""
    if not result.success:
        reason = "timed out" if result.timed_out else f"exit code {result.exit_code}"
        return f"{name}\n  Build failed ({reason})"
    chunks = "Unknown" if result.chunk_count is None else str(result.chunk_count)
    lines = [
        name,
        f"  Build time:    {format_ms(result.duration_ms)}",
        f"  Bundle size:   {format_bytes(result.bundle_size_bytes)}",
        f"  Chunks:        {chunks}",
        f"  Warnings:      {result.warning_count}",
        f"  Errors:        {result.error_count}",
    ]
    return "\n".join(lines)


def format_target_details(mode: str, name: str, details: Any) -> str:
    """Format one target's serialized results for *mode*."""
    if mode == "performance":
        stats = {k: AggregateStats.from_dict(v) for k, v in (details or {}).items()}
        return format_performance_results(name, stats)
    if mode == "loadtest":
        return format_loadtest_result(
            name, LoadTestResult.from_dict(details) if details is not None else None
        )
    if details is None:
        return f"{name}\n  No build result"
    return format_build_result(name, BuildResult.from_dict(details))


# ---------------------------------------------------------------------------
# Comparison
# ---------------------------------------------------------------------------


def format_comparison_table(
    metrics: Mapping[str, MetricComparison],
    name_a: str,
    name_b: str,
) -> str:
    """Metric / A / B / Difference / Winner table."""
    if not metrics:
        return "  No comparable metrics."
    rows: list[list[str]] = []
    for metric, m in metrics.items():
        if m.winner == "A":
            winner = name_a
        elif m.winner == "B":
            winner = name_b
        else:
            winner = "tie"
        rows.append(
            [
                metric,
                _format_value(metric, m.value_a),
                _format_value(metric, m.value_b),
                format_pct(m.percent_diff),
                winner,
            ]
        )
    return format_table(
        ["Metric", name_a, name_b, "Difference", "Winner"],
        rows,
        alignments=["l", "r", "r", "r", "l"],
        max_col_width={0: 40},
    )


def format_summary(metrics: Mapping[str, MetricComparison], name_a: str, name_b: str) -> str:
    """One-line wins summary."""
    s = summarize(metrics)
    if s["total"] == 0:
        return "Summary: nothing compared"
    total = s["total"]
    line = f"Summary: {name_a} wins {s['winsA']}/{total}, {name_b} wins {s['winsB']}/{total}"
    if s["ties"]:
        line += f", {s['ties']} tied"
    return line


def format_response_time(avg: Mapping[str, Any] | None, name_a: str, name_b: str) -> str:
    """Cross-scenario average response time of both targets."""
    if avg is None:
        return "Average response time: no scenario succeeded on both targets"
    width = max(len(name_a), len(name_b)) + 1
    lines = [
        f"Average response time ({avg['scenarios']} scenarios):",
        f"  {name_a + ':':<{width}}  {format_ms(avg['avgA'])}",
        f"  {name_b + ':':<{width}}  {format_ms(avg['avgB'])}",
    ]
    improvement = avg["improvementPct"]
    if improvement is None or improvement == 0:
        lines.append(f"  {name_a} and {name_b} are equally fast")
    elif improvement > 0:
        lines.append(f"  {name_a} is {improvement:.1f}% faster")
    else:
        lines.append(f"  {name_a} is {-improvement:.1f}% slower")
    return "\n".join(lines)


def format_record(record: ComparisonRecord) -> str:
    """Format a complete comparison record for display."""
    title = f"{record.target_a} vs {record.target_b} ({record.mode})"
    lines: list[str] = [title, "─" * len(title), f"Run at {record.timestamp}", ""]

    details = record.details or {}
    if "a" in details or "b" in details:
        lines.append(format_target_details(record.mode, record.target_a, details.get("a")))
        lines.append("")
        lines.append(format_target_details(record.mode, record.target_b, details.get("b")))
        lines.append("")

    lines.append("Comparison")
    lines.append(format_comparison_table(record.metrics, record.target_a, record.target_b))
    lines.append("")
    if record.mode == "performance":
        stats_a = {k: AggregateStats.from_dict(v) for k, v in (details.get("a") or {}).items()}
        stats_b = {k: AggregateStats.from_dict(v) for k, v in (details.get("b") or {}).items()}
        avg = average_response_time(stats_a, stats_b)
        lines.append(format_response_time(avg, record.target_a, record.target_b))
        lines.append("")
    lines.append(format_summary(record.metrics, record.target_a, record.target_b))
    return "\n".join(lines)


def format_history(records: list[ComparisonRecord]) -> str:
    """Table of stored comparison records, oldest first."""
    if not records:
        return "No stored results."
    rows: list[list[str]] = []
    for r in records:
        s = summarize(r.metrics)
        rows.append(
            [
                r.timestamp,
                r.mode,
                r.target_a,
                r.target_b,
                str(s["total"]),
                f"{s['winsA']}-{s['winsB']}",
            ]
        )
    return format_table(
        ["Timestamp", "Mode", "A", "B", "Metrics", "Wins A-B"],
        rows,
        alignments=["l", "l", "l", "l", "r", "r"],
    )
