"""Shared text formatting helpers for stackduel.

Provides functions for formatting latencies, sizes, signed percentage
differences and aligned tables used by the display module.
"""

from __future__ import annotations

import math


def format_ms(value: float | None, precision: int = 2) -> str:
    """Format a millisecond value: ``'12.34ms'``, ``'1.50s'`` above a second.

    Returns ``'N/A'`` for ``None`` or NaN.
    """
    if value is None or math.isnan(value):
        return "N/A"
    if value >= 1000:
        return f"{value / 1000:.{precision}f}s"
    return f"{value:.{precision}f}ms"


def format_bytes(size: int | None) -> str:
    """Format a byte count in kB with two decimals: ``'123.45 kB'``.

    Returns ``'Unknown'`` for ``None``.
    """
    if size is None:
        return "Unknown"
    return f"{size / 1024:.2f} kB"


def format_pct(value: float | None, precision: int = 1) -> str:
    """Format a percentage with sign: ``'+12.3%'``, ``'-86.7%'``."""
    if value is None or math.isnan(value):
        return "N/A"
    sign = "+" if value >= 0 else ""
    return f"{sign}{value:.{precision}f}%"


def format_table(
    headers: list[str],
    rows: list[list[str]],
    *,
    alignments: list[str] | None = None,
    max_col_width: dict[int, int] | None = None,
    indent: int = 2,
) -> str:
    """Format a list of rows as an aligned text table.

    Auto-calculates column widths from content. Truncates columns that
    exceed *max_col_width* (with ``'...'`` suffix). Right-aligns columns
    marked ``'r'`` in *alignments*.

    Args:
        headers: Column header strings.
        rows: List of rows, each a list of cell strings.
        alignments: Per-column alignment: ``'l'``, ``'r'``, or ``'c'``.
        max_col_width: Column index to max width mapping.
        indent: Number of leading spaces per line.

    Returns:
        The formatted table as a string.
    """
    if not headers:
        return ""

    ncols = len(headers)
    aligns = list(alignments) if alignments is not None else []
    while len(aligns) < ncols:
        aligns.append("l")

    max_widths = max_col_width or {}

    proc_headers = list(headers)
    proc_rows: list[list[str]] = []
    for row in rows:
        padded = list(row) + [""] * (ncols - len(row))
        proc_rows.append(padded[:ncols])

    for ci, max_w in max_widths.items():
        if ci < ncols:
            proc_headers[ci] = truncate(proc_headers[ci], max_w)
            for row in proc_rows:
                row[ci] = truncate(row[ci], max_w)

    widths = [len(h) for h in proc_headers]
    for row in proc_rows:
        for ci, cell in enumerate(row):
            widths[ci] = max(widths[ci], len(cell))

    prefix = " " * indent

    def _format_cell(text: str, width: int, align: str) -> str:
        if align == "r":
            return text.rjust(width)
        if align == "c":
            return text.center(width)
        return text.ljust(width)

    lines: list[str] = []
    header_line = "  ".join(
        _format_cell(proc_headers[i], widths[i], aligns[i]) for i in range(ncols)
    )
    lines.append(prefix + header_line.rstrip())
    lines.append(prefix + "  ".join("─" * w for w in widths))

    for row in proc_rows:
        row_line = "  ".join(_format_cell(row[i], widths[i], aligns[i]) for i in range(ncols))
        lines.append(prefix + row_line.rstrip())

    return "\n".join(lines)


def truncate(text: str, max_len: int, suffix: str = "...") -> str:
    """Truncate text to *max_len*, adding *suffix* if truncated."""
    if len(text) <= max_len:
        return text
    if max_len <= len(suffix):
        return suffix[:max_len]
    return text[: max_len - len(suffix)] + suffix
