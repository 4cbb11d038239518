"""Tests for stackduel.formatting."""

from __future__ import annotations

import unittest

from stackduel.formatting import (
    format_bytes,
    format_ms,
    format_pct,
    format_table,
    truncate,
)


class TestFormatMs(unittest.TestCase):
    def test_milliseconds(self) -> None:
        self.assertEqual(format_ms(12.3456), "12.35ms")

    def test_seconds(self) -> None:
        self.assertEqual(format_ms(1500.0), "1.50s")

    def test_none(self) -> None:
        self.assertEqual(format_ms(None), "N/A")

    def test_nan(self) -> None:
        self.assertEqual(format_ms(float("nan")), "N/A")


class TestFormatBytes(unittest.TestCase):
    def test_kilobytes(self) -> None:
        self.assertEqual(format_bytes(2048), "2.00 kB")

    def test_fraction(self) -> None:
        self.assertEqual(format_bytes(1536), "1.50 kB")

    def test_unknown(self) -> None:
        self.assertEqual(format_bytes(None), "Unknown")


class TestFormatPct(unittest.TestCase):
    def test_positive_signed(self) -> None:
        self.assertEqual(format_pct(12.34), "+12.3%")

    def test_negative(self) -> None:
        self.assertEqual(format_pct(-86.74), "-86.7%")

    def test_zero(self) -> None:
        self.assertEqual(format_pct(0.0), "+0.0%")

    def test_none(self) -> None:
        self.assertEqual(format_pct(None), "N/A")


class TestFormatTable(unittest.TestCase):
    def test_basic(self) -> None:
        out = format_table(["Name", "Value"], [["a", "1"], ["bbb", "22"]])
        lines = out.splitlines()
        self.assertEqual(len(lines), 4)
        self.assertTrue(lines[0].startswith("  Name"))
        self.assertIn("─", lines[1])
        self.assertTrue(lines[3].startswith("  bbb"))

    def test_right_alignment(self) -> None:
        out = format_table(["N", "Value"], [["a", "1"]], alignments=["l", "r"])
        self.assertTrue(out.splitlines()[2].endswith("    1"))

    def test_truncation(self) -> None:
        out = format_table(["Name"], [["abcdefghij"]], max_col_width={0: 6})
        self.assertIn("abc...", out)

    def test_short_rows_padded(self) -> None:
        out = format_table(["A", "B"], [["x"]])
        self.assertEqual(len(out.splitlines()), 3)

    def test_no_headers(self) -> None:
        self.assertEqual(format_table([], []), "")


class TestTruncate(unittest.TestCase):
    def test_short(self) -> None:
        self.assertEqual(truncate("abc", 10), "abc")

    def test_long(self) -> None:
        self.assertEqual(truncate("abcdefghij", 7), "abcd...")

    def test_tiny_limit(self) -> None:
        self.assertEqual(truncate("abcdef", 2), "..")


if __name__ == "__main__":
    unittest.main()
