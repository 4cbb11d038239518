"""Tests for stackduel.bench.loadtest."""

from __future__ import annotations

import json
import subprocess
import unittest
from unittest.mock import MagicMock, patch

from bench_test_helpers import FakeLoadGenerator, make_oha_report
from stackduel.bench.loadtest import (
    LoadSettings,
    LoadTestRunner,
    OhaLoadGenerator,
    RawLoadResult,
    map_oha_result,
)
from stackduel.errors import LoadGeneratorError


def _raw(data: dict) -> RawLoadResult:
    return RawLoadResult(
        data=data, start_time="2026-10-17T10:00:00Z", end_time="2026-10-17T10:00:30Z"
    )


def _completed(stdout: str = "", returncode: int = 0, stderr: str = "") -> MagicMock:
    proc = MagicMock()
    proc.stdout = stdout
    proc.stderr = stderr
    proc.returncode = returncode
    return proc


class TestMapOhaResult(unittest.TestCase):
    def test_throughput_copied(self) -> None:
        result = map_oha_result(_raw(make_oha_report(rps_mean=1234.5)))
        self.assertEqual(result.throughput.avg, 1234.5)
        self.assertEqual(result.throughput.min, 1100.0)
        self.assertEqual(result.throughput.max, 1400.0)
        self.assertEqual(result.throughput.stddev, 40.0)

    def test_latency_converted_to_ms(self) -> None:
        result = map_oha_result(_raw(make_oha_report()))
        self.assertAlmostEqual(result.latency.avg, 4.0)
        self.assertAlmostEqual(result.latency.min, 0.5)
        self.assertAlmostEqual(result.latency.max, 250.0)
        self.assertAlmostEqual(result.latency.p50, 3.0)
        self.assertAlmostEqual(result.latency.p90, 7.0)
        self.assertAlmostEqual(result.latency.p95, 9.0)
        self.assertAlmostEqual(result.latency.p99, 20.0)

    def test_errors_and_timeouts(self) -> None:
        report = make_oha_report(
            statuses={"200": 900, "500": 40, "404": 10},
            errors={"connection closed before message completed": 3, "timeout": 7},
        )
        result = map_oha_result(_raw(report))
        self.assertEqual(result.errors, 53)
        self.assertEqual(result.timeouts, 7)
        self.assertEqual(result.total_requests, 960)

    def test_timeout_message_case_insensitive(self) -> None:
        report = make_oha_report(errors={"Request Timeout": 2, "operation timed out": 1})
        self.assertEqual(map_oha_result(_raw(report)).timeouts, 3)

    def test_metadata(self) -> None:
        result = map_oha_result(_raw(make_oha_report()))
        self.assertEqual(result.duration_sec, 30.01)
        self.assertEqual(result.start_time, "2026-10-17T10:00:00Z")
        self.assertEqual(result.end_time, "2026-10-17T10:00:30Z")
        self.assertEqual(result.bytes_per_sec, 2_500_000.0)

    def test_missing_fields_default_to_zero(self) -> None:
        result = map_oha_result(_raw({}), default_duration=30.0)
        self.assertEqual(result.throughput.avg, 0.0)
        self.assertEqual(result.latency.p99, 0.0)
        self.assertEqual(result.errors, 0)
        self.assertEqual(result.duration_sec, 30.0)

    def test_null_values_tolerated(self) -> None:
        report = make_oha_report()
        report["summary"]["average"] = None
        report["latencyPercentiles"] = None
        result = map_oha_result(_raw(report))
        self.assertEqual(result.latency.avg, 0.0)
        self.assertEqual(result.latency.p50, 0.0)

    def test_rps_mean_falls_back_to_summary(self) -> None:
        report = make_oha_report(rps_mean=500.0)
        del report["rps"]
        self.assertEqual(map_oha_result(_raw(report)).throughput.avg, 500.0)


class TestOhaLoadGenerator(unittest.TestCase):
    def test_build_command(self) -> None:
        cmd = OhaLoadGenerator().build_command(
            LoadSettings(
                url="http://localhost:3000", duration_sec=15, connections=20, timeout_sec=5
            )
        )
        self.assertEqual(
            cmd,
            [
                "oha",
                "http://localhost:3000",
                "-z",
                "15s",
                "-c",
                "20",
                "-t",
                "5s",
                "--no-tui",
                "--output-format",
                "json",
            ],
        )

    @patch("stackduel.bench.loadtest.subprocess.run")
    def test_run_parses_json(self, mock_run: MagicMock) -> None:
        mock_run.return_value = _completed(stdout=json.dumps(make_oha_report()))
        raw = OhaLoadGenerator().run_load_test(LoadSettings(url="http://x"))
        self.assertEqual(raw.data["rps"]["mean"], 1234.5)
        self.assertTrue(raw.start_time.endswith("Z"))

    @patch("stackduel.bench.loadtest.subprocess.run")
    def test_run_nonzero_exit(self, mock_run: MagicMock) -> None:
        mock_run.return_value = _completed(returncode=1, stderr="bad url")
        with self.assertRaises(LoadGeneratorError) as ctx:
            OhaLoadGenerator().run_load_test(LoadSettings(url="http://x"))
        self.assertIn("bad url", str(ctx.exception))

    @patch("stackduel.bench.loadtest.subprocess.run")
    def test_run_bad_json(self, mock_run: MagicMock) -> None:
        mock_run.return_value = _completed(stdout="not json")
        with self.assertRaises(LoadGeneratorError):
            OhaLoadGenerator().run_load_test(LoadSettings(url="http://x"))

    @patch("stackduel.bench.loadtest.subprocess.run")
    def test_run_missing_binary(self, mock_run: MagicMock) -> None:
        mock_run.side_effect = FileNotFoundError("oha")
        with self.assertRaises(LoadGeneratorError):
            OhaLoadGenerator().run_load_test(LoadSettings(url="http://x"))

    @patch("stackduel.bench.loadtest.subprocess.run")
    def test_run_hung_generator(self, mock_run: MagicMock) -> None:
        mock_run.side_effect = subprocess.TimeoutExpired("oha", 70)
        with self.assertRaises(LoadGeneratorError):
            OhaLoadGenerator().run_load_test(LoadSettings(url="http://x"))

    @patch("stackduel.bench.loadtest.shutil.which", return_value=None)
    def test_check_not_installed(self, _which: MagicMock) -> None:
        with self.assertRaises(LoadGeneratorError) as ctx:
            OhaLoadGenerator().check()
        self.assertIn("not installed", str(ctx.exception))

    @patch("stackduel.bench.loadtest.subprocess.run")
    @patch("stackduel.bench.loadtest.shutil.which", return_value="/usr/bin/oha")
    def test_check_version(self, _which: MagicMock, mock_run: MagicMock) -> None:
        mock_run.return_value = _completed(stdout="oha 1.4.5\n")
        self.assertEqual(OhaLoadGenerator().check(), "oha 1.4.5")


class TestLoadTestRunner(unittest.TestCase):
    def test_settings_passed_through(self) -> None:
        gen = FakeLoadGenerator()
        LoadTestRunner(gen).run("http://localhost:3000", 30, 50, 1, 10)
        self.assertEqual(
            gen.calls,
            [
                LoadSettings(
                    url="http://localhost:3000",
                    duration_sec=30,
                    connections=50,
                    pipelining=1,
                    timeout_sec=10,
                )
            ],
        )

    def test_numbers_copied_verbatim(self) -> None:
        gen = FakeLoadGenerator([make_oha_report(rps_mean=1234.5)])
        result = LoadTestRunner(gen).run("http://x", 30, 50, 1, 10)
        self.assertEqual(result.throughput.avg, 1234.5)

    def test_generator_error_propagates(self) -> None:
        gen = FakeLoadGenerator(fail_on={"http://x"})
        with self.assertRaises(LoadGeneratorError):
            LoadTestRunner(gen).run("http://x", 30, 50, 1, 10)

    def test_default_generator_is_oha(self) -> None:
        self.assertIsInstance(LoadTestRunner().generator, OhaLoadGenerator)


if __name__ == "__main__":
    unittest.main()
