"""Tests for stackduel.bench.timing."""

from __future__ import annotations

import tempfile
import unittest
from pathlib import Path

from stackduel.bench.timing import TimedResult, run_timed
from stackduel.errors import BuildTimeout


class TestTimedResult(unittest.TestCase):
    def test_wall_time_ms(self) -> None:
        r = TimedResult(wall_time_s=1.25, exit_code=0, stdout="", stderr="")
        self.assertAlmostEqual(r.wall_time_ms, 1250.0)


class TestRunTimed(unittest.TestCase):
    def test_simple_command(self) -> None:
        result = run_timed("echo hello")
        self.assertEqual(result.exit_code, 0)
        self.assertIn("hello", result.stdout)
        self.assertGreater(result.wall_time_s, 0)

    def test_captures_wall_time(self) -> None:
        result = run_timed("sleep 0.3")
        self.assertGreater(result.wall_time_s, 0.2)
        self.assertLess(result.wall_time_s, 2.0)

    def test_nonzero_exit(self) -> None:
        result = run_timed("exit 7")
        self.assertEqual(result.exit_code, 7)

    def test_stderr_captured(self) -> None:
        result = run_timed("echo oops >&2")
        self.assertIn("oops", result.stderr)

    def test_cwd(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            result = run_timed("pwd", cwd=tmp)
        self.assertEqual(Path(result.stdout.strip()).resolve(), Path(tmp).resolve())

    def test_env_layered(self) -> None:
        result = run_timed("echo $STACKDUEL_TEST_VAR", env={"STACKDUEL_TEST_VAR": "xyz"})
        self.assertIn("xyz", result.stdout)

    def test_timeout_raises(self) -> None:
        with self.assertRaises(BuildTimeout) as ctx:
            run_timed("echo started; sleep 10", timeout=0.5)
        exc = ctx.exception
        self.assertEqual(exc.timeout_sec, 0.5)
        self.assertGreaterEqual(exc.elapsed_s, 0.4)
        self.assertLess(exc.elapsed_s, 5.0)
        self.assertIn("started", exc.stdout)

    def test_missing_cwd_raises_oserror(self) -> None:
        with self.assertRaises(OSError):
            run_timed("true", cwd="/nonexistent/stackduel/dir")


if __name__ == "__main__":
    unittest.main()
