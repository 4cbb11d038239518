"""Tests for stackduel.logging."""

from __future__ import annotations

import logging
import tempfile
import unittest
from pathlib import Path

from stackduel.logging import get_logger, setup_logging


class TestSetupLogging(unittest.TestCase):
    def tearDown(self) -> None:
        logger = logging.getLogger("stackduel")
        for handler in logger.handlers:
            handler.close()
        logger.handlers.clear()

    def _console_level(self, logger: logging.Logger) -> int:
        return logger.handlers[0].level

    def test_default_info(self) -> None:
        logger = setup_logging()
        self.assertEqual(logger.name, "stackduel")
        self.assertEqual(len(logger.handlers), 1)
        self.assertEqual(self._console_level(logger), logging.INFO)

    def test_verbose(self) -> None:
        self.assertEqual(self._console_level(setup_logging(verbose=True)), logging.DEBUG)

    def test_quiet(self) -> None:
        self.assertEqual(self._console_level(setup_logging(quiet=True)), logging.WARNING)

    def test_verbose_shows_logger_names(self) -> None:
        logger = setup_logging(verbose=True)
        fmt = logger.handlers[0].formatter
        assert fmt is not None
        self.assertIn("%(name)s", fmt._fmt or "")

    def test_urllib3_dampened(self) -> None:
        setup_logging(verbose=True)
        self.assertEqual(logging.getLogger("urllib3").level, logging.WARNING)

    def test_verbose_beats_quiet(self) -> None:
        logger = setup_logging(verbose=True, quiet=True)
        self.assertEqual(self._console_level(logger), logging.DEBUG)

    def test_reconfigure_replaces_handlers(self) -> None:
        setup_logging()
        logger = setup_logging()
        self.assertEqual(len(logger.handlers), 1)

    def test_log_file(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "duel.log"
            logger = setup_logging(quiet=True, log_file=path)
            self.assertEqual(len(logger.handlers), 2)
            self.assertEqual(logger.handlers[1].level, logging.DEBUG)
            get_logger("test").debug("measuring target A")
            for handler in logger.handlers:
                handler.flush()
            text = path.read_text(encoding="utf-8")
            for handler in logger.handlers:
                handler.close()
            logger.handlers.clear()
        self.assertIn("measuring target A", text)
        self.assertIn("stackduel.test", text)


class TestGetLogger(unittest.TestCase):
    def test_namespaced(self) -> None:
        self.assertEqual(get_logger("runner").name, "stackduel.runner")


if __name__ == "__main__":
    unittest.main()
