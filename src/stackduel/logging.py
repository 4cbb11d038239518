"""Logging setup for stackduel.

Console output goes to stderr so that ``--json`` output on stdout stays
machine-readable. Its verbosity follows the CLI flags. An optional file
handler always records DEBUG output, which keeps a full trace of a run
even when the console is quiet.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

_LOGGER_NAME = "stackduel"
_FILE_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
_CONSOLE_FORMAT = "%(levelname)-8s %(message)s"
_VERBOSE_FORMAT = "%(levelname)-8s %(name)s: %(message)s"

# Libraries whose DEBUG chatter (one line per connection) drowns out
# the measurement log when -v is given.
_NOISY_LOGGERS = ("urllib3",)


def setup_logging(
    *,
    verbose: bool = False,
    quiet: bool = False,
    log_file: Path | None = None,
) -> logging.Logger:
    """Configure and return the root stackduel logger.

    Args:
        verbose: Log DEBUG to the console, with logger names.
        quiet: Only log warnings and errors. Ignored if *verbose* is True.
        log_file: If provided, also log everything at DEBUG to this path.

    Returns:
        The configured ``stackduel`` logger.
    """
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(logging.DEBUG)

    # Remove any existing handlers to allow reconfiguration.
    for handler in logger.handlers:
        handler.close()
    logger.handlers.clear()

    console = logging.StreamHandler(sys.stderr)
    if verbose:
        console.setLevel(logging.DEBUG)
        console.setFormatter(logging.Formatter(_VERBOSE_FORMAT))
    else:
        console.setLevel(logging.WARNING if quiet else logging.INFO)
        console.setFormatter(logging.Formatter(_CONSOLE_FORMAT))
    logger.addHandler(console)

    if log_file is not None:
        fh = logging.FileHandler(log_file, encoding="utf-8")
        fh.setLevel(logging.DEBUG)
        fh.setFormatter(logging.Formatter(_FILE_FORMAT))
        logger.addHandler(fh)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Return ``stackduel.<name>``."""
    return logging.getLogger(f"{_LOGGER_NAME}.{name}")
