"""Exception hierarchy for stackduel.

Only conditions that abort something get an exception class. A single
failed measured request is not exceptional: it is counted in
``AggregateStats.error_count`` and the run moves on.
"""

from __future__ import annotations


class DuelError(Exception):
    """Base class for all stackduel errors."""


class ConfigError(DuelError):
    """The benchmark configuration is invalid."""


class ConnectivityFailure(DuelError):
    """A target did not answer the pre-flight connectivity check."""

    def __init__(self, target: str, url: str, reason: str) -> None:
        self.target = target
        self.url = url
        self.reason = reason
        super().__init__(f"{target} server is not responding at {url}: {reason}")


class EmptySampleSet(DuelError):
    """Every measured request of a scenario failed."""


class InvalidComparison(DuelError):
    """A percent difference was requested against a zero baseline."""

    def __init__(self, metric: str) -> None:
        self.metric = metric
        super().__init__(f"Cannot compare '{metric}': baseline value is zero")


class BuildTimeout(DuelError):
    """A build command exceeded its hard timeout."""

    def __init__(
        self,
        command: str,
        timeout_sec: float,
        *,
        elapsed_s: float = 0.0,
        stdout: str = "",
        stderr: str = "",
    ) -> None:
        self.command = command
        self.timeout_sec = timeout_sec
        self.elapsed_s = elapsed_s
        self.stdout = stdout
        self.stderr = stderr
        super().__init__(f"Build command timed out after {timeout_sec}s: {command}")


class LoadGeneratorError(DuelError):
    """The external load generator is missing or failed."""


class StorageFailure(DuelError):
    """The results location could not be written."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Could not write results to {path}: {reason}")
