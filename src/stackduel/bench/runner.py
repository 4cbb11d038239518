"""Comparison execution engine.

Orchestrates one A/B comparison:
1. Configuration validation
2. Pre-flight checks (connectivity, load generator availability)
3. Measurement of target A, then target B, never interleaved
4. Metric comparison
5. Persisting the record to the results store

Measurement depends on the mode:
- performance: sequential request sampling of every scenario
- loadtest: one load test per target through the load generator
- buildtest: one production build per target
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable

import requests

from stackduel.bench.build import BuildAnalyzer, BuildSpec
from stackduel.bench.compare import compare_builds, compare_loadtest, compare_performance
from stackduel.bench.config import DuelConfig, TargetDef, validate_config
from stackduel.bench.loadtest import LoadGenerator, LoadTestRunner
from stackduel.bench.results import ComparisonRecord, MetricComparison, ResultsStore
from stackduel.bench.sampler import RequestSampler, check_endpoint
from stackduel.errors import ConfigError, LoadGeneratorError, StorageFailure

log = logging.getLogger("stackduel")


# ---------------------------------------------------------------------------
# Progress callback
# ---------------------------------------------------------------------------


@dataclass
class DuelProgress:
    """Progress info passed to the callback."""

    phase: str  # "preflight", "measure", "pause", "compare", "persist", "done"
    target: str = ""
    detail: str = ""


ProgressCallback = Callable[[DuelProgress], None]


# ---------------------------------------------------------------------------
# Outcome
# ---------------------------------------------------------------------------


@dataclass
class DuelOutcome:
    """Everything a comparison run produced.

    ``results_a`` / ``results_b`` hold the mode's raw per-target results:
    a ``{scenario: AggregateStats}`` dict, a ``LoadTestResult`` (or None
    if that target's load test failed), or a ``BuildResult``.
    """

    record: ComparisonRecord
    results_a: Any
    results_b: Any
    saved_path: Any = None  # Path | None
    storage_error: StorageFailure | None = None

    @property
    def metrics(self) -> dict[str, MetricComparison]:
        return self.record.metrics


# ---------------------------------------------------------------------------
# DuelRunner
# ---------------------------------------------------------------------------


class DuelRunner:
    """Executes one comparison according to a DuelConfig.

    Usage::

        config = DuelConfig(mode="performance", ...)
        outcome = DuelRunner(config).run()
    """

    def __init__(
        self,
        config: DuelConfig,
        *,
        session: requests.Session | None = None,
        load_generator: LoadGenerator | None = None,
        store: ResultsStore | None = None,
        sampler: RequestSampler | None = None,
        analyzer: BuildAnalyzer | None = None,
        progress_callback: ProgressCallback | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.config = config
        self.session = session or requests.Session()
        self.load_runner = LoadTestRunner(load_generator)
        self.store = store or ResultsStore(config.results_dir)
        self.sampler = sampler or RequestSampler(
            self.session, request_timeout_sec=config.request_timeout_sec
        )
        self.analyzer = analyzer or BuildAnalyzer()
        self.progress: ProgressCallback = progress_callback or self._default_progress
        self._sleep = sleep

    def run(self) -> DuelOutcome:
        """Execute the full comparison.

        Returns:
            DuelOutcome. A storage failure is reported in
            ``storage_error``, never raised.

        Raises:
            ConfigError: If the configuration is invalid.
            ConnectivityFailure: If a target does not respond.
            LoadGeneratorError: If the load generator is unavailable.
        """
        config = self.config

        # Phase 1: Validate configuration.
        errors = validate_config(config)
        fatal = [e for e in errors if e.severity == "error"]
        for w in (e for e in errors if e.severity == "warning"):
            log.warning("Config warning: %s: %s", w.field, w.message)
        if fatal:
            messages = [f"  {e.field}: {e.message}" for e in fatal]
            raise ConfigError("Invalid comparison configuration:\n" + "\n".join(messages))

        # Phase 2: Pre-flight.
        self.preflight()

        # Phase 3: A, then B.
        log.info(
            "Comparing %s vs %s (%s)", config.target_a.name, config.target_b.name, config.mode
        )
        results_a = self._measure(config.target_a)
        if config.pause_between_targets_sec > 0:
            self.progress(DuelProgress("pause", detail=f"{config.pause_between_targets_sec:g}s"))
            self._sleep(config.pause_between_targets_sec)
        results_b = self._measure(config.target_b)

        # Phase 4: Compare.
        self.progress(DuelProgress("compare"))
        if config.mode == "performance":
            metrics = compare_performance(results_a, results_b)
        elif config.mode == "loadtest":
            metrics = compare_loadtest(results_a, results_b)
        else:
            metrics = compare_builds(results_a, results_b)

        record = ComparisonRecord(
            mode=config.mode,
            target_a=config.target_a.name,
            target_b=config.target_b.name,
            metrics=metrics,
            details={"a": _serialize(results_a), "b": _serialize(results_b)},
            config=config.snapshot(),
        )
        outcome = DuelOutcome(record=record, results_a=results_a, results_b=results_b)

        # Phase 5: Persist.
        self.progress(DuelProgress("persist", detail=str(self.store.results_dir)))
        try:
            outcome.saved_path = self.store.persist(record)
        except StorageFailure as exc:
            log.error("%s", exc)
            outcome.storage_error = exc

        self.progress(DuelProgress("done"))
        return outcome

    def preflight(self) -> None:
        """Run the checks that must pass before anything is measured.

        Raises:
            ConnectivityFailure: If a target does not answer.
            LoadGeneratorError: If the load generator is unusable.
        """
        config = self.config
        if config.mode in ("performance", "loadtest"):
            for target in config.targets:
                self.progress(DuelProgress("preflight", target=target.name))
                check_endpoint(
                    target.name,
                    target.endpoint,
                    session=self.session,
                    timeout=config.request_timeout_sec,
                )
        if config.mode == "loadtest":
            self.progress(DuelProgress("preflight", detail="load generator"))
            self.load_runner.generator.check()

    def _measure(self, target: TargetDef) -> Any:
        """Run the mode's measurement against one target."""
        config = self.config
        self.progress(DuelProgress("measure", target=target.name))

        if config.mode == "performance":
            return self.sampler.sample_scenarios(
                target.endpoint,
                config.scenarios,
                warmup_count=config.warmup_count,
                measured_count=config.measured_count,
                inter_request_delay_ms=config.inter_request_delay_ms,
            )

        if config.mode == "loadtest":
            try:
                return self.load_runner.run(
                    target.endpoint,
                    config.load_duration_sec,
                    config.load_connections,
                    config.load_pipelining,
                    config.load_timeout_sec,
                )
            except LoadGeneratorError as exc:
                log.warning("Load test of %s failed: %s", target.name, exc)
                return None

        spec = BuildSpec.from_target(target, timeout_sec=config.build_timeout_sec)
        return self.analyzer.analyze(spec)

    @staticmethod
    def _default_progress(progress: DuelProgress) -> None:
        """Default progress callback: log at INFO."""
        if progress.phase == "measure":
            log.info("Testing %s...", progress.target)
        elif progress.phase == "preflight" and progress.target:
            log.info("Checking %s...", progress.target)
        elif progress.phase == "pause":
            log.info("Pausing %s between targets...", progress.detail)


def _serialize(results: Any) -> Any:
    """JSON-compatible form of one target's raw results."""
    if results is None:
        return None
    if isinstance(results, dict):
        return {name: stats.to_dict() for name, stats in results.items()}
    return results.to_dict()
