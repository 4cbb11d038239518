"""Sequential request sampling against one target.

A sampling run issues a warmup burst whose results are thrown away
(it only primes caches, JIT tiers and connection pools), then a
measured burst. Each measured request is timed from dispatch until the
full body has been read. Requests never overlap: per-request latency
attribution depends on it.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Sequence

import requests

from stackduel.bench.config import Scenario
from stackduel.bench.stats import AggregateStats, Sample, aggregate
from stackduel.errors import ConnectivityFailure

log = logging.getLogger("stackduel")


# ---------------------------------------------------------------------------
# Connectivity pre-check
# ---------------------------------------------------------------------------


def check_endpoint(
    name: str,
    endpoint: str,
    *,
    session: requests.Session | None = None,
    timeout: float = 10.0,
) -> None:
    """Verify that *endpoint* answers an HTTP request at all.

    Any HTTP response counts as reachable, including error statuses:
    the point is to catch a server that is not running before any
    measurement starts.

    Raises:
        ConnectivityFailure: If the request could not be completed.
    """
    if session is None:
        with requests.Session() as own:
            _probe(own, name, endpoint, timeout)
    else:
        _probe(session, name, endpoint, timeout)
    log.info("%s server is responding (%s)", name, endpoint)


def _probe(http: requests.Session, name: str, endpoint: str, timeout: float) -> None:
    try:
        resp = http.get(endpoint, timeout=timeout)
        resp.close()
    except requests.RequestException as exc:
        raise ConnectivityFailure(name, endpoint, str(exc) or type(exc).__name__) from exc


# ---------------------------------------------------------------------------
# RequestSampler
# ---------------------------------------------------------------------------


class RequestSampler:
    """Measures latency and body size of sequential GET requests.

    Usage::

        sampler = RequestSampler(request_timeout_sec=10)
        stats = sampler.sample("http://localhost:3000/", 50, 20, 10)
    """

    def __init__(
        self,
        session: requests.Session | None = None,
        *,
        request_timeout_sec: float = 10.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.session = session or requests.Session()
        self.request_timeout_sec = request_timeout_sec
        self._sleep = sleep

    def _fetch(self, url: str) -> Sample | None:
        """Issue one timed GET. Returns None on any failure."""
        start = time.perf_counter()
        try:
            resp = self.session.get(url, timeout=self.request_timeout_sec)
            # .content reads the whole body before we stop the clock.
            body = resp.content
        except requests.RequestException as exc:
            log.debug("Request to %s failed: %s", url, exc)
            return None
        elapsed_ms = (time.perf_counter() - start) * 1000.0

        if not 200 <= resp.status_code < 300:
            log.debug("Request to %s returned HTTP %d", url, resp.status_code)
            return None
        return Sample(latency_ms=elapsed_ms, body_size=len(body))

    def warmup(self, url: str, count: int) -> None:
        """Issue *count* requests and discard the results, failures included."""
        for _ in range(count):
            try:
                resp = self.session.get(url, timeout=self.request_timeout_sec)
                resp.close()
            except requests.RequestException:
                continue

    def sample(
        self,
        url: str,
        warmup_count: int,
        measured_count: int,
        inter_request_delay_ms: int,
    ) -> AggregateStats:
        """Run one warmup + measurement cycle against *url*.

        Failed measured requests (network errors or non-2xx statuses)
        are counted once and never retried.

        Returns:
            AggregateStats over the successful requests. If none
            succeeded, the returned stats have ``failed=True``.
        """
        self.warmup(url, warmup_count)

        log.info("  Testing %s...", url)
        samples: list[Sample] = []
        errors = 0
        delay_s = inter_request_delay_ms / 1000.0

        for _ in range(measured_count):
            result = self._fetch(url)
            if result is None:
                errors += 1
            else:
                samples.append(result)
            if delay_s > 0:
                self._sleep(delay_s)

        return aggregate(samples, errors, measured_count)

    def sample_scenarios(
        self,
        endpoint: str,
        scenarios: Sequence[Scenario],
        *,
        warmup_count: int,
        measured_count: int,
        inter_request_delay_ms: int,
    ) -> dict[str, AggregateStats]:
        """Sample every scenario path of one target, in order."""
        results: dict[str, AggregateStats] = {}
        base = endpoint.rstrip("/")
        for scenario in scenarios:
            url = base + "/" + scenario.path.lstrip("/")
            log.info("Scenario: %s", scenario.name)
            stats = self.sample(url, warmup_count, measured_count, inter_request_delay_ms)
            if stats.failed:
                log.warning(
                    "  %s: failed to get valid responses (%d/%d errors)",
                    scenario.name,
                    stats.error_count,
                    stats.attempted,
                )
            else:
                log.info(
                    "  Avg: %.2fms, P95: %.2fms, Size: %db",
                    stats.avg,
                    stats.p95,
                    stats.avg_size,
                )
            results[scenario.name] = stats
        return results
