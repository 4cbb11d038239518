"""Tests for stackduel.bench.sampler."""

from __future__ import annotations

import unittest
from unittest.mock import MagicMock, patch

import requests

from bench_test_helpers import LocalServer
from stackduel.bench.config import Scenario
from stackduel.bench.sampler import RequestSampler, check_endpoint
from stackduel.errors import ConnectivityFailure


def _response(status: int = 200, body: bytes = b"abc") -> MagicMock:
    resp = MagicMock()
    resp.status_code = status
    resp.content = body
    return resp


def _session(*responses: object) -> MagicMock:
    session = MagicMock(spec=requests.Session)
    session.get.side_effect = list(responses)
    return session


class TestCheckEndpoint(unittest.TestCase):
    def test_reachable(self) -> None:
        session = _session(_response())
        check_endpoint("A", "http://localhost:3000", session=session)
        session.get.assert_called_once_with("http://localhost:3000", timeout=10.0)

    def test_error_status_still_reachable(self) -> None:
        check_endpoint("A", "http://x", session=_session(_response(status=503)))

    def test_connection_error(self) -> None:
        session = _session(requests.ConnectionError("refused"))
        with self.assertRaises(ConnectivityFailure) as ctx:
            check_endpoint("rari", "http://localhost:3000", session=session)
        self.assertEqual(ctx.exception.target, "rari")
        self.assertIn("rari server is not responding", str(ctx.exception))
        self.assertIn("http://localhost:3000", str(ctx.exception))

    @patch("stackduel.bench.sampler.requests.Session")
    def test_own_session_closed(self, mock_session_cls: MagicMock) -> None:
        own = mock_session_cls.return_value
        own.__enter__.return_value = own
        own.get.return_value = _response()
        check_endpoint("A", "http://localhost:3000")
        own.get.assert_called_once_with("http://localhost:3000", timeout=10.0)
        own.__exit__.assert_called_once()

    @patch("stackduel.bench.sampler.requests.Session")
    def test_own_session_closed_on_failure(self, mock_session_cls: MagicMock) -> None:
        own = mock_session_cls.return_value
        own.__enter__.return_value = own
        own.__exit__.return_value = False
        own.get.side_effect = requests.ConnectionError("refused")
        with self.assertRaises(ConnectivityFailure):
            check_endpoint("A", "http://localhost:3000")
        own.__exit__.assert_called_once()

    def test_given_session_left_open(self) -> None:
        session = _session(_response())
        check_endpoint("A", "http://localhost:3000", session=session)
        session.close.assert_not_called()


class TestRequestSampler(unittest.TestCase):
    def test_warmup_results_discarded(self) -> None:
        # 3 warmup failures, then 2 measured successes.
        session = _session(
            requests.ConnectionError("x"),
            _response(status=500),
            requests.Timeout("slow"),
            _response(body=b"12345"),
            _response(body=b"1234567"),
        )
        sampler = RequestSampler(session, sleep=lambda s: None)
        stats = sampler.sample("http://t/", 3, 2, 0)
        self.assertEqual(session.get.call_count, 5)
        self.assertEqual(stats.error_count, 0)
        self.assertEqual(stats.attempted, 2)
        self.assertEqual(stats.avg_size, 6)
        self.assertFalse(stats.failed)

    def test_non_2xx_counted_as_error(self) -> None:
        session = _session(_response(), _response(status=404), _response(status=302))
        stats = RequestSampler(session, sleep=lambda s: None).sample("http://t/", 0, 3, 0)
        self.assertEqual(stats.error_count, 2)
        self.assertAlmostEqual(stats.success_rate_pct, 100.0 / 3)

    def test_network_errors_counted_not_retried(self) -> None:
        session = _session(requests.ConnectionError("x"), _response())
        stats = RequestSampler(session, sleep=lambda s: None).sample("http://t/", 0, 2, 0)
        self.assertEqual(session.get.call_count, 2)
        self.assertEqual(stats.error_count, 1)
        self.assertEqual(stats.success_rate_pct, 50.0)

    def test_all_failed(self) -> None:
        session = _session(*[_response(status=500) for _ in range(4)])
        stats = RequestSampler(session, sleep=lambda s: None).sample("http://t/", 0, 4, 0)
        self.assertTrue(stats.failed)
        self.assertIsNone(stats.avg)

    def test_delay_after_each_measured_request(self) -> None:
        sleeps: list[float] = []
        session = _session(*[_response() for _ in range(5)])
        RequestSampler(session, sleep=sleeps.append).sample("http://t/", 2, 3, 10)
        self.assertEqual(sleeps, [0.01, 0.01, 0.01])

    def test_zero_delay_never_sleeps(self) -> None:
        sleeps: list[float] = []
        session = _session(*[_response() for _ in range(3)])
        RequestSampler(session, sleep=sleeps.append).sample("http://t/", 0, 3, 0)
        self.assertEqual(sleeps, [])

    def test_request_timeout_passed(self) -> None:
        session = _session(_response())
        RequestSampler(session, request_timeout_sec=2.5, sleep=lambda s: None).sample(
            "http://t/", 0, 1, 0
        )
        session.get.assert_called_once_with("http://t/", timeout=2.5)

    def test_sample_scenarios_urls(self) -> None:
        session = _session(*[_response() for _ in range(4)])
        sampler = RequestSampler(session, sleep=lambda s: None)
        results = sampler.sample_scenarios(
            "http://localhost:3000/",
            [Scenario("Homepage", "/"), Scenario("About", "about")],
            warmup_count=0,
            measured_count=2,
            inter_request_delay_ms=0,
        )
        self.assertEqual(list(results), ["Homepage", "About"])
        urls = [c.args[0] for c in session.get.call_args_list]
        self.assertEqual(
            urls,
            [
                "http://localhost:3000/",
                "http://localhost:3000/",
                "http://localhost:3000/about",
                "http://localhost:3000/about",
            ],
        )


class TestRequestSamplerLive(unittest.TestCase):
    """Sampling against a real server on localhost."""

    def test_server_always_500(self) -> None:
        with LocalServer(status=500) as server:
            stats = RequestSampler(sleep=lambda s: None).sample(server.url + "/", 0, 10, 0)
        self.assertEqual(stats.error_count, 10)
        self.assertEqual(stats.success_rate_pct, 0.0)
        self.assertTrue(stats.failed)

    def test_server_ok(self) -> None:
        with LocalServer(body=b"x" * 512) as server:
            stats = RequestSampler().sample(server.url + "/", 2, 5, 0)
            hits = server.hits
        self.assertEqual(hits, 7)
        self.assertEqual(stats.error_count, 0)
        self.assertEqual(stats.avg_size, 512)
        self.assertGreater(stats.min, 0.0)
        self.assertLessEqual(stats.p95, stats.max)

    def test_check_endpoint_live(self) -> None:
        with LocalServer() as server:
            check_endpoint("A", server.url)

    def test_check_endpoint_nothing_listening(self) -> None:
        with LocalServer() as server:
            url = server.url
        with self.assertRaises(ConnectivityFailure):
            check_endpoint("B", url, timeout=2.0)


if __name__ == "__main__":
    unittest.main()
