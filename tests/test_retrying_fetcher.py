"""Tests for the retrying HTTP fetcher."""

import random

import pytest
import requests

from conftest import FakeClock, FakeResponse, FakeSession, build_fetcher
from sources.retrying_fetcher import FetchError, FetchErrorKind, RetryingFetcher, backoff_delay

URL = "https://en.wiktionary.org/api/rest_v1/page/definition/origin"


class CountingLimiter:
    def __init__(self):
        self.acquired = 0

    def acquire(self):
        self.acquired += 1


class TestFetch:
    """HTTP status handling and the retry budget"""

    def test_success_returns_body(self, clock):
        session = FakeSession([FakeResponse(200, '{"en": []}')])
        fetcher = build_fetcher(session, clock)

        assert fetcher.fetch(URL) == '{"en": []}'
        assert len(session.calls) == 1

    def test_user_agent_sent_on_session(self, clock):
        session = FakeSession([FakeResponse(200, "ok")])
        build_fetcher(session, clock).fetch(URL)

        assert session.headers["User-Agent"] == "LexiconTests/1.0 (tests@example.org)"

    def test_query_params_forwarded(self, clock):
        session = FakeSession([FakeResponse(200, "ok")])
        build_fetcher(session, clock).fetch(URL, params={"action": "query"})

        assert session.calls == [(URL, {"action": "query"})]

    def test_not_found_is_never_retried(self, clock):
        session = FakeSession([FakeResponse(404), FakeResponse(200, "ok")])
        fetcher = build_fetcher(session, clock)

        with pytest.raises(FetchError) as excinfo:
            fetcher.fetch(URL)

        assert excinfo.value.kind is FetchErrorKind.NOT_FOUND
        assert excinfo.value.status == 404
        assert len(session.calls) == 1
        assert clock.sleeps == []

    def test_other_client_errors_fail_immediately(self, clock):
        session = FakeSession([FakeResponse(403)])

        with pytest.raises(FetchError) as excinfo:
            build_fetcher(session, clock).fetch(URL)

        assert excinfo.value.kind is FetchErrorKind.HTTP_ERROR
        assert not excinfo.value.is_transient
        assert len(session.calls) == 1

    def test_four_server_errors_then_success(self, clock):
        session = FakeSession([FakeResponse(500)] * 4 + [FakeResponse(200, "body")])

        assert build_fetcher(session, clock).fetch(URL) == "body"
        assert len(session.calls) == 5

    def test_five_server_errors_then_success(self, clock):
        session = FakeSession([FakeResponse(503)] * 5 + [FakeResponse(200, "body")])

        assert build_fetcher(session, clock).fetch(URL) == "body"
        assert len(session.calls) == 6

    def test_six_server_errors_exhaust_retries(self, clock):
        session = FakeSession([FakeResponse(502)] * 6)

        with pytest.raises(FetchError) as excinfo:
            build_fetcher(session, clock).fetch(URL)

        error = excinfo.value
        assert error.kind is FetchErrorKind.RETRIES_EXHAUSTED
        assert error.attempts == 6
        assert error.status == 502
        assert isinstance(error.__cause__, FetchError)
        assert error.__cause__.kind is FetchErrorKind.SERVER_ERROR
        assert len(session.calls) == 6

    def test_rate_limited_responses_are_retried(self, clock):
        session = FakeSession([FakeResponse(429), FakeResponse(429), FakeResponse(200, "ok")])

        assert build_fetcher(session, clock).fetch(URL) == "ok"
        assert len(session.calls) == 3

    def test_network_errors_are_retried(self, clock):
        session = FakeSession([
            requests.ConnectionError("connection reset"),
            requests.Timeout("read timed out"),
            FakeResponse(200, "ok"),
        ])

        assert build_fetcher(session, clock).fetch(URL) == "ok"
        assert len(session.calls) == 3

    def test_network_errors_exhaust_as_retries_exhausted(self, clock):
        session = FakeSession([requests.ConnectionError("down")] * 3)

        with pytest.raises(FetchError) as excinfo:
            build_fetcher(session, clock, max_retries=2).fetch(URL)

        assert excinfo.value.kind is FetchErrorKind.RETRIES_EXHAUSTED
        assert excinfo.value.detail == "network_error"
        assert len(session.calls) == 3

    def test_limiter_acquired_before_every_attempt(self, clock):
        limiter = CountingLimiter()
        session = FakeSession([FakeResponse(500), FakeResponse(500), FakeResponse(200, "ok")])
        fetcher = RetryingFetcher(limiter, "ua", session=session, sleep=clock.sleep, rng=random.Random(1))

        fetcher.fetch(URL)

        assert limiter.acquired == 3

    def test_retry_sleeps_follow_exponential_backoff(self, clock):
        session = FakeSession([FakeResponse(500)] * 6)

        with pytest.raises(FetchError):
            build_fetcher(session, clock).fetch(URL)

        assert len(clock.sleeps) == 5
        for attempt, delay in enumerate(clock.sleeps):
            base = 2 ** attempt
            assert base <= delay <= base * 1.3

    def test_negative_retry_budget_rejected(self):
        with pytest.raises(ValueError):
            RetryingFetcher(CountingLimiter(), "ua", session=FakeSession(), max_retries=-1)


class TestBackoffDelay:
    """Delay computation"""

    def test_jitter_is_only_ever_added(self):
        class LowestRng:
            def uniform(self, low, high):
                return low

        assert backoff_delay(0, 1.0, 32.0, rng=LowestRng()) == 1.0
        assert backoff_delay(3, 1.0, 32.0, rng=LowestRng()) == 8.0

    def test_jitter_capped_at_thirty_percent(self):
        class HighestRng:
            def uniform(self, low, high):
                return high

        assert backoff_delay(2, 1.0, 32.0, rng=HighestRng()) == pytest.approx(5.2)

    @pytest.mark.parametrize("attempt", [5, 6, 10])
    def test_delay_capped_at_max(self, attempt):
        rng = random.Random(attempt)
        delay = backoff_delay(attempt, 1.0, 32.0, rng=rng)

        assert 32.0 <= delay <= 32.0 * 1.3
