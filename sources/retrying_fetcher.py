#!/usr/bin/env python3
"""
HTTP GET with rate limiting and exponential backoff.

A 404 is terminal and surfaces immediately as ``FetchErrorKind.NOT_FOUND``.
Rate-limit responses, server errors and network errors are retried with
``min(initial * 2**attempt, max)`` plus up to 30% added jitter until the
retry budget is spent, then surface as ``RETRIES_EXHAUSTED``.
"""

import enum
import logging
import random
import time
from typing import Any, Callable, Dict, Optional

import requests
from tenacity import RetryCallState, RetryError, Retrying, retry_if_exception, stop_after_attempt

from .rate_limiter import RateLimiter

logger = logging.getLogger(__name__)


class FetchErrorKind(enum.Enum):
    NOT_FOUND = "not_found"
    RATE_LIMITED = "rate_limited"
    SERVER_ERROR = "server_error"
    NETWORK_ERROR = "network_error"
    HTTP_ERROR = "http_error"
    RETRIES_EXHAUSTED = "retries_exhausted"


TRANSIENT_KINDS = frozenset({
    FetchErrorKind.RATE_LIMITED,
    FetchErrorKind.SERVER_ERROR,
    FetchErrorKind.NETWORK_ERROR,
})


class FetchError(Exception):
    """A single logical fetch failed."""

    def __init__(
        self,
        kind: FetchErrorKind,
        url: str,
        status: Optional[int] = None,
        detail: Optional[str] = None,
        attempts: int = 1,
    ):
        self.kind = kind
        self.url = url
        self.status = status
        self.detail = detail
        self.attempts = attempts
        super().__init__(self._describe())

    def _describe(self) -> str:
        parts = [self.kind.value]
        if self.status is not None:
            parts.append(f"HTTP {self.status}")
        if self.detail:
            parts.append(self.detail)
        if self.kind is FetchErrorKind.RETRIES_EXHAUSTED:
            parts.append(f"after {self.attempts} attempts")
        return f"{': '.join(parts)} ({self.url})"

    @property
    def is_transient(self) -> bool:
        return self.kind in TRANSIENT_KINDS


def is_transient(exc: BaseException) -> bool:
    return isinstance(exc, FetchError) and exc.is_transient


def backoff_delay(
    attempt: int,
    initial_delay: float,
    max_delay: float,
    jitter_ratio: float = 0.3,
    rng: Optional[random.Random] = None,
) -> float:
    """Delay in seconds before retry number ``attempt`` (0-based).

    Jitter is only ever added, so the delay never drops below the
    exponential base.
    """
    base = min(initial_delay * (2 ** attempt), max_delay)
    uniform = (rng or random).uniform
    return base + uniform(0, jitter_ratio * base)


class RetryingFetcher:
    """Fetch raw response bodies from one upstream host."""

    def __init__(
        self,
        rate_limiter: RateLimiter,
        user_agent: str,
        session: Optional[requests.Session] = None,
        max_retries: int = 5,
        initial_delay: float = 1.0,
        max_delay: float = 32.0,
        jitter_ratio: float = 0.3,
        timeout: float = 30,
        sleep: Callable[[float], None] = time.sleep,
        rng: Optional[random.Random] = None,
    ):
        if max_retries < 0:
            raise ValueError("max_retries must not be negative")
        self.rate_limiter = rate_limiter
        self.session = session or requests.Session()
        self.session.headers.update({'User-Agent': user_agent})
        self.max_retries = max_retries
        self.initial_delay = initial_delay
        self.max_delay = max_delay
        self.jitter_ratio = jitter_ratio
        self.timeout = timeout
        self._sleep = sleep
        self._rng = rng or random.Random()

    def fetch(self, url: str, params: Optional[Dict[str, Any]] = None) -> str:
        """Return the body of a 2xx response or raise :class:`FetchError`."""
        retryer = Retrying(
            stop=stop_after_attempt(self.max_retries + 1),
            wait=self._wait,
            retry=retry_if_exception(is_transient),
            sleep=self._sleep,
            before=self._before_attempt,
            before_sleep=self._log_retry,
        )
        try:
            return retryer(self._attempt, url, params)
        except RetryError as exc:
            last = exc.last_attempt.exception()
            raise FetchError(
                FetchErrorKind.RETRIES_EXHAUSTED,
                url,
                status=getattr(last, 'status', None),
                detail=getattr(getattr(last, 'kind', None), 'value', None),
                attempts=exc.last_attempt.attempt_number,
            ) from last

    def _before_attempt(self, retry_state: RetryCallState) -> None:
        self.rate_limiter.acquire()

    def _wait(self, retry_state: RetryCallState) -> float:
        return backoff_delay(
            retry_state.attempt_number - 1,
            self.initial_delay,
            self.max_delay,
            self.jitter_ratio,
            self._rng,
        )

    def _log_retry(self, retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception()
        delay = retry_state.next_action.sleep if retry_state.next_action else 0
        logger.info(
            "  -> %s, retrying in %.1fs (attempt %s/%s)",
            exc,
            delay,
            retry_state.attempt_number,
            self.max_retries + 1,
        )

    def _attempt(self, url: str, params: Optional[Dict[str, Any]]) -> str:
        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
        except requests.RequestException as exc:
            raise FetchError(FetchErrorKind.NETWORK_ERROR, url, detail=str(exc)) from exc

        status = response.status_code
        if 200 <= status < 300:
            return response.text
        if status == 404:
            raise FetchError(FetchErrorKind.NOT_FOUND, url, status=status)
        if status == 429:
            raise FetchError(FetchErrorKind.RATE_LIMITED, url, status=status)
        if status >= 500:
            raise FetchError(FetchErrorKind.SERVER_ERROR, url, status=status)
        raise FetchError(FetchErrorKind.HTTP_ERROR, url, status=status)
