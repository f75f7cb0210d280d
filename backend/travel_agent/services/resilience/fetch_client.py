"""Resilient fetch client — the single call path for outbound JSON requests.

Every attempt goes allowlist → rate limiter → circuit breaker → httpx, and is
reported to the metrics sink. 429/5xx, timeouts, network errors and bad JSON
are retried with exponential backoff; other 4xx, disallowed hosts and open
breakers are raised at once.
"""

import asyncio
import logging
import random
import time
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Callable

import httpx

from travel_agent.config import settings
from travel_agent.services.metrics import MetricsRegistry
from travel_agent.services.resilience.errors import (
    CircuitBreakerError,
    CircuitBreakerTimeoutError,
    CircuitOpenError,
    ExternalFetchError,
    FetchTimeoutError,
    HostNotAllowedError,
    HttpStatusError,
    InvalidUrlError,
    NetworkError,
    RateLimitedError,
    RateLimitExceededError,
    RequestCancelledError,
)
from travel_agent.services.resilience.registry import ResilienceRegistry

logger = logging.getLogger(__name__)

# Backoff (seconds)
BASE_DELAY = 0.2
BACKOFF_MULTIPLIER = 1.5
MAX_DELAY = 10.0
JITTER_FACTOR = 0.25
RETRY_AFTER_JITTER = 0.1
MIN_RETRY_AFTER_DELAY = 0.1


def _counts_against_breaker(exc: BaseException) -> bool:
    """Non-retryable 4xx answers say nothing about provider health."""
    return not (isinstance(exc, HttpStatusError) and not exc.retryable)


def parse_retry_after(value: str | None) -> float | None:
    """Parse a Retry-After header: delta-seconds or an HTTP-date."""
    if not value:
        return None
    value = value.strip()
    try:
        return max(0.0, float(value))
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max(0.0, (when - datetime.now(timezone.utc)).total_seconds())


def _truncate(url: str, limit: int = 100) -> str:
    return url if len(url) <= limit else url[:limit] + "..."


class ResilientFetchClient:
    """Allowlisted, rate-limited, breaker-guarded JSON client."""

    def __init__(
        self,
        registry: ResilienceRegistry,
        allowlist: frozenset[str] | set[str] | None = None,
        metrics: MetricsRegistry | None = None,
        http_client: httpx.AsyncClient | None = None,
        *,
        default_timeout: float | None = None,
        default_retries: int | None = None,
        sleep: Callable[[float], Any] = asyncio.sleep,
        rand: Callable[[], float] = random.random,
    ):
        self._registry = registry
        self._allowlist = frozenset(
            h.lower() for h in (allowlist if allowlist is not None else settings.allowlist)
        )
        self._metrics = metrics
        self._client = http_client
        self._owns_client = http_client is None
        self._default_timeout = default_timeout if default_timeout is not None else settings.fetch_timeout_ms / 1000
        self._default_retries = default_retries if default_retries is not None else settings.fetch_retries
        self._sleep = sleep
        self._rand = rand
        self._timeout_warned: set[str] = set()

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._default_timeout)
        return self._client

    def check_allowed(self, url: str) -> str:
        """Return the URL's host, or raise before any I/O happens."""
        try:
            parsed = httpx.URL(url)
        except (httpx.InvalidURL, TypeError, ValueError):
            raise InvalidUrlError(url) from None
        host = (parsed.host or "").lower()
        if not host or parsed.scheme not in ("http", "https"):
            raise InvalidUrlError(url)
        if host not in self._allowlist:
            logger.warning(f"Blocked outbound request to non-allowlisted host {host}")
            raise HostNotAllowedError(host)
        return host

    async def fetch_json(
        self,
        url: str,
        *,
        method: str = "GET",
        params: dict | None = None,
        headers: dict | None = None,
        data: dict | None = None,
        json: Any = None,
        timeout: float | None = None,
        retries: int | None = None,
        target: str | None = None,
        signal: asyncio.Event | None = None,
    ) -> Any:
        """Fetch and decode JSON.

        Args:
            url: Absolute http(s) URL; its host must be allowlisted.
            timeout: Network timeout per attempt, in seconds.
            retries: Extra attempts after the first (total = retries + 1).
            target: Breaker/limiter key and metrics label; defaults to the host.
            signal: Set it to stop further attempts.

        Raises:
            ExternalFetchError subclasses; see errors.py.
        """
        host = self.check_allowed(url)
        key = target or host
        timeout = timeout if timeout is not None else self._default_timeout
        retries = max(0, retries if retries is not None else self._default_retries)

        limiter = self._registry.limiter_for(key)
        breaker = self._registry.breaker_for(key)
        self._warn_inconsistent_timeout(key, timeout, breaker.config.timeout)

        client = await self._get_client()

        async def send() -> Any:
            return await self._send(client, method, url, params, headers, data, json, timeout, key, attempt)

        async def guarded() -> Any:
            return await breaker.execute(send, is_failure=_counts_against_breaker)

        last_error: ExternalFetchError | None = None
        for attempt in range(retries + 1):
            if signal is not None and signal.is_set():
                raise RequestCancelledError(key)

            start = time.monotonic()
            retry_after = None
            try:
                result = await limiter.execute(guarded)
            except RateLimitExceededError as e:
                last_error = RateLimitedError(str(e), key)
                self._observe(key, "rate_limited", start)
            except CircuitBreakerError as e:
                self._observe(key, "breaker_open", start)
                logger.debug(f"[{key}] circuit open, not retrying")
                raise CircuitOpenError(key, e.retry_at) from e
            except CircuitBreakerTimeoutError:
                last_error = FetchTimeoutError("timeout", key)
                self._observe(key, "timeout", start)
            except ExternalFetchError as e:
                last_error = e
                self._observe(key, self._bucket(e), start)
                if not e.retryable:
                    raise
                if isinstance(e, HttpStatusError):
                    retry_after = e.retry_after
            else:
                self._observe(key, "ok", start)
                return result

            if attempt < retries:
                delay = self._backoff_delay(attempt, retry_after)
                logger.debug(
                    f"[{key}] attempt {attempt + 1}/{retries + 1} failed "
                    f"({last_error.message}); retrying in {delay:.2f}s"
                )
                await self._sleep(delay)

        logger.error(f"[{key}] all {retries + 1} attempts failed: {last_error.message}")
        raise last_error

    async def _send(
        self,
        client: httpx.AsyncClient,
        method: str,
        url: str,
        params: dict | None,
        headers: dict | None,
        data: dict | None,
        json: Any,
        timeout: float,
        key: str,
        attempt: int,
    ) -> Any:
        logger.debug(f"[{key}] {method} {_truncate(url)} (attempt {attempt + 1})")
        try:
            resp = await client.request(
                method,
                url,
                params=params,
                headers=headers,
                data=data,
                json=json,
                timeout=timeout,
                # Redirect targets never pass through check_allowed
                follow_redirects=False,
            )
        except httpx.TimeoutException as e:
            raise FetchTimeoutError("timeout", key) from e
        except httpx.RequestError as e:
            logger.debug(f"[{key}] network error: {type(e).__name__}: {e}")
            raise NetworkError("network_error", key) from e

        if not resp.is_success:
            retry_after = parse_retry_after(
                resp.headers.get("retry-after") or resp.headers.get("x-retry-after")
            )
            logger.debug(f"[{key}] HTTP {resp.status_code}: {resp.text[:500]}")
            raise HttpStatusError(resp.status_code, key, retry_after=retry_after)

        try:
            return resp.json()
        except ValueError:
            logger.debug(f"[{key}] JSON parse error: {resp.text[:500]}")
            raise NetworkError("json_parse_error", key) from None

    def _backoff_delay(self, attempt: int, retry_after: float | None) -> float:
        jitter_unit = self._rand() * 2 - 1
        if retry_after is not None:
            delay = retry_after + retry_after * RETRY_AFTER_JITTER * jitter_unit
            return min(max(MIN_RETRY_AFTER_DELAY, delay), MAX_DELAY)
        base = BASE_DELAY * BACKOFF_MULTIPLIER ** attempt
        return min(base + base * JITTER_FACTOR * jitter_unit, MAX_DELAY)

    @staticmethod
    def _bucket(error: ExternalFetchError) -> str:
        if isinstance(error, HttpStatusError):
            return error.bucket
        if isinstance(error, FetchTimeoutError):
            return "timeout"
        return "network"

    def _observe(self, key: str, status: str, start: float) -> None:
        if self._metrics:
            self._metrics.observe_external(key, status, (time.monotonic() - start) * 1000)

    def _warn_inconsistent_timeout(self, key: str, timeout: float, breaker_timeout: float) -> None:
        if timeout > breaker_timeout and key not in self._timeout_warned:
            self._timeout_warned.add(key)
            logger.warning(
                f"[{key}] fetch timeout {timeout:.1f}s exceeds breaker timeout "
                f"{breaker_timeout:.1f}s; the breaker will time out first"
            )

    async def close(self):
        if self._client and self._owns_client:
            await self._client.aclose()
            self._client = None
