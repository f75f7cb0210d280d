"""Error taxonomy for outbound calls.

Gate errors (raised by the breaker and the limiter themselves) are kept apart
from the fetch errors surfaced to callers, so each layer stays testable on its
own. The fetch client translates gate errors into fetch variants.
"""

from enum import Enum


# ---------- Gate errors ----------


class RateLimitExceededError(Exception):
    """The limiter refused to dispatch a call right now."""

    def __init__(self, name: str, reason: str):
        super().__init__(f"Rate limit exceeded for {name} ({reason})")
        self.name = name
        self.reason = reason  # concurrency | min_time | reservoir


class CircuitBreakerError(Exception):
    """The breaker rejected a call without invoking it."""

    def __init__(self, name: str, state: str, retry_at: float | None = None):
        super().__init__(f"Circuit breaker {name} is {state.upper()}")
        self.name = name
        self.state = state
        self.retry_at = retry_at


class CircuitBreakerTimeoutError(Exception):
    """The guarded call did not settle within the breaker timeout."""

    def __init__(self, name: str, timeout: float):
        super().__init__(f"Circuit breaker {name} timed out after {timeout:.2f}s")
        self.name = name
        self.timeout = timeout


# ---------- Fetch errors ----------


class FetchErrorKind(str, Enum):
    TIMEOUT = "timeout"
    HTTP = "http"
    NETWORK = "network"


class ExternalFetchError(Exception):
    """Base for everything ResilientFetchClient raises."""

    kind: FetchErrorKind = FetchErrorKind.NETWORK
    retryable: bool = False

    def __init__(self, message: str, target: str | None = None):
        super().__init__(message)
        self.message = message
        self.target = target


class FetchTimeoutError(ExternalFetchError):
    kind = FetchErrorKind.TIMEOUT
    retryable = True


class HttpStatusError(ExternalFetchError):
    kind = FetchErrorKind.HTTP

    def __init__(self, status: int, target: str | None = None, retry_after: float | None = None):
        super().__init__(f"HTTP_{status}", target)
        self.status = status
        self.retry_after = retry_after

    @property
    def retryable(self) -> bool:
        return self.status == 429 or self.status >= 500

    @property
    def bucket(self) -> str:
        return "5xx" if self.status >= 500 else "4xx"


class NetworkError(ExternalFetchError):
    """Connection failures and unparsable responses."""

    retryable = True


class InvalidUrlError(ExternalFetchError):
    retryable = False

    def __init__(self, url: str):
        super().__init__("invalid_url")
        self.url = url


class HostNotAllowedError(ExternalFetchError):
    retryable = False

    def __init__(self, host: str):
        super().__init__("host_not_allowed")
        self.host = host


class RateLimitedError(ExternalFetchError):
    retryable = True


class CircuitOpenError(ExternalFetchError):
    """Surfaced without retrying; callers fall back to cached or degraded data."""

    retryable = False

    def __init__(self, target: str | None = None, retry_at: float | None = None):
        super().__init__("circuit_open", target)
        self.retry_at = retry_at


class RequestCancelledError(ExternalFetchError):
    retryable = False

    def __init__(self, target: str | None = None):
        super().__init__("cancelled", target)
