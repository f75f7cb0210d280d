"""Resilience layer — shields the app from unreliable external providers.

Modules:
    config           Frozen breaker/limiter configs built from settings
    errors           Exception variants surfaced by the layer
    rate_limiter     Per-host token/concurrency gate (non-queuing)
    circuit_breaker  Per-host CLOSED/OPEN/HALF_OPEN failure gate
    registry         Owns per-host breakers and limiters (init/shutdown)
    fetch_client     Allowlist → limiter → breaker → httpx, with retries

Call path:
    ResilientFetchClient.fetch_json
        → RateLimiter.execute → CircuitBreaker.execute → httpx request
"""
