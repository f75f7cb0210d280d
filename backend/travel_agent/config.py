from pydantic_settings import BaseSettings

DEFAULT_ALLOWLIST = ",".join([
    "api.open-meteo.com",
    "geocoding-api.open-meteo.com",
    "restcountries.com",
    "api.search.brave.com",
    "api.opentripmap.com",
    "api.vectara.io",
    "test.api.amadeus.com",
    "api.amadeus.com",
])


class Settings(BaseSettings):
    # CORS
    cors_origins: str = "http://localhost:5173"

    # Redis
    redis_url: str = "redis://localhost:6379/0"

    # Amadeus
    amadeus_client_id: str = ""
    amadeus_client_secret: str = ""
    amadeus_base_url: str = "https://test.api.amadeus.com"

    # Outbound fetch
    fetch_allowlist: str = DEFAULT_ALLOWLIST
    fetch_timeout_ms: int = 4000
    fetch_retries: int = 3

    # Circuit breaker (per host)
    breaker_failure_threshold: int = 5
    breaker_success_threshold: int = 3
    breaker_timeout_ms: int = 10000
    breaker_reset_timeout_ms: int = 30000
    breaker_monitoring_period_ms: int = 10000
    breaker_half_open_max_calls: int = 1

    # Rate limiter (per host)
    rate_limit_max_concurrent: int = 2
    rate_limit_min_time_ms: int = 200
    rate_limit_reservoir: int = 100
    rate_limit_refresh_amount: int = 10
    rate_limit_refresh_interval_ms: int = 60000

    # Per-host overrides, e.g. {"api.amadeus.com": {"min_time_ms": 500, "max_concurrent": 1}}
    resilience_host_overrides: dict[str, dict[str, float]] = {}

    # IRROPS
    irrops_max_alternatives: int = 5
    irrops_max_options: int = 3
    irrops_currency: str = "USD"
    alternative_cache_ttl: int = 900

    @property
    def cors_origin_list(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",")]

    @property
    def allowlist(self) -> frozenset[str]:
        return frozenset(
            host.strip().lower() for host in self.fetch_allowlist.split(",") if host.strip()
        )

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


settings = Settings()
