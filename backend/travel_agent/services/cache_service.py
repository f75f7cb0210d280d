"""Redis cache service for alternative-flight search results."""

import json
import logging
from typing import Any

import redis.asyncio as redis

from travel_agent.config import settings

logger = logging.getLogger(__name__)

# TTLs in seconds
TTL_ALTERNATIVES = settings.alternative_cache_ttl  # 15 minutes by default


class CacheService:
    """Redis-backed cache; every operation degrades to a miss when Redis is down."""

    def __init__(self, url: str | None = None):
        self._url = url or settings.redis_url
        self._redis: redis.Redis | None = None

    async def _get_redis(self) -> redis.Redis | None:
        if self._redis is None:
            try:
                self._redis = redis.from_url(
                    self._url,
                    encoding="utf-8",
                    decode_responses=True,
                )
                await self._redis.ping()
            except Exception as e:
                logger.warning(f"Redis unavailable, cache disabled: {e}")
                self._redis = None
                return None
        return self._redis

    async def get(self, key: str) -> Any | None:
        """Get a value from cache. Returns None on miss or error."""
        try:
            r = await self._get_redis()
            if r is None:
                return None
            raw = await r.get(key)
            if raw is None:
                return None
            return json.loads(raw)
        except Exception as e:
            logger.debug(f"Cache get failed for {key}: {e}")
            return None

    async def set(self, key: str, value: Any, ttl: int = TTL_ALTERNATIVES) -> bool:
        """Set a value in cache with TTL. Returns False on error."""
        try:
            r = await self._get_redis()
            if r is None:
                return False
            await r.set(key, json.dumps(value, default=str), ex=ttl)
            return True
        except Exception as e:
            logger.debug(f"Cache set failed for {key}: {e}")
            return False

    # Typed helpers

    def alternatives_key(self, origin: str, dest: str, date: str, cabin: str) -> str:
        return f"alternatives:{origin}:{dest}:{date}:{cabin}"

    async def get_alternatives(self, origin: str, dest: str, date: str, cabin: str) -> list[dict] | None:
        return await self.get(self.alternatives_key(origin, dest, date, cabin))

    async def set_alternatives(self, origin: str, dest: str, date: str, cabin: str, data: list[dict]):
        await self.set(self.alternatives_key(origin, dest, date, cabin), data, TTL_ALTERNATIVES)

    async def close(self):
        if self._redis:
            await self._redis.aclose()
            self._redis = None


cache_service = CacheService()
