"""
Redis client for mirroring published signal snapshots.

The in-memory snapshot is authoritative; Redis only lets out-of-process
readers see the latest signals. Any Redis failure is logged and ignored.
"""

import json
import logging
from typing import Any, Optional

import redis.asyncio as redis

from quantsignal.core.config import settings

logger = logging.getLogger(__name__)

# Global Redis connection pool
_redis_pool: Optional[redis.Redis] = None


async def init_redis(url: Optional[str] = None) -> Optional[redis.Redis]:
    """
    Initialize Redis connection pool.
    Called on application startup when REDIS_ENABLED is set.
    """
    global _redis_pool

    if _redis_pool is not None:
        return _redis_pool

    url = url or settings.redis_url
    try:
        _redis_pool = redis.from_url(url, encoding="utf-8", decode_responses=True)
        await _redis_pool.ping()
        logger.info(f"Redis connected: {url}")
        return _redis_pool
    except Exception as e:
        logger.warning(f"Redis connection failed: {e}. Snapshots stay in memory only.")
        _redis_pool = None
        return None


async def close_redis() -> None:
    """Close Redis connection pool."""
    global _redis_pool
    if _redis_pool:
        await _redis_pool.close()
        _redis_pool = None
        logger.info("Redis connection closed")


def get_redis() -> Optional[redis.Redis]:
    """Get the Redis connection pool."""
    return _redis_pool


class SignalMirror:
    """
    Keys:
    - signal:{SYMBOL}:{timeframe} -> Signal JSON
    - risk:{SYMBOL}:{timeframe}   -> RiskAssessment JSON
    - signals:meta                -> {generated_at, cycle, count}
    """

    def __init__(self, redis_client: Optional[redis.Redis] = None, ttl: Optional[int] = None):
        self._redis = redis_client
        self.ttl = ttl if ttl is not None else settings.redis_snapshot_ttl_seconds

    @property
    def redis(self) -> Optional[redis.Redis]:
        return self._redis or _redis_pool

    async def write(self, values: dict[str, str], meta: dict[str, Any]) -> bool:
        """Write one snapshot's worth of keys in a single pipeline."""
        if not self.redis:
            return False
        try:
            pipe = self.redis.pipeline()
            for key, value in values.items():
                pipe.set(key, value, ex=self.ttl)
            pipe.set("signals:meta", json.dumps(meta), ex=self.ttl)
            await pipe.execute()
            return True
        except Exception as e:
            logger.debug(f"Redis snapshot mirror failed: {e}")
            return False

    async def read(self, key: str) -> Optional[dict[str, Any]]:
        if not self.redis:
            return None
        try:
            value = await self.redis.get(key)
            return json.loads(value) if value else None
        except Exception as e:
            logger.debug(f"Redis read {key} failed: {e}")
            return None
