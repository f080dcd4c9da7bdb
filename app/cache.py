"""
Redis caching utilities for frequently accessed data
Doctor profiles and geocoding results are read far more often than written
"""
import json
import logging
import time
from typing import Any, Optional

from . import config
from .rate_limiter import get_redis_client

logger = logging.getLogger(__name__)

# Seconds to wait before retrying a failed Redis connection
RECONNECT_BACKOFF = 30

DOCTOR_PROFILE_TTL = 600
GEOCODE_TTL = 30 * 24 * 3600


class Cache:
    """Redis cache wrapper with automatic serialization"""

    def __init__(self):
        self.redis_client = None
        self._retry_after = 0.0

    def _get_client(self):
        """Lazy load Redis client"""
        if not config.CACHE_ENABLED:
            return None
        if self.redis_client is None:
            if time.monotonic() < self._retry_after:
                return None
            try:
                self.redis_client = get_redis_client()
            except Exception as e:
                logger.warning(f"⚠️ Redis cache unavailable: {e}")
                self._retry_after = time.monotonic() + RECONNECT_BACKOFF
                return None
        return self.redis_client

    def get(self, key: str) -> Optional[Any]:
        """Get value from cache"""
        client = self._get_client()
        if not client:
            return None

        try:
            value = client.get(key)
            if value:
                logger.debug(f"✅ Cache HIT: {key}")
                return json.loads(value)
            logger.debug(f"❌ Cache MISS: {key}")
            return None
        except Exception as e:
            logger.error(f"❌ Cache get error for {key}: {e}")
            return None

    def set(self, key: str, value: Any, ttl: int = 3600) -> bool:
        """Set value in cache with TTL (default 1 hour)"""
        client = self._get_client()
        if not client:
            return False

        try:
            client.setex(key, ttl, json.dumps(value, default=str))
            logger.debug(f"✅ Cache SET: {key} (TTL: {ttl}s)")
            return True
        except Exception as e:
            logger.error(f"❌ Cache set error for {key}: {e}")
            return False

    def delete(self, key: str) -> bool:
        """Delete value from cache"""
        client = self._get_client()
        if not client:
            return False

        try:
            client.delete(key)
            logger.debug(f"✅ Cache DELETE: {key}")
            return True
        except Exception as e:
            logger.error(f"❌ Cache delete error for {key}: {e}")
            return False


# Global cache instance
cache = Cache()


def get_doctor_profile_cached(doctor_id: int) -> Optional[dict]:
    return cache.get(f"doctor_profile:{doctor_id}")


def set_doctor_profile_cached(doctor_id: int, profile: dict) -> bool:
    return cache.set(f"doctor_profile:{doctor_id}", profile, DOCTOR_PROFILE_TTL)


def invalidate_doctor_profile_cache(doctor_id: int) -> bool:
    """Invalidate cached doctor profile after edits, verification or new reviews"""
    return cache.delete(f"doctor_profile:{doctor_id}")


def _geocode_key(address: str) -> str:
    return "geocode:" + " ".join(address.lower().split())


def get_geocode_cached(address: str) -> Optional[dict]:
    return cache.get(_geocode_key(address))


def set_geocode_cached(address: str, result: dict) -> bool:
    return cache.set(_geocode_key(address), result, GEOCODE_TTL)


def get_cache_stats() -> dict:
    """Get cache statistics"""
    client = cache._get_client()
    if not client:
        return {"available": False}

    try:
        info = client.info()
        hits = info.get("keyspace_hits", 0)
        misses = info.get("keyspace_misses", 0)
        return {
            "available": True,
            "used_memory": info.get("used_memory_human"),
            "connected_clients": info.get("connected_clients"),
            "hit_rate": hits / max(hits + misses, 1) * 100,
        }
    except Exception as e:
        logger.error(f"❌ Failed to get cache stats: {e}")
        return {"available": False, "error": str(e)}
