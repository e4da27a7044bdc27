"""
Redis caching for slow upstream lookups (airport suggestions, geolocation)
"""
import json
import logging
import time
from typing import Any, Optional

from .rate_limiter import get_redis_client

logger = logging.getLogger(__name__)

# Seconds to wait before trying Redis again after a failed connection
RECONNECT_BACKOFF = 60


class Cache:
    """Redis cache wrapper with JSON serialization; every miss or error is a no-op"""

    def __init__(self):
        self.redis_client = None
        self._unavailable_until = 0.0

    def _get_client(self):
        """Lazy load Redis client"""
        if self.redis_client is not None:
            return self.redis_client
        if time.time() < self._unavailable_until:
            return None

        try:
            self.redis_client = get_redis_client()
        except Exception as e:
            logger.warning(f"⚠️ Redis cache unavailable: {e}")
            self._unavailable_until = time.time() + RECONNECT_BACKOFF
            return None
        return self.redis_client

    def get(self, key: str) -> Optional[Any]:
        client = self._get_client()
        if not client:
            return None

        try:
            value = client.get(key)
            if value:
                logger.debug(f"✅ Cache HIT: {key}")
                return json.loads(value)
            logger.debug(f"Cache MISS: {key}")
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
            client.setex(key, ttl, json.dumps(value))
            return True
        except Exception as e:
            logger.error(f"❌ Cache set error for {key}: {e}")
            return False

    def delete(self, key: str) -> bool:
        client = self._get_client()
        if not client:
            return False

        try:
            client.delete(key)
            return True
        except Exception as e:
            logger.error(f"❌ Cache delete error for {key}: {e}")
            return False


# Global cache instance
cache = Cache()
