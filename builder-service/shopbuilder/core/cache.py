"""
Redis connection shared by API workers.

Values are stored as JSON with a TTL. A Redis error is logged and reported
as a miss (or a failed write); callers fall back to fetching fresh data.
"""
import json
from typing import Any, Optional
import redis.asyncio as redis

from shopbuilder.config import Settings, settings as default_settings
from shopbuilder.utils.logging import get_logger

logger = get_logger(__name__)


class CacheManager:
    """
    Owns the Redis client.

    ``client`` can be passed directly; the manager then counts as connected
    and ``connect()`` is not needed.
    """

    def __init__(self, config: Optional[Settings] = None, client: Optional[redis.Redis] = None):
        self.config = config or default_settings
        self.client: Optional[redis.Redis] = client
        self._connected = client is not None

    async def connect(self) -> None:
        """Open a connection pool and ping it. Raises on failure."""
        self.client = redis.from_url(
            self.config.redis_url,
            encoding="utf-8",
            decode_responses=True,
            max_connections=self.config.redis_max_connections
        )
        try:
            await self.client.ping()
        except Exception:
            self._connected = False
            await self.client.aclose()
            raise

        self._connected = True
        logger.info("cache.redis.connected", extra={"url": self.config.redis_url})

    async def disconnect(self) -> None:
        if self.client:
            await self.client.aclose()
        self._connected = False
        logger.info("cache.redis.disconnected")

    async def ping(self) -> bool:
        if not self._connected or not self.client:
            return False
        return bool(await self.client.ping())

    async def get(self, key: str) -> Optional[Any]:
        """Decoded value for ``key``, or None when missing, undecodable or Redis is down."""
        if not self._connected or not self.client:
            return None

        try:
            cached = await self.client.get(key)
        except Exception as e:
            logger.warning("cache.redis.get_failed", extra={"key": key, "error": str(e)})
            return None

        if cached is None:
            return None

        try:
            return json.loads(cached)
        except ValueError:
            logger.warning("cache.redis.corrupt_entry", extra={"key": key})
            return None

    async def set(self, key: str, value: Any, ttl: int) -> bool:
        """Store ``value`` as JSON for ``ttl`` seconds. False when the write did not happen."""
        if not self._connected or not self.client:
            return False

        try:
            await self.client.setex(key, ttl, json.dumps(value))
        except Exception as e:
            logger.warning("cache.redis.set_failed", extra={"key": key, "error": str(e)})
            return False
        return True

    @property
    def is_connected(self) -> bool:
        return self._connected


cache_manager = CacheManager()
