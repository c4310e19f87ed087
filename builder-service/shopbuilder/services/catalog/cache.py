"""
Per-app catalog cache with an explicit freshness policy.

An entry carries the time it was stored; it is served only while younger
than the cache's TTL.
"""
from datetime import datetime
from typing import Callable, Dict, List, Optional, Protocol

from pydantic import BaseModel

from shopbuilder.core.cache import CacheManager
from shopbuilder.models.schemas.live_config import CatalogItem
from shopbuilder.utils.datetime_utils import age_seconds, utc_now
from shopbuilder.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_TTL_SECONDS = 30 * 60


class CatalogSnapshot(BaseModel):
    """Catalog items for one app and the moment they were fetched"""
    items: List[CatalogItem]
    last_updated: datetime

    def is_fresh(self, ttl_seconds: int, now: Optional[datetime] = None) -> bool:
        return age_seconds(self.last_updated, now) < ttl_seconds


class CatalogCache(Protocol):
    async def get(self, app_key: str) -> Optional[CatalogSnapshot]:
        """Fresh snapshot for the app, or None when absent or expired"""
        ...

    async def set(self, app_key: str, items: List[CatalogItem]) -> CatalogSnapshot:
        ...


class InMemoryCatalogCache:
    """
    Process-local cache keyed by app key.

    ``clock`` is injectable so expiry can be tested without sleeping.
    """

    def __init__(
        self,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        clock: Callable[[], datetime] = utc_now
    ):
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._entries: Dict[str, CatalogSnapshot] = {}

    async def get(self, app_key: str) -> Optional[CatalogSnapshot]:
        snapshot = self._entries.get(app_key)
        if snapshot is None:
            logger.debug("catalog.cache.miss", extra={"app_key": app_key})
            return None

        if not snapshot.is_fresh(self.ttl_seconds, self.clock()):
            logger.debug("catalog.cache.expired", extra={"app_key": app_key})
            del self._entries[app_key]
            return None

        logger.debug("catalog.cache.hit", extra={"app_key": app_key, "items": len(snapshot.items)})
        return snapshot

    async def set(self, app_key: str, items: List[CatalogItem]) -> CatalogSnapshot:
        snapshot = CatalogSnapshot(items=list(items), last_updated=self.clock())
        self._entries[app_key] = snapshot
        logger.info("catalog.cache.stored", extra={"app_key": app_key, "items": len(items)})
        return snapshot

    def clear(self) -> None:
        self._entries.clear()


class RedisCatalogCache:
    """Catalog cache shared between workers through Redis"""

    key_prefix = "shopbuilder:catalog:"

    def __init__(self, cache: CacheManager, ttl_seconds: int = DEFAULT_TTL_SECONDS):
        self.cache = cache
        self.ttl_seconds = ttl_seconds

    def _key(self, app_key: str) -> str:
        return f"{self.key_prefix}{app_key}"

    async def get(self, app_key: str) -> Optional[CatalogSnapshot]:
        data = await self.cache.get(self._key(app_key))
        if data is None:
            return None

        snapshot = CatalogSnapshot.model_validate(data)
        # Entries written under a longer TTL still expire by age
        if not snapshot.is_fresh(self.ttl_seconds):
            return None
        return snapshot

    async def set(self, app_key: str, items: List[CatalogItem]) -> CatalogSnapshot:
        snapshot = CatalogSnapshot(items=list(items), last_updated=utc_now())
        await self.cache.set(self._key(app_key), snapshot.model_dump(mode="json"), ttl=self.ttl_seconds)
        return snapshot
