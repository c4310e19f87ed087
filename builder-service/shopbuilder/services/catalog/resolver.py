"""
Catalog resolution: cache, then storefront, then the demo catalog.
"""
from typing import List, Literal, Optional

from pydantic import BaseModel

from shopbuilder.config import Settings
from shopbuilder.core.cache import CacheManager
from shopbuilder.core.errors import CatalogUnavailable
from shopbuilder.models.schemas.live_config import CatalogItem
from shopbuilder.services.catalog.cache import CatalogCache, InMemoryCatalogCache, RedisCatalogCache
from shopbuilder.services.catalog.fallback import fallback_catalog
from shopbuilder.services.catalog.storefront import ShopifyStorefrontClient, StorefrontClient
from shopbuilder.utils.logging import get_logger

logger = get_logger(__name__)

CatalogSource = Literal["cache", "storefront", "fallback"]


class ResolvedCatalog(BaseModel):
    items: List[CatalogItem]
    source: CatalogSource


class CatalogResolver:
    """
    Resolves the catalog for an app. Never returns an empty list, and a
    storefront failure of any type falls back instead of raising.

    Storefront results are written to the cache; fallback results are not,
    so a later request retries the storefront.
    """

    def __init__(self, cache: CatalogCache, storefront: Optional[StorefrontClient] = None):
        self.cache = cache
        self.storefront = storefront

    async def _fetch(self, app_key: str) -> List[CatalogItem]:
        if self.storefront is None:
            raise CatalogUnavailable("No storefront client configured")
        return await self.storefront.fetch_catalog_items(app_key)

    async def resolve(self, app_key: str) -> ResolvedCatalog:
        snapshot = await self.cache.get(app_key)
        if snapshot is not None and snapshot.items:
            return ResolvedCatalog(items=snapshot.items, source="cache")

        try:
            items = await self._fetch(app_key)
        except Exception as e:
            logger.warning(
                "catalog.storefront.unavailable",
                message=str(e),
                extra={"app_key": app_key, "error_type": type(e).__name__},
                exc_info=None if isinstance(e, CatalogUnavailable) else e
            )
            items = []

        if items:
            await self.cache.set(app_key, items)
            return ResolvedCatalog(items=items, source="storefront")

        logger.info("catalog.fallback.used", extra={"app_key": app_key})
        return ResolvedCatalog(items=fallback_catalog(app_key), source="fallback")

    async def sync(self, app_key: str) -> int:
        """
        Refresh the cached catalog from the storefront.

        Returns:
            Number of items cached; 0 when the storefront was unavailable or empty
        """
        try:
            items = await self._fetch(app_key)
        except Exception as e:
            logger.warning(
                "catalog.sync.failed",
                message=str(e),
                extra={"app_key": app_key, "error_type": type(e).__name__},
                exc_info=None if isinstance(e, CatalogUnavailable) else e
            )
            return 0

        if not items:
            return 0

        await self.cache.set(app_key, items)
        logger.info("catalog.sync.completed", extra={"app_key": app_key, "items": len(items)})
        return len(items)


def build_catalog_resolver(config: Settings, cache_manager: Optional[CacheManager] = None) -> CatalogResolver:
    """Create the resolver selected by ``catalog_cache_backend``."""
    if config.catalog_cache_backend == "redis" and cache_manager is not None:
        cache = RedisCatalogCache(cache_manager, ttl_seconds=config.catalog_cache_ttl_seconds)
    else:
        cache = InMemoryCatalogCache(ttl_seconds=config.catalog_cache_ttl_seconds)

    storefront = ShopifyStorefrontClient(
        access_token=config.storefront_access_token,
        api_version=config.storefront_api_version,
        timeout=config.storefront_timeout,
        product_limit=config.storefront_product_limit,
    )
    return CatalogResolver(cache, storefront)
