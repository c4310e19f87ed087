"""
Storefront catalog: products shown by product-grid and carousel components.
"""

from .cache import CatalogCache, CatalogSnapshot, InMemoryCatalogCache, RedisCatalogCache
from .fallback import fallback_catalog
from .resolver import CatalogResolver, ResolvedCatalog, build_catalog_resolver
from .storefront import ShopifyStorefrontClient, StorefrontClient

__all__ = [
    'CatalogCache',
    'CatalogSnapshot',
    'InMemoryCatalogCache',
    'RedisCatalogCache',
    'fallback_catalog',
    'CatalogResolver',
    'ResolvedCatalog',
    'build_catalog_resolver',
    'ShopifyStorefrontClient',
    'StorefrontClient',
]
