"""
Demo catalog served when neither the cache nor the storefront has products.
"""
from typing import List

from shopbuilder.models.schemas.live_config import CatalogItem

DEMO_PRODUCTS = [
    {
        "id": "gid://shopify/Product/001",
        "title": "Wireless Earbuds Pro",
        "handle": "wireless-earbuds-pro",
        "image_url": "https://images.unsplash.com/photo-1590658165737-15a047b7692f?w=400&h=400&fit=crop&crop=center",
        "price": "129.99",
    },
    {
        "id": "gid://shopify/Product/002",
        "title": "Smart Watch Series X",
        "handle": "smart-watch-series-x",
        "image_url": "https://images.unsplash.com/photo-1523275335684-37898b6baf30?w=400&h=400&fit=crop&crop=center",
        "price": "249.99",
    },
    {
        "id": "gid://shopify/Product/003",
        "title": "Premium Phone Case",
        "handle": "premium-phone-case",
        "image_url": "https://images.unsplash.com/photo-1601593346740-925612772716?w=400&h=400&fit=crop&crop=center",
        "price": "39.99",
    },
    {
        "id": "gid://shopify/Product/004",
        "title": "Bluetooth Speaker Mini",
        "handle": "bluetooth-speaker-mini",
        "image_url": "https://images.unsplash.com/photo-1608043152269-423dbba4e7e1?w=400&h=400&fit=crop&crop=center",
        "price": "79.99",
    },
]


def store_vendor_name(app_key: str) -> str:
    """``demo.myshopify.com`` -> ``demo Store``"""
    return f"{app_key.split('.')[0]} Store"


def fallback_catalog(app_key: str) -> List[CatalogItem]:
    """Deterministic, non-empty demo catalog for an app."""
    vendor = store_vendor_name(app_key)
    return [CatalogItem(vendor=vendor, **product) for product in DEMO_PRODUCTS]
