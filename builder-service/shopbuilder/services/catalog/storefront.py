"""
Storefront client - fetches product data from the Shopify Admin GraphQL API.
"""
from typing import Any, Dict, List, Optional, Protocol

import httpx

from shopbuilder.core.errors import CatalogUnavailable
from shopbuilder.models.schemas.live_config import CatalogItem
from shopbuilder.utils.logging import get_logger

logger = get_logger(__name__)

PLACEHOLDER_IMAGE_URL = "https://images.unsplash.com/photo-1441986300917-64674bd600d8?w=400&h=400&fit=crop"
PLACEHOLDER_PRICE = "29.99"

PRODUCTS_QUERY = """
query Products($first: Int!) {
  products(first: $first) {
    edges {
      node {
        id
        title
        handle
        vendor
        images(first: 1) {
          edges { node { url altText } }
        }
        variants(first: 1) {
          edges { node { id title price compareAtPrice } }
        }
      }
    }
  }
}
"""


class StorefrontClient(Protocol):
    async def fetch_catalog_items(self, app_key: str) -> List[CatalogItem]:
        """
        Fetch the app's products.

        Raises:
            CatalogUnavailable: the storefront could not be reached or answered badly
        """
        ...


def _first_node(connection: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    edges = (connection or {}).get("edges") or []
    return (edges[0].get("node") or {}) if edges else {}


def _money(value: Any) -> Optional[str]:
    # Newer API versions return MoneyV2 objects instead of decimal strings
    if isinstance(value, dict):
        value = value.get("amount")
    return str(value) if value is not None else None


def parse_products(data: Dict[str, Any]) -> List[CatalogItem]:
    """Map a GraphQL products response to catalog items."""
    edges = (((data or {}).get("data") or {}).get("products") or {}).get("edges") or []

    items = []
    for edge in edges:
        node = edge.get("node") or {}
        image = _first_node(node.get("images"))
        variant = _first_node(node.get("variants"))
        items.append(CatalogItem(
            id=node["id"],
            title=node.get("title") or "",
            handle=node.get("handle"),
            image_url=image.get("url") or PLACEHOLDER_IMAGE_URL,
            price=_money(variant.get("price")) or PLACEHOLDER_PRICE,
            compare_at_price=_money(variant.get("compareAtPrice")),
            vendor=node.get("vendor") or "",
        ))
    return items


class ShopifyStorefrontClient:
    """
    Admin GraphQL client for a shop's product catalog.

    The app key is the shop domain (``<name>.myshopify.com``).
    """

    def __init__(
        self,
        access_token: Optional[str],
        api_version: str = "2024-07",
        timeout: float = 10.0,
        product_limit: int = 10,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.access_token = access_token
        self.api_version = api_version
        self.timeout = timeout
        self.product_limit = product_limit
        self.transport = transport

    def _endpoint(self, app_key: str) -> str:
        return f"https://{app_key}/admin/api/{self.api_version}/graphql.json"

    async def fetch_catalog_items(self, app_key: str) -> List[CatalogItem]:
        if not self.access_token:
            raise CatalogUnavailable("No storefront access token configured")

        headers = {
            "Content-Type": "application/json",
            "X-Shopify-Access-Token": self.access_token,
        }
        payload = {"query": PRODUCTS_QUERY, "variables": {"first": self.product_limit}}

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(self._endpoint(app_key), json=payload, headers=headers)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as e:
            raise CatalogUnavailable(
                f"Storefront returned {e.response.status_code} for {app_key}"
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise CatalogUnavailable(f"Storefront request failed for {app_key}: {e}") from e

        if not isinstance(data, dict):
            raise CatalogUnavailable(f"Unexpected storefront response for {app_key}: {type(data).__name__} body")

        if data.get("errors"):
            raise CatalogUnavailable(f"Storefront query errors for {app_key}: {data['errors']}")

        try:
            items = parse_products(data)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise CatalogUnavailable(f"Malformed storefront response for {app_key}: {e}") from e

        logger.info("catalog.storefront.fetched", extra={"app_key": app_key, "items": len(items)})
        return items
