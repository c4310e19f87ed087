"""
Wire models for the live configuration payload and the storefront catalog.

Fields are snake_case in Python and camelCase on the wire.
"""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class CatalogItem(WireModel):
    """A storefront product as consumed by the preview runtime"""
    id: str
    title: str
    handle: Optional[str] = None
    image_url: str
    price: str
    compare_at_price: Optional[str] = None
    vendor: str = ""


class LiveInstance(WireModel):
    instance_id: str
    kind_id: str
    kind_type: str
    params: Dict[str, Any] = Field(default_factory=dict)
    position: int


class LiveConfigPayload(WireModel):
    """Snapshot of the current page plus catalog data for one app"""
    has_app: bool
    app_key: str
    catalog_items: List[CatalogItem]
    page_id: Optional[str] = None
    page_name: Optional[str] = None
    page_slug: Optional[str] = None
    instances: Optional[List[LiveInstance]] = None
    last_updated: Optional[str] = None
    message: Optional[str] = None
