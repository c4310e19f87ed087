"""
Live Configuration Service - the snapshot polled by preview devices.

Combines the app's current page (reserved preview slug, else the latest
saved page) with its resolved product catalog.
"""
from typing import Optional

from shopbuilder.core.errors import PageNotFound
from shopbuilder.models.schemas.component_catalog import ComponentRegistry, component_registry
from shopbuilder.models.schemas.live_config import LiveConfigPayload, LiveInstance
from shopbuilder.models.schemas.page import ComponentInstance, Page
from shopbuilder.services.catalog.resolver import CatalogResolver
from shopbuilder.services.persistence import PersistenceGateway
from shopbuilder.utils.datetime_utils import to_iso_string
from shopbuilder.utils.logging import get_logger

logger = get_logger(__name__)

NO_PAGES_MESSAGE = "No mobile app or templates found for this shop"


class LiveConfigService:

    def __init__(
        self,
        gateway: PersistenceGateway,
        resolver: CatalogResolver,
        preview_slug: str = "live-preview",
        registry: Optional[ComponentRegistry] = None
    ):
        self.gateway = gateway
        self.resolver = resolver
        self.preview_slug = preview_slug
        self.registry = registry or component_registry

    def _display_kind_id(self, inst: ComponentInstance) -> str:
        # Stored records are matched by (type, name) so renamed kind ids still resolve
        if inst.kind_type and inst.kind_name:
            return self.registry.resolve_display_id(inst.kind_type, inst.kind_name)
        return inst.kind_id

    def _to_live_instance(self, inst: ComponentInstance) -> LiveInstance:
        kind_type = inst.kind_type
        if kind_type is None and self.registry.has_kind(inst.kind_id):
            kind_type = self.registry.get_kind(inst.kind_id).type

        return LiveInstance(
            instance_id=inst.instance_id,
            kind_id=self._display_kind_id(inst),
            kind_type=kind_type or "",
            params=inst.params,
            position=inst.position,
        )

    async def build_payload(self, app_key: str) -> LiveConfigPayload:
        """
        Build the live configuration for an app.

        Raises:
            PersistenceFailure: the page store failed
        """
        catalog = await self.resolver.resolve(app_key)

        try:
            page: Page = await self.gateway.load_current_page(app_key, self.preview_slug)
        except PageNotFound:
            logger.info("live_config.page.missing", extra={"app_key": app_key})
            return LiveConfigPayload(
                has_app=False,
                app_key=app_key,
                catalog_items=catalog.items,
                message=NO_PAGES_MESSAGE,
            )

        logger.debug(
            "live_config.page.resolved",
            extra={
                "app_key": app_key,
                "page_id": page.id,
                "slug": page.slug,
                "catalog_source": catalog.source,
            }
        )

        return LiveConfigPayload(
            has_app=True,
            app_key=app_key,
            page_id=page.id,
            page_name=page.name,
            page_slug=page.slug,
            instances=[self._to_live_instance(inst) for inst in page.ordered_instances()],
            catalog_items=catalog.items,
            last_updated=to_iso_string(page.updated_at),
        )
