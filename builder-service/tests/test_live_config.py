import asyncio

import pytest

from shopbuilder.core.errors import PersistenceFailure
from shopbuilder.services.catalog.resolver import CatalogResolver
from shopbuilder.services.catalog.cache import InMemoryCatalogCache
from shopbuilder.services.live_config import NO_PAGES_MESSAGE, LiveConfigService

from tests.factories import APP_KEY, make_instance


class FailingStorefront:
    async def fetch_catalog_items(self, app_key):
        raise RuntimeError("storefront exploded")


def save(gateway, name, instances):
    return asyncio.run(gateway.save_page(APP_KEY, name, instances))


class TestLiveConfigEndpoint:
    def test_no_pages(self, client):
        response = client.get(f"/api/live-config/{APP_KEY}")

        assert response.status_code == 200
        body = response.json()
        assert body["hasApp"] is False
        assert body["message"] == NO_PAGES_MESSAGE
        assert len(body["catalogItems"]) == 4
        assert "instances" not in body
        assert "pages" not in body

    def test_headers(self, client):
        response = client.get(f"/api/live-config/{APP_KEY}")

        assert response.headers["Access-Control-Allow-Origin"] == "*"
        assert response.headers["Cache-Control"] == "no-cache, no-store, must-revalidate"
        assert "X-Correlation-ID" in response.headers

    def test_current_page_payload(self, client, gateway):
        page_id = save(gateway, "Home", [
            make_instance("mobile-header", {"logoText": "Demo"}),
            make_instance("banner", {"title": "Sale"}, position=1),
        ])

        body = client.get(f"/api/live-config/{APP_KEY}").json()

        assert body["hasApp"] is True
        assert body["pageId"] == page_id
        assert body["pageSlug"] == "home"
        assert [inst["kindId"] for inst in body["instances"]] == ["mobile-header", "banner"]
        assert [inst["position"] for inst in body["instances"]] == [0, 1]
        assert body["instances"][1]["kindType"] == "BANNER"
        assert body["instances"][1]["params"] == {"title": "Sale"}
        assert body["lastUpdated"].endswith("Z")

    def test_preview_slug_wins_over_newer_page(self, client, gateway):
        save(gateway, "Live Preview", [make_instance("spacer")])
        save(gateway, "Draft", [make_instance("button")])

        body = client.get(f"/api/live-config/{APP_KEY}").json()
        assert body["pageSlug"] == "live-preview"

    def test_store_failure_returns_500(self, client, store):
        async def broken(app_key_or_id):
            raise OSError("connection reset")

        store.find_app = broken

        response = client.get(f"/api/live-config/{APP_KEY}")

        assert response.status_code == 500
        assert response.json() == {"hasApp": False, "error": "Failed to fetch configuration"}
        assert response.headers["Cache-Control"] == "no-cache, no-store, must-revalidate"


class TestLiveConfigService:
    @pytest.mark.asyncio
    async def test_catalog_failure_does_not_change_has_app(self, gateway):
        resolver = CatalogResolver(InMemoryCatalogCache(), FailingStorefront())
        service = LiveConfigService(gateway, resolver)

        empty = await service.build_payload(APP_KEY)
        assert empty.has_app is False
        assert empty.catalog_items

        await gateway.save_page(APP_KEY, "Home", [make_instance("banner")])
        payload = await service.build_payload(APP_KEY)
        assert payload.has_app is True
        assert payload.catalog_items

    @pytest.mark.asyncio
    async def test_renamed_kind_resolves_from_name(self, gateway, resolver):
        await gateway.save_page(APP_KEY, "Home", [make_instance("product-grid")])
        page = await gateway.load_latest_page(APP_KEY)
        stored = page.instances[0].model_copy(update={"kind_type": "LEGACY", "kind_name": "Featured Collection"})

        service = LiveConfigService(gateway, resolver)
        assert service._to_live_instance(stored).kind_id == "featured-collection"

    @pytest.mark.asyncio
    async def test_store_failure_propagates(self, gateway, resolver, store):
        async def broken(app_key_or_id):
            raise OSError("connection reset")

        store.find_app = broken

        with pytest.raises(PersistenceFailure):
            await LiveConfigService(gateway, resolver).build_payload(APP_KEY)
