import json

import pytest
from fastapi import Request

from shopbuilder.api.dependencies import get_gateway
from shopbuilder.core.errors import PageNotFound, PersistenceFailure
from shopbuilder.main import app, page_not_found_handler
from shopbuilder.services.persistence import MemoryPageStore, PersistenceGateway


class TestComponentsEndpoint:
    def test_catalog(self, client):
        body = client.get("/api/v1/components").json()
        assert [kind["id"] for kind in body["components"]][-1] == "spacer"

    def test_single_kind(self, client):
        body = client.get("/api/v1/components/banner").json()
        assert body["default_params"]["height"] == "200px"

    def test_unknown_kind_is_404(self, client):
        assert client.get("/api/v1/components/video").status_code == 404


class TestHealthEndpoints:
    def test_liveness(self, client):
        body = client.get("/health/live").json()
        assert body["status"] == "alive"

    def test_readiness(self, client):
        response = client.get("/health/ready")
        assert response.status_code == 200
        assert response.json()["ready"] is True

    def test_not_ready_without_page_store(self, client):
        app.state.gateway = None
        response = client.get("/health/ready")

        assert response.status_code == 503
        assert response.json()["ready"] is False


def test_root(client):
    body = client.get("/").json()
    assert body["status"] == "running"


class BrokenStore(MemoryPageStore):
    async def find_app(self, app_key_or_id):
        raise RuntimeError("connection reset")


def test_store_outage_is_503(client):
    app.state.gateway = PersistenceGateway(BrokenStore())
    app.dependency_overrides[get_gateway] = lambda: app.state.gateway

    response = client.get("/app/builder/demo.myshopify.com", headers={"X-Correlation-ID": "req-1"})

    assert response.status_code == 503
    assert response.json()["error"] == "storage_unavailable"
    assert response.json()["correlation_id"] == "req-1"
    assert response.headers["X-Correlation-ID"] == "req-1"


@pytest.mark.asyncio
async def test_missing_page_is_404_not_storage_outage():
    assert not issubclass(PageNotFound, PersistenceFailure)

    request = Request({
        "type": "http",
        "method": "GET",
        "path": "/api/live-config/demo.myshopify.com",
        "headers": [(b"x-correlation-id", b"req-2")],
        "query_string": b"",
    })
    response = await page_not_found_handler(request, PageNotFound("Page not found: p1"))

    assert response.status_code == 404
    assert json.loads(response.body) == {
        "error": "page_not_found",
        "message": "Page not found: p1",
        "correlation_id": "req-2",
    }
