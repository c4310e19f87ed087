import pytest
from fastapi.testclient import TestClient

from shopbuilder.api.dependencies import get_catalog_resolver, get_gateway
from shopbuilder.main import app
from shopbuilder.services.catalog.cache import InMemoryCatalogCache
from shopbuilder.services.catalog.resolver import CatalogResolver
from shopbuilder.services.persistence import MemoryPageStore, PersistenceGateway


@pytest.fixture
def store():
    return MemoryPageStore()


@pytest.fixture
def gateway(store):
    return PersistenceGateway(store)


@pytest.fixture
def catalog_cache():
    return InMemoryCatalogCache()


@pytest.fixture
def resolver(catalog_cache):
    return CatalogResolver(catalog_cache, storefront=None)


@pytest.fixture
def client(gateway, resolver):
    app.state.gateway = gateway
    app.state.catalog_resolver = resolver
    app.dependency_overrides[get_gateway] = lambda: gateway
    app.dependency_overrides[get_catalog_resolver] = lambda: resolver
    yield TestClient(app)
    app.dependency_overrides.clear()
    del app.state.gateway
    del app.state.catalog_resolver
