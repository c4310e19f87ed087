"""
Request dependencies.

Services are built once in the application lifespan and kept on
``app.state``; tests replace them through ``app.dependency_overrides``.
"""
from fastapi import Depends, Request

from shopbuilder.config import settings
from shopbuilder.services.catalog.resolver import CatalogResolver
from shopbuilder.services.live_config import LiveConfigService
from shopbuilder.services.persistence import PersistenceGateway


def get_gateway(request: Request) -> PersistenceGateway:
    return request.app.state.gateway


def get_catalog_resolver(request: Request) -> CatalogResolver:
    return request.app.state.catalog_resolver


def get_live_config_service(
    gateway: PersistenceGateway = Depends(get_gateway),
    resolver: CatalogResolver = Depends(get_catalog_resolver),
) -> LiveConfigService:
    return LiveConfigService(gateway, resolver, preview_slug=settings.preview_slug)
