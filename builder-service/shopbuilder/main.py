"""
Shop App Builder API.

Routes:
- ``/app/builder/{app_key}``       builder palette, template save/load
- ``/api/live-config/{app_key}``   snapshot polled by preview devices
- ``/api/v1/components``           component palette export
- ``/health/live``, ``/health/ready``

Storage and catalog services are built once in the lifespan and kept on
``app.state``.
"""
import time
import uuid
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from shopbuilder.api.v1 import builder, components, health, live_config
from shopbuilder.config import settings
from shopbuilder.core.cache import CacheManager, cache_manager
from shopbuilder.core.database import db_manager
from shopbuilder.core.errors import PageNotFound, PersistenceFailure
from shopbuilder.core.logger import setup_logging
from shopbuilder.services.catalog.resolver import CatalogResolver, build_catalog_resolver
from shopbuilder.services.persistence import PersistenceGateway, build_page_store
from shopbuilder.utils.logging import get_logger, log_context

logger = get_logger(__name__)


async def open_gateway() -> PersistenceGateway:
    """Page store for the configured backend. A database outage is fatal."""
    if settings.storage_backend == "postgres":
        try:
            await db_manager.connect()
            await db_manager.ensure_schema()
        except Exception as e:
            logger.critical("app.startup.postgresql.failed", exc_info=e)
            raise
        logger.info("app.startup.postgresql.connected")

    return PersistenceGateway(build_page_store(settings, db_manager))


async def open_catalog_resolver() -> CatalogResolver:
    """Catalog resolver for the configured cache. A Redis outage only degrades it."""
    shared_cache: Optional[CacheManager] = None
    if settings.catalog_cache_backend == "redis":
        try:
            await cache_manager.connect()
            shared_cache = cache_manager
            logger.info("app.startup.redis.connected")
        except Exception as e:
            logger.error("app.startup.redis.failed", exc_info=e)
            logger.warning("app.startup.redis.degraded_mode", message="Using in-process catalog cache")

    return build_catalog_resolver(settings, shared_cache)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()

    with log_context(correlation_id=str(uuid.uuid4()), operation="startup"):
        logger.info(
            "app.startup.started",
            extra={
                "version": settings.app_version,
                "environment": settings.environment,
                "storage_backend": settings.storage_backend,
                "catalog_cache_backend": settings.catalog_cache_backend,
                "storefront": settings.storefront_config,
            }
        )
        app.state.gateway = await open_gateway()
        app.state.catalog_resolver = await open_catalog_resolver()
        logger.info("app.startup.completed", extra={"preview_slug": settings.preview_slug})

    yield

    with log_context(correlation_id=str(uuid.uuid4()), operation="shutdown"):
        if cache_manager.is_connected:
            await cache_manager.disconnect()
        if db_manager.is_connected:
            await db_manager.disconnect()
        logger.info("app.shutdown.completed")


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Page composition, live preview configuration and React Native generation for mobile shops",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def correlation_middleware(request: Request, call_next):
    """Attach a correlation id to every request and log its outcome"""
    correlation_id = request.headers.get("X-Correlation-ID") or str(uuid.uuid4())
    started = time.perf_counter()

    with log_context(correlation_id=correlation_id):
        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "http.request.failed",
                extra={"method": request.method, "path": request.url.path},
                exc_info=e
            )
            raise

        logger.performance(
            "http.request.completed",
            duration_ms=(time.perf_counter() - started) * 1000,
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
            }
        )
        response.headers["X-Correlation-ID"] = correlation_id
        return response


def _error_body(request: Request, error: str, message: str) -> dict:
    return {
        "error": error,
        "message": message,
        "correlation_id": request.headers.get("X-Correlation-ID", "unknown"),
    }


@app.exception_handler(PageNotFound)
async def page_not_found_handler(request: Request, exc: PageNotFound):
    logger.info("app.exception.page_not_found", message=str(exc), extra={"path": request.url.path})
    return JSONResponse(status_code=404, content=_error_body(request, "page_not_found", str(exc)))


@app.exception_handler(PersistenceFailure)
async def persistence_failure_handler(request: Request, exc: PersistenceFailure):
    logger.error("app.exception.persistence", extra={"path": request.url.path}, exc_info=exc)
    return JSONResponse(
        status_code=503,
        content=_error_body(request, "storage_unavailable", "Saved pages are temporarily unavailable."),
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(
        "app.exception.unhandled",
        extra={"path": request.url.path, "exception_type": type(exc).__name__},
        exc_info=exc
    )
    return JSONResponse(
        status_code=500,
        content=_error_body(request, "internal_server_error", "An unexpected error occurred. Please try again later."),
    )


app.include_router(health.router, tags=["Health"])
app.include_router(live_config.router, prefix="/api", tags=["Live Config"])
app.include_router(components.router, prefix="/api/v1", tags=["Components"])
app.include_router(builder.router, prefix="/app", tags=["Builder"])


@app.get("/")
async def root():
    return {
        "service": settings.app_name,
        "version": settings.app_version,
        "status": "running",
        "docs": "/docs",
        "preview_slug": settings.preview_slug,
        "routes": {
            "builder": "/app/builder/{app_key}",
            "live_config": "/api/live-config/{app_key}",
            "components": "/api/v1/components",
            "health": ["/health/live", "/health/ready"],
        },
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "shopbuilder.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
