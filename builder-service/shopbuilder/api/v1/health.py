"""
Health checks: liveness (process only) and readiness (page store and cache).
"""
import asyncio
import time
from typing import Any, Awaitable, Callable, Dict, Optional

from fastapi import APIRouter, Request, Response, status
from pydantic import BaseModel

from shopbuilder.config import settings
from shopbuilder.core.cache import cache_manager
from shopbuilder.core.database import db_manager
from shopbuilder.utils.datetime_utils import to_iso_string
from shopbuilder.utils.logging import get_logger

router = APIRouter()
logger = get_logger(__name__)


# ============================================================================
# RESPONSE MODELS
# ============================================================================

class LivenessResponse(BaseModel):
    """Liveness probe response"""
    status: str
    service: str
    version: str
    timestamp: str


class DependencyStatus(BaseModel):
    """Status of a single dependency"""
    name: str
    status: str  # "healthy", "degraded", "unhealthy"
    response_time_ms: Optional[float] = None
    message: Optional[str] = None
    last_checked: str


class ReadinessResponse(BaseModel):
    """Readiness probe response"""
    status: str  # "ready", "not_ready"
    ready: bool
    dependencies: Dict[str, DependencyStatus]
    timestamp: str


# ============================================================================
# DEPENDENCY CHECKS
# ============================================================================

async def _probe(name: str, probe: Callable[[], Awaitable[Any]], timeout: float, failed_status: str) -> DependencyStatus:
    """Run ``probe`` under a timeout and report how it went"""
    start = time.perf_counter()
    try:
        await asyncio.wait_for(probe(), timeout=timeout)
    except asyncio.TimeoutError:
        return DependencyStatus(
            name=name,
            status=failed_status,
            message=f"Timeout (>{timeout:g}s)",
            last_checked=to_iso_string()
        )
    except Exception as e:
        return DependencyStatus(name=name, status=failed_status, message=str(e), last_checked=to_iso_string())

    return DependencyStatus(
        name=name,
        status="healthy",
        response_time_ms=round((time.perf_counter() - start) * 1000, 2),
        message="Connected",
        last_checked=to_iso_string()
    )


async def check_page_store(request: Request) -> DependencyStatus:
    name = f"Page store ({settings.storage_backend})"

    if getattr(request.app.state, "gateway", None) is None:
        return DependencyStatus(name=name, status="unhealthy", message="Not initialized", last_checked=to_iso_string())

    if settings.storage_backend != "postgres":
        return DependencyStatus(name=name, status="healthy", message="Local", last_checked=to_iso_string())

    if not db_manager.is_connected:
        return DependencyStatus(name=name, status="unhealthy", message="Not connected", last_checked=to_iso_string())

    return await _probe(name, lambda: db_manager.fetch_val("SELECT 1"), timeout=2.0, failed_status="unhealthy")


async def check_catalog_cache() -> DependencyStatus:
    """Redis outages only degrade the catalog; it falls back to in-process caching."""
    name = f"Catalog cache ({settings.catalog_cache_backend})"

    if settings.catalog_cache_backend != "redis":
        return DependencyStatus(name=name, status="healthy", message="In-process", last_checked=to_iso_string())

    if not cache_manager.is_connected:
        return DependencyStatus(name=name, status="degraded", message="Not connected", last_checked=to_iso_string())

    return await _probe(name, cache_manager.ping, timeout=1.0, failed_status="degraded")


# ============================================================================
# LIVENESS PROBE
# ============================================================================

@router.get(
    "/health/live",
    response_model=LivenessResponse,
    status_code=status.HTTP_200_OK,
    tags=["Health"],
    summary="Liveness probe",
    description="Process liveness only. No dependency checks."
)
async def liveness_check() -> LivenessResponse:
    return LivenessResponse(
        status="alive",
        service=settings.app_name,
        version=settings.app_version,
        timestamp=to_iso_string()
    )


# ============================================================================
# READINESS PROBE
# ============================================================================

@router.get(
    "/health/ready",
    response_model=ReadinessResponse,
    tags=["Health"],
    summary="Readiness probe",
    description="Checks the page store and the catalog cache."
)
async def readiness_check(request: Request, response: Response) -> ReadinessResponse:
    """
    Readiness probe - can this instance serve builder and preview traffic?

    An unhealthy page store makes the instance not ready; a degraded
    catalog cache does not, since the catalog falls back to the storefront.
    """
    store_status, cache_status = await asyncio.gather(
        check_page_store(request),
        check_catalog_cache(),
    )

    dependencies = {
        "page_store": store_status,
        "catalog_cache": cache_status,
    }
    ready = store_status.status == "healthy"

    if not ready:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        logger.warning(
            "health.readiness.not_ready",
            extra={name: dep.status for name, dep in dependencies.items()}
        )

    return ReadinessResponse(
        status="ready" if ready else "not_ready",
        ready=ready,
        dependencies=dependencies,
        timestamp=to_iso_string()
    )
