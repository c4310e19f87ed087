"""Live configuration endpoint polled by preview devices."""
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from shopbuilder.api.dependencies import get_live_config_service
from shopbuilder.services.live_config import LiveConfigService
from shopbuilder.utils.logging import get_logger, log_context

router = APIRouter()
logger = get_logger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}

NO_CACHE_HEADERS = {
    **CORS_HEADERS,
    "Cache-Control": "no-cache, no-store, must-revalidate",
}


@router.get(
    "/live-config/{app_key}",
    tags=["Live Config"],
    summary="Current page and catalog for an app",
    description="Polled by preview devices. Never cached; readable cross-origin."
)
async def get_live_config(
    app_key: str,
    service: LiveConfigService = Depends(get_live_config_service),
) -> JSONResponse:
    with log_context(app_key=app_key, operation="live_config"):
        try:
            payload = await service.build_payload(app_key)
        except Exception as e:
            logger.error(
                "live_config.request.failed",
                extra={"error_type": type(e).__name__},
                exc_info=e
            )
            return JSONResponse(
                status_code=500,
                content={"hasApp": False, "error": "Failed to fetch configuration"},
                headers=NO_CACHE_HEADERS,
            )

        logger.info(
            "live_config.request.completed",
            extra={"has_app": payload.has_app, "instances": len(payload.instances or [])}
        )
        return JSONResponse(content=payload.to_wire(), headers=NO_CACHE_HEADERS)
