"""
Celery tasks for background app generation.
"""
import asyncio
import time
from pathlib import Path
from typing import Any, Dict, Optional

from shopbuilder.config import settings
from shopbuilder.core.celery_app import celery_app
from shopbuilder.core.database import db_manager
from shopbuilder.core.errors import GenerationAborted
from shopbuilder.services.catalog.resolver import build_catalog_resolver
from shopbuilder.services.generation.code_generator import generate_for_app
from shopbuilder.services.persistence import PersistenceGateway, build_page_store
from shopbuilder.utils.logging import get_logger

logger = get_logger(__name__)


async def connect_services() -> None:
    if settings.storage_backend == "postgres":
        await db_manager.connect()


async def disconnect_services() -> None:
    if db_manager.is_connected:
        await db_manager.disconnect()


def build_gateway() -> PersistenceGateway:
    return PersistenceGateway(build_page_store(settings, db_manager))


async def run_generation(app_key_or_id: str, output_root: Optional[str] = None) -> Path:
    await connect_services()
    try:
        return await generate_for_app(
            build_gateway(),
            app_key_or_id,
            output_root=Path(output_root) if output_root else None,
            resolver=build_catalog_resolver(settings),
        )
    finally:
        await disconnect_services()


@celery_app.task(name="shopbuilder.generate_app", bind=True)
def generate_app_task(self, app_key_or_id: str, output_root: Optional[str] = None) -> Dict[str, Any]:
    """
    Generate the project of an app's current page.

    A ``GenerationAborted`` run is reported in the result, not retried.
    """
    start_time = time.time()
    logger.info(
        "generation.task.started",
        extra={"celery_task_id": self.request.id, "app": app_key_or_id}
    )

    loop = asyncio.new_event_loop()
    try:
        path = loop.run_until_complete(run_generation(app_key_or_id, output_root))
    except GenerationAborted as e:
        logger.error(
            "generation.task.aborted",
            extra={"celery_task_id": self.request.id, "app": app_key_or_id, "error": str(e)}
        )
        return {
            "status": "failed",
            "app": app_key_or_id,
            "error": str(e),
            "total_execution_time_ms": int((time.time() - start_time) * 1000),
        }
    finally:
        loop.close()

    return {
        "status": "completed",
        "app": app_key_or_id,
        "path": str(path),
        "total_execution_time_ms": int((time.time() - start_time) * 1000),
    }
