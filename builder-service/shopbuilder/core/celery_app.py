"""
Celery application for background app generation.

Run a worker for the generation queue with:

    celery -A shopbuilder.core.celery_app worker -Q generation
"""
from celery import Celery
from celery.signals import task_failure, task_postrun, task_prerun, worker_process_init

from shopbuilder.config import settings
from shopbuilder.core.logger import setup_logging
from shopbuilder.utils.logging import get_logger

logger = get_logger(__name__)

GENERATION_QUEUE = "generation"

celery_app = Celery(
    "shopbuilder",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=["shopbuilder.core.tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,

    task_track_started=True,
    task_time_limit=settings.celery_task_time_limit,
    task_soft_time_limit=settings.celery_task_soft_time_limit,
    task_acks_late=True,
    task_reject_on_worker_lost=True,

    # One generation at a time per worker process
    worker_prefetch_multiplier=1,
    worker_max_tasks_per_child=50,

    result_expires=3600,
    broker_connection_retry_on_startup=True,
    task_routes={"shopbuilder.generate_app": {"queue": GENERATION_QUEUE}},
)


@worker_process_init.connect
def configure_worker_logging(**kwargs):
    setup_logging()


@task_prerun.connect
def log_task_started(task_id, task, args, kwargs, **extra):
    logger.info("celery.task.started", extra={"task_id": task_id, "task_name": task.name, "args": list(args or ())})


@task_postrun.connect
def log_task_finished(task_id, task, args, kwargs, retval, state=None, **extra):
    status = retval.get("status") if isinstance(retval, dict) else None
    logger.info(
        "celery.task.finished",
        extra={"task_id": task_id, "task_name": task.name, "state": state, "status": status}
    )


@task_failure.connect
def log_task_failed(task_id, exception, args, kwargs, traceback, einfo, **extra):
    logger.error(
        "celery.task.failed",
        extra={"task_id": task_id, "exception_type": type(exception).__name__},
        exc_info=exception
    )
