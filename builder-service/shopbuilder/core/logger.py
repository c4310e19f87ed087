"""
Loguru sink configuration.

Structured events (``utils.logging.get_logger``) are bound with an ``event``
name; plain ``loguru.logger`` calls are not. Outside debug mode the two go
to separate files so the event log stays one JSON document per line.
"""
import sys
from pathlib import Path
from loguru import logger

from shopbuilder.config import settings

CONSOLE_FORMAT_DEBUG = (
    "<green>{time:HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{line}</cyan> | "
    "<level>{message}</level>"
)

CONSOLE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name} | {message}"


def _is_event(record) -> bool:
    return "event" in record["extra"]


def setup_logging() -> None:
    """
    Configure loguru sinks for the API server, the CLI and Celery workers.

    Debug mode: colorized console only.
    Otherwise: plain console, plus rotated ``shopbuilder.log`` for free-form
    lines and ``events.jsonl`` for structured events.
    """
    logger.remove()

    logger.add(
        sys.stdout,
        format=CONSOLE_FORMAT_DEBUG if settings.debug else CONSOLE_FORMAT,
        level=settings.log_level,
        colorize=settings.debug,
        backtrace=settings.debug,
        diagnose=settings.debug,
    )

    if settings.debug:
        logger.debug(f"Console logging at {settings.log_level}")
        return

    log_dir = Path(settings.log_directory)
    log_dir.mkdir(parents=True, exist_ok=True)

    logger.add(
        log_dir / "shopbuilder.log",
        format=CONSOLE_FORMAT,
        level="INFO",
        filter=lambda record: not _is_event(record),
        rotation="100 MB",
        retention="10 days",
        compression="zip",
        enqueue=True,
    )
    logger.add(
        log_dir / "events.jsonl",
        format="{message}",
        level=settings.log_level,
        filter=_is_event,
        rotation="100 MB",
        retention="10 days",
        compression="zip",
        enqueue=True,
    )

    logger.info(f"Logging configured: level={settings.log_level} directory={log_dir}")
