"""
Structured event logging on top of loguru.

Each event is one JSON document: timestamp, service, the correlation
context of the current request or task (correlation id, app key,
operation), the event name and its payload.

Event names use dot notation, ``<domain>.<subject>.<outcome>``:
``builder.template.saved``, ``catalog.cache.hit``, ``preview.tick.discarded``.
"""
import json
import socket
import time
import traceback
from contextlib import contextmanager
from contextvars import ContextVar
from functools import wraps
from typing import Any, Dict, Optional

from loguru import logger as loguru_logger

from shopbuilder.config import settings
from shopbuilder.utils.datetime_utils import to_iso_string

correlation_id_var: ContextVar[Optional[str]] = ContextVar('correlation_id', default=None)
app_key_var: ContextVar[Optional[str]] = ContextVar('app_key', default=None)
operation_var: ContextVar[Optional[str]] = ContextVar('operation', default=None)

_CONTEXT_VARS = {
    "correlation_id": correlation_id_var,
    "app_key": app_key_var,
    "operation": operation_var,
}

SERVICE = {
    "name": settings.app_name,
    "version": settings.app_version,
    "environment": settings.environment,
    "hostname": socket.gethostname(),
}


def current_context() -> Dict[str, Optional[str]]:
    return {key: var.get() for key, var in _CONTEXT_VARS.items()}


class StructuredLogger:
    """
    Emits JSON events through loguru.

    Records are bound with ``event`` so ``setup_logging`` can route them to
    the event log, away from free-form lines.
    """

    def __init__(self, name: str):
        self.name = name

    def _entry(
        self,
        level: str,
        event: str,
        message: Optional[str],
        extra: Optional[Dict[str, Any]],
        exc_info: Optional[BaseException]
    ) -> Dict[str, Any]:
        entry: Dict[str, Any] = {
            "@timestamp": to_iso_string(),
            "level": level,
            "event": event,
            "message": message or event,
            "logger": self.name,
            "service": SERVICE,
            "correlation": current_context(),
        }
        if extra:
            entry["data"] = extra
        if exc_info is not None:
            entry["error"] = {
                "type": type(exc_info).__name__,
                "message": str(exc_info),
                "stacktrace": "".join(traceback.format_exception(type(exc_info), exc_info, exc_info.__traceback__)),
            }
        return entry

    def _emit(
        self,
        level: str,
        event: str,
        message: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
        exc_info: Optional[BaseException] = None
    ) -> None:
        entry = self._entry(level, event, message, extra, exc_info)
        loguru_logger.bind(logger_name=self.name, event=event).log(level, json.dumps(entry, default=str))

    def debug(self, event: str, message: str = None, extra: Dict = None):
        self._emit("DEBUG", event, message, extra)

    def info(self, event: str, message: str = None, extra: Dict = None):
        self._emit("INFO", event, message, extra)

    def warning(self, event: str, message: str = None, extra: Dict = None, exc_info: BaseException = None):
        self._emit("WARNING", event, message, extra, exc_info)

    def error(self, event: str, message: str = None, extra: Dict = None, exc_info: BaseException = None):
        self._emit("ERROR", event, message, extra, exc_info)

    def critical(self, event: str, message: str = None, extra: Dict = None, exc_info: BaseException = None):
        self._emit("CRITICAL", event, message, extra, exc_info)

    def performance(self, event: str, duration_ms: float, extra: Dict = None):
        data = {"duration_ms": round(duration_ms, 2)}
        data.update(extra or {})
        self._emit("INFO", event, f"{event} took {duration_ms:.1f}ms", data)


def get_logger(name: str) -> StructuredLogger:
    """
    Usage:
        logger = get_logger(__name__)
        logger.info("builder.template.saved", extra={"page_id": page_id})
    """
    return StructuredLogger(name)


@contextmanager
def log_context(correlation_id: str = None, app_key: str = None, operation: str = None):
    """
    Attach correlation fields to every event logged inside the block.

    Fields left as None keep the value of the enclosing context.

    Usage:
        with log_context(app_key="demo.myshopify.com", operation="live_config"):
            logger.info("live_config.served")
    """
    values = {"correlation_id": correlation_id, "app_key": app_key, "operation": operation}
    tokens = [
        (_CONTEXT_VARS[key], _CONTEXT_VARS[key].set(value))
        for key, value in values.items()
        if value
    ]
    try:
        yield
    finally:
        for var, token in reversed(tokens):
            var.reset(token)


def _log_outcome(func, event_prefix: str, started: float, error: Optional[BaseException] = None) -> None:
    logger = get_logger(func.__module__)
    elapsed_ms = (time.perf_counter() - started) * 1000
    if error is None:
        logger.performance(f"{event_prefix}.completed", duration_ms=elapsed_ms, extra={"function": func.__qualname__})
    else:
        logger.error(
            f"{event_prefix}.failed",
            extra={"function": func.__qualname__, "duration_ms": round(elapsed_ms, 2)},
            exc_info=error
        )


def trace_async(event_prefix: str):
    """Log duration and failures of a coroutine function as ``<prefix>.completed`` / ``<prefix>.failed``"""
    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            started = time.perf_counter()
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                _log_outcome(func, event_prefix, started, e)
                raise
            _log_outcome(func, event_prefix, started)
            return result
        return wrapper
    return decorator


def trace_sync(event_prefix: str):
    """Synchronous counterpart of ``trace_async``"""
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            started = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                _log_outcome(func, event_prefix, started, e)
                raise
            _log_outcome(func, event_prefix, started)
            return result
        return wrapper
    return decorator
