"""
API v1 endpoints.
"""

from .builder import router as builder_router
from .components import router as components_router
from .health import router as health_router
from .live_config import router as live_config_router

__all__ = ["builder_router", "components_router", "health_router", "live_config_router"]
