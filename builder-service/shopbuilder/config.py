"""
Application configuration management using Pydantic Settings.

Every value can be overridden with a ``SHOPBUILDER_``-prefixed environment
variable or a ``.env`` file in the working directory.
"""
import re
from functools import lru_cache
from typing import Any, Dict, Literal, Optional

from dotenv import load_dotenv
from pydantic import ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()

SLUG_PATTERN = re.compile(r"[a-z0-9]+(?:-[a-z0-9]+)*")


class Settings(BaseSettings):
    """Shop app builder settings"""

    # -------------------------
    # APPLICATION METADATA & RUNTIME
    # -------------------------
    app_name: str = "Shop App Builder"
    app_version: str = "0.1.0"
    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = True
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_directory: str = "logs"
    cors_origins: list[str] = ["*"]

    # -------------------------
    # PERSISTENCE
    # -------------------------
    storage_backend: Literal["memory", "filesystem", "postgres"] = "filesystem"
    storage_path: str = "./builder_data"

    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_db: str = "shopbuilder"
    postgres_user: str = "shopbuilder"
    postgres_password: str = "devpass"
    postgres_min_connections: int = 1
    postgres_max_connections: int = 10
    postgres_command_timeout: int = 30

    # -------------------------
    # CATALOG CACHE & STOREFRONT
    # -------------------------
    catalog_cache_backend: Literal["memory", "redis"] = "memory"
    catalog_cache_ttl_seconds: int = 30 * 60
    redis_url: str = "redis://localhost:6379/0"
    redis_max_connections: int = 10

    storefront_api_version: str = "2024-07"
    storefront_access_token: Optional[str] = None
    storefront_timeout: float = 10.0
    storefront_product_limit: int = 10

    # -------------------------
    # LIVE PREVIEW
    # -------------------------
    preview_slug: str = "live-preview"
    preview_poll_interval_seconds: float = 2.0
    live_config_base_url: str = "http://localhost:8000"

    # -------------------------
    # CODE GENERATION
    # -------------------------
    generator_output_root: str = "./generated-apps"
    generator_skeleton_path: Optional[str] = None

    # -------------------------
    # CELERY SETTINGS
    # -------------------------
    celery_broker_url: str = "redis://localhost:6379/1"
    celery_result_backend: str = "redis://localhost:6379/2"
    celery_task_time_limit: int = 600
    celery_task_soft_time_limit: int = 540

    # -------------------------
    # VALIDATORS
    # -------------------------
    @field_validator('log_level', mode='before')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        return str(v).upper()

    @field_validator('preview_slug')
    @classmethod
    def validate_preview_slug(cls, v: str) -> str:
        if not SLUG_PATTERN.fullmatch(v):
            raise ValueError(f"preview_slug must be lowercase words joined by '-', got {v!r}")
        return v

    @field_validator('catalog_cache_ttl_seconds', 'storefront_product_limit')
    @classmethod
    def validate_positive(cls, v: int, info: ValidationInfo) -> int:
        if v <= 0:
            raise ValueError(f"{info.field_name} must be positive")
        return v

    @field_validator('live_config_base_url')
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @property
    def storefront_config(self) -> Dict[str, Any]:
        """Storefront settings safe to log (the token itself is left out)"""
        return {
            "api_version": self.storefront_api_version,
            "has_access_token": self.storefront_access_token is not None,
            "timeout": self.storefront_timeout,
            "product_limit": self.storefront_product_limit,
        }

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_prefix="SHOPBUILDER_",
        validate_default=True,
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
