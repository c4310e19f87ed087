import pytest
from pydantic import ValidationError

from shopbuilder.config import Settings


def test_defaults():
    config = Settings(_env_file=None)

    assert config.preview_slug == "live-preview"
    assert config.storage_backend == "filesystem"
    assert config.storefront_config["has_access_token"] is False


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("SHOPBUILDER_STORAGE_BACKEND", "memory")
    monkeypatch.setenv("SHOPBUILDER_LOG_LEVEL", "debug")
    monkeypatch.setenv("SHOPBUILDER_LIVE_CONFIG_BASE_URL", "http://10.0.2.2:8000/")

    config = Settings(_env_file=None)

    assert config.storage_backend == "memory"
    assert config.log_level == "DEBUG"
    assert config.live_config_base_url == "http://10.0.2.2:8000"


@pytest.mark.parametrize("field, value", [
    ("preview_slug", "Live Preview"),
    ("catalog_cache_ttl_seconds", 0),
    ("storefront_product_limit", -1),
    ("storage_backend", "sqlite"),
])
def test_invalid_values(field, value):
    with pytest.raises(ValidationError):
        Settings(_env_file=None, **{field: value})
