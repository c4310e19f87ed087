import asyncio

import pytest

from shopbuilder.core.tasks import generate_app_task

from tests.factories import APP_KEY, make_instance


@pytest.fixture(autouse=True)
def use_gateway(gateway, monkeypatch):
    monkeypatch.setattr("shopbuilder.core.tasks.build_gateway", lambda: gateway)


def test_generate_app_task(tmp_path, gateway):
    asyncio.run(gateway.save_page(APP_KEY, "Home", [make_instance("banner")]))

    result = generate_app_task.apply(args=[APP_KEY, str(tmp_path)]).get()

    assert result["status"] == "completed"
    assert result["path"] == str(tmp_path / "demo-myshopify-com")


def test_generate_app_task_reports_abort(tmp_path):
    result = generate_app_task.apply(args=["missing.myshopify.com", str(tmp_path)]).get()

    assert result["status"] == "failed"
    assert "Mobile app not found" in result["error"]
