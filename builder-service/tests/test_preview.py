import asyncio

import httpx
import pytest
from loguru import logger

from shopbuilder.models.schemas.component_catalog import KindId
from shopbuilder.models.schemas.live_config import LiveConfigPayload
from shopbuilder.preview import RENDERERS, PreviewState, PreviewSyncClient, render_screen
from shopbuilder.services.catalog.fallback import fallback_catalog

from tests.factories import APP_KEY


def wire_payload(*instances, has_app=True):
    body = {
        "hasApp": has_app,
        "appKey": APP_KEY,
        "catalogItems": [item.to_wire() for item in fallback_catalog(APP_KEY)],
    }
    if has_app:
        body["instances"] = [
            {"instanceId": f"i{pos}", "kindId": kind, "kindType": kind.upper(), "params": params, "position": pos}
            for pos, (kind, params) in enumerate(instances)
        ]
    return body


def payload(*instances, has_app=True):
    return LiveConfigPayload.model_validate(wire_payload(*instances, has_app=has_app))


def preview_client(handler, **kwargs):
    return PreviewSyncClient(APP_KEY, "http://builder.test/", transport=httpx.MockTransport(handler), **kwargs)


class TestRenderScreen:
    def test_blocks_follow_position_order(self):
        blocks = render_screen(payload(("mobile-header", {"logoText": "Demo"}), ("banner", {"title": "Sale"})))
        assert [b.kind_id for b in blocks] == ["mobile-header", "banner"]
        assert "Demo" in blocks[0].lines[1]

    def test_unknown_kind_gets_placeholder(self):
        blocks = render_screen(payload(("video", {}), ("spacer", {"height": "32px"})))

        assert blocks[0].placeholder is True
        assert blocks[0].lines == ["[!] Unknown component: video"]
        assert blocks[1].placeholder is False

    def test_alias_uses_current_renderer(self):
        blocks = render_screen(payload(("featured-collection", {"title": "Picks", "columns": 2})))
        assert blocks[0].kind_id == "product-grid"
        assert blocks[0].lines[0] == "Picks"

    def test_failing_renderer_is_isolated(self):
        blocks = render_screen(payload(
            ("countdown", {"title": "Ends", "endDate": "not a date"}),
            ("button", {"text": "Buy"}),
        ))

        assert blocks[0].placeholder is True
        assert blocks[0].lines[0].startswith("[!] Failed to render countdown")
        assert "[ Buy ]" in blocks[1].lines[0]

    def test_custom_renderer_table(self):
        def explode(params, catalog):
            raise RuntimeError("boom")

        renderers = {**RENDERERS, KindId.BANNER: explode}
        blocks = render_screen(payload(("banner", {})), renderers)
        assert blocks[0].placeholder is True

    def test_empty_states(self):
        assert render_screen(payload(has_app=False))[0].lines[0] == "No template found"
        assert render_screen(payload())[0].lines[0] == "No components added yet"


class TestPreviewSyncClient:
    @pytest.mark.asyncio
    async def test_poll_once_renders_payload(self):
        seen = []

        def handler(request):
            seen.append(request.url)
            return httpx.Response(200, json=wire_payload(("banner", {"title": "Sale"})))

        async with preview_client(handler) as client:
            assert client.state == PreviewState.IDLE
            state = await client.poll_once()

        assert state == PreviewState.READY
        assert seen[0].path == f"/api/live-config/{APP_KEY}"
        assert "_ts" in seen[0].params
        assert client.screen_lines()[0] == "LIVE PREVIEW"
        assert any("Sale" in line for line in client.screen_lines())

    @pytest.mark.asyncio
    async def test_failed_poll_keeps_last_blocks(self):
        responses = [
            httpx.Response(200, json=wire_payload(("banner", {"title": "Sale"}))),
            httpx.Response(500, json={"hasApp": False, "error": "Failed to fetch configuration"}),
        ]

        async with preview_client(lambda request: responses.pop(0)) as client:
            await client.poll_once()
            blocks = list(client.blocks)
            state = await client.poll_once()

        assert state == PreviewState.FAILED
        assert client.error == "Failed to fetch configuration"
        assert client.blocks == blocks
        assert client.screen_lines()[0] == "Error: Failed to fetch configuration"

    @pytest.mark.asyncio
    async def test_malformed_body_fails(self):
        async with preview_client(lambda request: httpx.Response(200, json={"unexpected": True})) as client:
            assert await client.poll_once() == PreviewState.FAILED

    @pytest.mark.asyncio
    async def test_stale_responses_are_discarded(self):
        client = PreviewSyncClient(APP_KEY, "http://builder.test")
        old = client.next_sequence()
        new = client.next_sequence()

        assert client.apply_payload(new, payload(("spacer", {})))
        assert not client.apply_payload(old, payload(("banner", {})))
        assert not client.apply_failure(old, "late error")
        assert client.state == PreviewState.READY
        assert [b.kind_id for b in client.blocks] == ["spacer"]
        await client.aclose()

    @pytest.mark.asyncio
    async def test_new_tick_supersedes_inflight_poll(self):
        release = asyncio.Event()
        calls = []

        async def handler(request):
            calls.append(request)
            if len(calls) == 1:
                await release.wait()
            return httpx.Response(200, json=wire_payload(("button", {"text": "Go"})))

        async with preview_client(handler) as client:
            first = await client.tick()
            await asyncio.sleep(0)
            second = await client.tick()
            await second

            assert first.cancelled()
            assert client.state == PreviewState.READY
            assert client.latest_sequence == 2

    @pytest.mark.asyncio
    async def test_run_stops_after_max_ticks(self):
        updates = []

        def handler(request):
            return httpx.Response(200, json=wire_payload(("spacer", {})))

        async with preview_client(handler, interval=0, on_update=lambda c: updates.append(c.state)) as client:
            await client.run(max_ticks=3)

        assert client.latest_sequence == 3
        assert updates[0] == PreviewState.LOADING
        assert updates[-1] == PreviewState.READY

    @pytest.mark.asyncio
    async def test_crashed_poll_is_logged_on_next_tick(self):
        def handler(request):
            return httpx.Response(200, json=wire_payload(("spacer", {})))

        def on_update(client):
            if client.state == PreviewState.READY:
                raise RuntimeError("display gone")

        errors = []
        sink_id = logger.add(errors.append, level="ERROR")
        try:
            async with preview_client(handler, on_update=on_update) as client:
                task = await client.tick()
                await asyncio.wait([task])
                await client.tick()
        finally:
            logger.remove(sink_id)

        assert any("preview.poll.crashed" in str(message) for message in errors)
