"""
Preview Sync Client - keeps a preview screen in sync with the builder by
polling the live configuration endpoint.

State machine:
    IDLE -> LOADING -> READY | FAILED

Polling continues in every state after the first request, at a fixed
interval with no backoff. A failed poll keeps the last rendered blocks and
shows an error banner above them.

Each tick supersedes the previous one: the in-flight request is cancelled
and every request carries a sequence number, so a response older than the
latest issued request is discarded.
"""
import asyncio
from enum import Enum
from typing import Callable, Dict, List, Optional

import httpx
from pydantic import ValidationError

from shopbuilder.models.schemas.component_catalog import KindId
from shopbuilder.models.schemas.live_config import LiveConfigPayload
from shopbuilder.preview.renderers import RenderedBlock, Renderer, render_screen
from shopbuilder.utils.datetime_utils import timestamp_ms
from shopbuilder.utils.logging import get_logger

logger = get_logger(__name__)


class PreviewState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


class PreviewFetchError(Exception):
    """A poll that did not produce a usable payload"""
    pass


class PreviewSyncClient:
    """
    Polls ``/api/live-config/{app_key}`` and re-renders on every response.

    Usage:
        async with PreviewSyncClient("demo.myshopify.com", "http://localhost:8000") as client:
            await client.run(max_ticks=10)
    """

    def __init__(
        self,
        app_key: str,
        base_url: str,
        interval: float = 2.0,
        http_client: Optional[httpx.AsyncClient] = None,
        renderers: Optional[Dict[KindId, Renderer]] = None,
        on_update: Optional[Callable[["PreviewSyncClient"], None]] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.app_key = app_key
        self.base_url = base_url.rstrip("/")
        self.interval = interval
        self.renderers = renderers
        self.on_update = on_update

        self._owns_client = http_client is None
        self.http_client = http_client or httpx.AsyncClient(timeout=timeout, transport=transport)

        self.state = PreviewState.IDLE
        self.payload: Optional[LiveConfigPayload] = None
        self.blocks: List[RenderedBlock] = []
        self.error: Optional[str] = None

        self._issued_seq = 0
        self._applied_seq = 0
        self._inflight: Optional[asyncio.Task] = None

    async def __aenter__(self) -> "PreviewSyncClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._cancel_inflight()
        if self._owns_client:
            await self.http_client.aclose()

    @property
    def config_url(self) -> str:
        return f"{self.base_url}/api/live-config/{self.app_key}"

    @property
    def latest_sequence(self) -> int:
        return self._issued_seq

    def next_sequence(self) -> int:
        self._issued_seq += 1
        return self._issued_seq

    # ------------------------------------------------------------------
    # fetching
    # ------------------------------------------------------------------

    async def fetch_payload(self) -> LiveConfigPayload:
        """
        Fetch one snapshot, bypassing any HTTP cache with a ``_ts`` parameter.

        Raises:
            PreviewFetchError: transport error, non-200 answer or malformed body
        """
        try:
            response = await self.http_client.get(self.config_url, params={"_ts": timestamp_ms()})
        except httpx.HTTPError as e:
            raise PreviewFetchError(f"Request failed: {e}") from e

        try:
            body = response.json()
        except ValueError:
            body = None

        if response.status_code != 200:
            detail = body.get("error") if isinstance(body, dict) else None
            raise PreviewFetchError(detail or f"HTTP {response.status_code}")

        try:
            return LiveConfigPayload.model_validate(body)
        except ValidationError as e:
            raise PreviewFetchError(f"Malformed live configuration: {e.error_count()} errors") from e

    # ------------------------------------------------------------------
    # applying results
    # ------------------------------------------------------------------

    def _notify(self) -> None:
        if self.on_update is not None:
            self.on_update(self)

    def apply_payload(self, seq: int, payload: LiveConfigPayload) -> bool:
        """Replace the screen with ``payload``. Returns False when the response is stale."""
        if seq < self._issued_seq or seq <= self._applied_seq:
            logger.debug("preview.response.discarded", extra={"seq": seq, "latest": self._issued_seq})
            return False

        self._applied_seq = seq
        self.payload = payload
        self.blocks = render_screen(payload, self.renderers)
        self.error = None
        self.state = PreviewState.READY
        self._notify()
        return True

    def apply_failure(self, seq: int, message: str) -> bool:
        """Record a failed poll, keeping the last rendered blocks. Returns False when stale."""
        if seq < self._issued_seq or seq <= self._applied_seq:
            return False

        self._applied_seq = seq
        self.error = message
        self.state = PreviewState.FAILED
        logger.warning("preview.poll.failed", message=message, extra={"app_key": self.app_key, "seq": seq})
        self._notify()
        return True

    async def _poll(self, seq: int) -> None:
        try:
            payload = await self.fetch_payload()
        except PreviewFetchError as e:
            self.apply_failure(seq, str(e))
            return
        self.apply_payload(seq, payload)

    # ------------------------------------------------------------------
    # ticking
    # ------------------------------------------------------------------

    async def _cancel_inflight(self) -> None:
        task = self._inflight
        self._inflight = None
        if task is None:
            return

        if not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            return

        if not task.cancelled() and task.exception() is not None:
            logger.error(
                "preview.poll.crashed",
                extra={"app_key": self.app_key},
                exc_info=task.exception()
            )

    async def tick(self) -> asyncio.Task:
        """Start a poll, superseding the one still in flight."""
        await self._cancel_inflight()

        seq = self.next_sequence()
        if self.state == PreviewState.IDLE:
            self.state = PreviewState.LOADING
            self._notify()

        self._inflight = asyncio.create_task(self._poll(seq))
        return self._inflight

    async def poll_once(self) -> PreviewState:
        """Run a single poll to completion."""
        task = await self.tick()
        await task
        return self.state

    async def run(self, max_ticks: Optional[int] = None, stop: Optional[asyncio.Event] = None) -> None:
        """Poll every ``interval`` seconds until ``stop`` is set or ``max_ticks`` polls were issued."""
        ticks = 0
        try:
            while stop is None or not stop.is_set():
                await self.tick()
                ticks += 1
                if max_ticks is not None and ticks >= max_ticks:
                    if self._inflight is not None:
                        await self._inflight
                    break
                await asyncio.sleep(self.interval)
        finally:
            await self._cancel_inflight()

    # ------------------------------------------------------------------
    # presentation
    # ------------------------------------------------------------------

    def screen_lines(self) -> List[str]:
        lines: List[str] = []
        if self.state == PreviewState.LOADING:
            lines.append("Loading...")
        elif self.state == PreviewState.FAILED:
            lines.append(f"Error: {self.error}")
        elif self.state == PreviewState.READY:
            lines.append("LIVE PREVIEW")

        for block in self.blocks:
            lines.extend(block.lines)
        return lines
