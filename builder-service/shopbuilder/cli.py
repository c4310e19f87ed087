"""Command line tool for the shop app builder."""

import asyncio
from pathlib import Path
from typing import Annotated, Optional

import typer

from shopbuilder.config import settings
from shopbuilder.core.database import db_manager
from shopbuilder.core.errors import GenerationAborted
from shopbuilder.core.logger import setup_logging
from shopbuilder.models.schemas.component_catalog import component_registry
from shopbuilder.preview.sync_client import PreviewState, PreviewSyncClient
from shopbuilder.services.catalog.resolver import build_catalog_resolver
from shopbuilder.services.generation.code_generator import generate_for_app
from shopbuilder.services.persistence import PersistenceGateway, build_page_store


app = typer.Typer(help="Shop App Builder CLI")


def get_gateway() -> PersistenceGateway:
    return PersistenceGateway(build_page_store(settings, db_manager))


async def _generate(app_key_or_id: str, output: Optional[Path]) -> Path:
    if settings.storage_backend == "postgres":
        await db_manager.connect()
    try:
        return await generate_for_app(
            get_gateway(),
            app_key_or_id,
            output_root=output,
            resolver=build_catalog_resolver(settings),
        )
    finally:
        if db_manager.is_connected:
            await db_manager.disconnect()


@app.command("generate")
def generate(
    app_key_or_id: Annotated[str, typer.Argument(help="Shop domain or app id")],
    output: Annotated[
        Optional[Path], typer.Option(help="Output root directory")
    ] = None,
):
    """Generates the React Native project of an app's current page."""
    try:
        path = asyncio.run(_generate(app_key_or_id, output))
    except GenerationAborted as e:
        typer.echo(f"Generation aborted: {e}", err=True)
        raise typer.Exit(code=1)
    typer.echo(str(path))


@app.command("kinds")
def kinds():
    """Lists the component palette."""
    for kind in component_registry.list_kinds():
        typer.echo(f"{kind.id}: {kind.name} ({kind.category})")


def _print_screen(client: PreviewSyncClient) -> None:
    typer.echo("\n".join(client.screen_lines()))
    typer.echo("")


@app.command("preview")
def preview(
    app_key: Annotated[str, typer.Argument(help="Shop domain")],
    base_url: Annotated[
        Optional[str], typer.Option(help="Builder service URL")
    ] = None,
    interval: Annotated[
        Optional[float], typer.Option(help="Seconds between polls")
    ] = None,
    once: Annotated[bool, typer.Option(help="Poll once and exit")] = False,
):
    """Renders the live configuration of an app in the terminal."""

    async def run() -> PreviewState:
        async with PreviewSyncClient(
            app_key,
            base_url or settings.live_config_base_url,
            interval=interval or settings.preview_poll_interval_seconds,
            on_update=None if once else _print_screen,
        ) as client:
            if once:
                state = await client.poll_once()
                _print_screen(client)
                return state
            await client.run()
            return client.state

    try:
        state = asyncio.run(run())
    except KeyboardInterrupt:
        return
    if state == PreviewState.FAILED:
        raise typer.Exit(code=1)


@app.command("serve")
def serve(
    host: Annotated[str, typer.Option(help="Bind address")] = "0.0.0.0",
    port: Annotated[int, typer.Option(help="Bind port")] = 8000,
):
    """Runs the builder API server."""
    import uvicorn

    setup_logging()
    uvicorn.run(
        "shopbuilder.main:app",
        host=host,
        port=port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    app()
