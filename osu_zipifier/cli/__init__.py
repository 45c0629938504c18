"""
Command Line Interface for osu-zipifier.
"""

import asyncio
from pathlib import Path
from typing import List, Optional

import typer
import uvicorn
from rich import print as rprint
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..config import get_settings
from ..context import AppContext, build_context
from ..core.orchestrator import BatchOrchestrator
from ..db.base import init_database
from ..errors import ZipifierError
from ..log import configure_logging
from ..osu.credentials import fetch_access_token
from ..osu.resolver import IdentifierResolver, normalize_ids
from ..schemas.request import IdType, ServeMapsRequest

app = typer.Typer(help="osu-zipifier - zip osu! beatmap sets from mirrors")
console = Console()


async def _with_token(context: AppContext) -> None:
    if context.settings.has_osu_credentials:
        access_token, _ = await fetch_access_token(context.http, context.settings)
        context.set_access_token(access_token)


@app.command()
def serve(
    port: Optional[int] = typer.Option(None, help="Port to run the API server on"),
    host: Optional[str] = typer.Option(None, help="Host to bind the server to"),
    reload: bool = typer.Option(False, help="Reload on code changes"),
):
    """Start the HTTP API."""
    settings = get_settings()
    host = host or settings.api_host
    port = port or settings.api_port
    rprint(Panel.fit("Starting osu-zipifier", style="bold blue"))
    console.print(f"Serving on http://{host}:{port}")
    uvicorn.run("osu_zipifier.main:app", host=host, port=port, reload=reload)


@app.command()
def fetch(
    maps: List[int] = typer.Argument(..., help="Beatmap set or difficulty ids"),
    id_type: IdType = typer.Option(IdType.BEATMAP, help="What the ids refer to"),
    output: Path = typer.Option(Path("maps.zip"), help="Where to write the archive"),
):
    """Download a batch locally and write the zip archive."""
    configure_logging()
    request = ServeMapsRequest(maps=maps, id_type=id_type)

    async def run() -> bytes:
        context = build_context()
        try:
            if id_type is IdType.DIFFICULTY:
                await _with_token(context)
            return await BatchOrchestrator(context).serve(request)
        finally:
            await context.aclose()

    try:
        archive = asyncio.run(run())
    except ZipifierError as e:
        console.print(f"[red]{e.code}[/red]: {e.message}")
        raise typer.Exit(code=1)

    output.write_bytes(archive)
    console.print(f"Wrote {len(archive)} bytes to {output}")


@app.command()
def missing(
    maps: List[int] = typer.Argument(..., help="Beatmap set ids"),
):
    """Show which beatmap sets are already in the store."""
    context = build_context()
    try:
        map_list = normalize_ids(maps)
        absent = set(context.store.missing(map_list))

        table = Table(title=f"Store: {context.store.root}")
        table.add_column("Beatmap set", style="cyan")
        table.add_column("Status")
        for map_id in map_list:
            table.add_row(
                str(map_id),
                "[red]missing[/red]" if map_id in absent else "[green]stored[/green]",
            )
        console.print(table)
    finally:
        asyncio.run(context.aclose())


@app.command()
def resolve(
    difficulties: List[int] = typer.Argument(..., help="Difficulty ids"),
):
    """Resolve difficulty ids to beatmap set ids (cache, then osu! API)."""
    configure_logging()

    async def run() -> List[int]:
        context = build_context()
        try:
            await _with_token(context)
            resolver = IdentifierResolver(
                context.cache,
                context.http,
                context.settings.osu_api_base,
                executor=context.executor,
            )
            return await resolver.resolve(difficulties, context.access_token)
        finally:
            await context.aclose()

    try:
        beatmap_ids = asyncio.run(run())
    except ZipifierError as e:
        console.print(f"[red]{e.code}[/red]: {e.message}")
        raise typer.Exit(code=1)

    table = Table(title="Resolved beatmap sets")
    table.add_column("Beatmap set", style="cyan")
    for beatmap_id in normalize_ids(beatmap_ids):
        table.add_row(str(beatmap_id))
    console.print(table)


@app.command("init-db")
def init_db():
    """Create the resolution cache tables."""
    init_database()
    console.print("Database initialized")


def main():
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
