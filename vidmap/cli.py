"""vidmap CLI — summarize videos and walk their mind maps from a terminal.

Usage:
    vidmap summarize talk.mp4 --title "Keynote" --model gemini
    vidmap list
    vidmap show <id> --layout radial
    vidmap narrate <id> --wpm 200
"""

from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path

import typer

from .graph import GraphEngine, Layout
from .narration import PacedNarrator
from .renderer import render_entry, render_graph, render_listing
from .schemas import ModelKind
from .service import SummaryService

app = typer.Typer(add_completion=False, pretty_exceptions_enable=False)


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Log pipeline progress")) -> None:
    """Video summaries and narrated mind maps."""
    sys.stdout.reconfigure(encoding="utf-8")
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@app.command()
def summarize(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Video file to summarize"),
    title: str = typer.Option(None, help="Display title (defaults to the file name)"),
    model: ModelKind = typer.Option(None, help="Model family: gemini (chapters) or t5-small (prose)"),
) -> None:
    """Upload a video, wait for its summary and derive a mind map."""

    async def _run():
        async with SummaryService.open() as service:
            return await service.summarize(path, title=title, model_kind=model)

    typer.echo(f"Summarizing {path.name}... (this can take several minutes)", err=True)
    entry = asyncio.run(_run())
    typer.echo(render_entry(entry))
    if entry.mindmap_json:
        engine = GraphEngine(PacedNarrator(typer.echo))
        typer.echo()
        typer.echo(render_graph(engine.show(entry.mindmap_json)))


@app.command("list")
def list_summaries() -> None:
    """List stored summaries."""

    async def _run():
        async with SummaryService.open() as service:
            return await service.load()

    typer.echo(render_listing(asyncio.run(_run())))


async def _find(entry_id: str):
    async with SummaryService.open() as service:
        await service.load()
        return service.registry.get(entry_id)


@app.command()
def show(
    entry_id: str = typer.Argument(..., help="Summary id (see `vidmap list`)"),
    layout: Layout = typer.Option(Layout.STANDARD, help="standard or radial"),
    expand: list[str] = typer.Option(None, help="Node ids to click open (radial layout)"),
) -> None:
    """Show one summary and its mind map."""
    entry = asyncio.run(_find(entry_id))
    if entry is None:
        typer.echo(f"No summary with id {entry_id}.")
        raise typer.Exit(1)

    typer.echo(render_entry(entry))
    if entry.mindmap_json:
        engine = GraphEngine(PacedNarrator(typer.echo), layout=layout)
        engine.show(entry.mindmap_json)
        for node_id in expand or []:
            engine.toggle(node_id)
        typer.echo()
        typer.echo(render_graph(engine.state))


@app.command()
def narrate(
    entry_id: str = typer.Argument(..., help="Summary id (see `vidmap list`)"),
    layout: Layout = typer.Option(Layout.STANDARD, help="standard or radial"),
    wpm: int = typer.Option(170, min=0, help="Speaking pace used to time each step"),
) -> None:
    """Read a summary's mind map aloud, node by node (Ctrl+C stops)."""
    entry = asyncio.run(_find(entry_id))
    if entry is None or entry.mindmap_json is None:
        typer.echo(f"No mind map for {entry_id}.")
        raise typer.Exit(1)

    def say(text: str) -> None:
        typer.echo(f"🔊 {text}")

    async def _walk() -> None:
        engine = GraphEngine(PacedNarrator(say, words_per_minute=wpm), layout=layout)
        engine.subscribe(lambda e: typer.echo(f"\n{e.cue}") if e.kind == "highlight" and e.cue else None)
        engine.show(entry.mindmap_json)
        task = engine.start_narration()
        try:
            if task is not None:
                await task
        finally:
            engine.dispose()

    try:
        asyncio.run(_walk())
    except KeyboardInterrupt:
        typer.echo("Narration stopped.")


if __name__ == "__main__":
    app()
