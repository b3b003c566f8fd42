"""
vidmap — video summaries with narrated mind maps.

Usage:
    from vidmap import summarize, summarize_batch

    # Summarize one video (blocks until the backend job finishes)
    entry = summarize("talk.mp4", title="Keynote")
    print(entry.summary_text)

    # Several videos at once, sharing one registry
    entries = summarize_batch(["a.mp4", "b.mp4"], model_kind="t5-small")

Async callers use SummaryService directly:

    async with SummaryService.open() as service:
        await service.load()
        entry = await service.summarize("talk.mp4")
"""

import asyncio
from pathlib import Path

from .graph import GraphEngine, Layout, build_graph
from .schemas import MindMap, ModelKind, SummaryEntry
from .service import SummaryService


def summarize(path: str | Path, title: str | None = None, model_kind: str | None = None) -> SummaryEntry:
    """Run the full pipeline for one video and return its final entry."""

    async def _run() -> SummaryEntry:
        async with SummaryService.open() as service:
            return await service.summarize(path, title, ModelKind(model_kind) if model_kind else None)

    return asyncio.run(_run())


def summarize_batch(paths: list[str | Path], model_kind: str | None = None) -> list[SummaryEntry]:
    """Summarize several videos concurrently. Results keep the input order."""

    async def _run() -> list[SummaryEntry]:
        async with SummaryService.open() as service:
            return await service.summarize_many(
                [(p, None) for p in paths], ModelKind(model_kind) if model_kind else None,
            )

    return asyncio.run(_run())


__all__ = [
    "summarize",
    "summarize_batch",
    "SummaryService",
    "SummaryEntry",
    "MindMap",
    "ModelKind",
    "GraphEngine",
    "Layout",
    "build_graph",
]
