"""vidmap service — the per-item summarization pipeline.

Each submitted video moves through:

  placeholder → raw_received → normalized → map_attached
       └──────────────┴─────────→ failed

1. Insert a placeholder entry ("Generating...") so consumers see it at once
2. Upload thumbnail + video, extract audio, submit the job, poll for the result
3. Normalize the raw text for the model family (a parse failure degrades the text)
4. Derive a mind map (failure just leaves the entry without one)
5. Persist the entry remotely (failure is logged; local state stands)

Every transition is written to the SummaryRegistry, which is what the CLI,
API and graph views read from.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Iterable, Protocol

import httpx

from . import config
from .errors import (
    MindmapDerivationError,
    PersistenceError,
    PollError,
    ProtocolError,
    SubmissionError,
)
from .jobs import TIMED_OUT_MESSAGE, JobClient, MediaAsset, TimedOut
from .media import FfmpegMedia
from .mindmap import MindmapDeriver, make_generator
from .normalizer import normalize_or_degrade
from .registry import SummaryRegistry
from .schemas import PLACEHOLDER_TEXT, EntryStatus, ModelKind, SummaryEntry
from .store import SummaryStore

logger = logging.getLogger(__name__)

FAILURE_MESSAGE = "Error generating summary"


class MediaCollaborator(Protocol):
    async def extract_audio(self, video_path: str | Path) -> MediaAsset: ...

    async def capture_thumbnail(self, video_path: str | Path) -> bytes: ...


def default_model() -> ModelKind:
    value = config.get("VIDMAP_MODEL", ModelKind.GEMINI.value)
    try:
        return ModelKind(value)
    except ValueError:
        logger.warning("Unknown VIDMAP_MODEL=%r, using %s", value, ModelKind.GEMINI.value)
        return ModelKind.GEMINI


class SummaryService:
    def __init__(
        self,
        jobs: JobClient,
        store: SummaryStore,
        deriver: MindmapDeriver,
        media: MediaCollaborator | None = None,
        registry: SummaryRegistry | None = None,
        poll_timeout_ms: int | None = None,
        poll_interval_ms: int | None = None,
    ) -> None:
        self.jobs = jobs
        self.store = store
        self.deriver = deriver
        self.media = media or FfmpegMedia()
        self.registry = registry if registry is not None else SummaryRegistry()
        self.poll_timeout_ms = poll_timeout_ms
        self.poll_interval_ms = poll_interval_ms

    @classmethod
    @asynccontextmanager
    async def open(cls, registry: SummaryRegistry | None = None) -> AsyncIterator["SummaryService"]:
        """Build a service wired from configuration; closes its HTTP client on exit."""
        endpoints = config.endpoints()
        async with httpx.AsyncClient(timeout=config.http_timeout()) as http:
            yield cls(
                jobs=JobClient(http, endpoints),
                store=SummaryStore(http, endpoints),
                deriver=MindmapDeriver(make_generator(http, endpoints)),
                registry=registry,
            )

    # ── Registry seeding ──────────────────────────────────────────

    async def load(self) -> list[SummaryEntry]:
        """Seed the registry from the remote store; an unreachable store just means no history."""
        await self._reconcile()
        return self.registry.list()

    async def _reconcile(self) -> None:
        try:
            remote = await self.store.list_all()
        except PersistenceError as exc:
            logger.warning("Could not list stored summaries: %s", exc)
            return
        self.registry.reconcile(remote)

    # ── Pipeline ──────────────────────────────────────────────────

    def begin(
        self,
        media_path: str | Path,
        title: str | None = None,
        model_kind: ModelKind | None = None,
    ) -> SummaryEntry:
        """Insert the placeholder entry for a new item and return it."""
        entry_id = uuid.uuid4().hex
        return self.registry.upsert(
            entry_id,
            title=title or Path(media_path).stem,
            summary_text=PLACEHOLDER_TEXT,
            model_kind=model_kind or default_model(),
            status=EntryStatus.PLACEHOLDER,
        )

    async def summarize(
        self,
        media_path: str | Path,
        title: str | None = None,
        model_kind: ModelKind | None = None,
    ) -> SummaryEntry:
        """Run the whole pipeline for one video. Never raises for pipeline failures."""
        entry = self.begin(media_path, title, model_kind)
        return await self.run(entry.id, media_path)

    async def summarize_many(
        self,
        items: Iterable[tuple[str | Path, str | None]],
        model_kind: ModelKind | None = None,
    ) -> list[SummaryEntry]:
        """Summarize several (path, title) items concurrently; results keep input order."""
        return list(await asyncio.gather(*(
            self.summarize(path, title, model_kind) for path, title in items
        )))

    async def run(self, entry_id: str, media_path: str | Path) -> SummaryEntry:
        """Drive an already-placed entry from placeholder to its final state."""
        entry = self.registry.get(entry_id)
        if entry is None:
            raise KeyError(entry_id)
        model_kind = entry.model_kind or default_model()

        try:
            await self._upload_assets(entry_id, media_path)
            asset = await self.media.extract_audio(media_path)
            handle = await self.jobs.submit(asset, model_kind)
            outcome = await self.jobs.poll_until_ready(
                handle.job_id, self.poll_timeout_ms, self.poll_interval_ms,
            )
        except (SubmissionError, PollError, ProtocolError, OSError) as exc:
            logger.warning("Summary %s failed: %s", entry_id, exc)
            return self._fail(entry_id, FAILURE_MESSAGE)

        if isinstance(outcome, TimedOut):
            return self._fail(entry_id, TIMED_OUT_MESSAGE)

        raw = outcome.text
        logger.debug("Raw result for %s: %.200s", entry_id, raw)
        self.registry.upsert(entry_id, status=EntryStatus.RAW_RECEIVED)

        normalized = normalize_or_degrade(raw, model_kind)
        entry = self.registry.upsert(
            entry_id,
            summary_text=normalized.summary_text,
            summary_json=normalized.summary_json,
            status=EntryStatus.NORMALIZED,
        )

        try:
            mindmap = await self.deriver.derive(entry.summary_text, model_kind)
        except MindmapDerivationError as exc:
            logger.warning("No mind map for %s: %s", entry_id, exc)
        else:
            entry = self.registry.upsert(
                entry_id, mindmap_json=mindmap, status=EntryStatus.MAP_ATTACHED,
            )

        await self._persist(entry)
        if entry.status is EntryStatus.MAP_ATTACHED:
            await self._reconcile()
        return self.registry.get(entry_id) or entry

    async def _upload_assets(self, entry_id: str, media_path: str | Path) -> None:
        png = await self.media.capture_thumbnail(media_path)
        thumbnail_url = await self.store.upload_thumbnail(entry_id, png)
        self.registry.upsert(entry_id, thumbnail_url=thumbnail_url)

        video_url = await self.store.upload_video(entry_id, media_path)
        self.registry.upsert(entry_id, video_url=video_url)

    async def _persist(self, entry: SummaryEntry) -> None:
        try:
            await self.store.save(entry)
        except PersistenceError as exc:
            logger.warning("Summary %s kept locally, remote save failed: %s", entry.id, exc)

    def _fail(self, entry_id: str, message: str) -> SummaryEntry:
        return self.registry.upsert(entry_id, summary_text=message, status=EntryStatus.FAILED)
