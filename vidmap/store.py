"""Summary store client — the remote home of finished summary entries.

Remote layout (relative to VIDMAP_STORE_URL):
  POST save-summary        ← one SummaryEntry as JSON
  GET  list-summaries      → array of SummaryEntry, in the store's order
  POST upload-thumbnail    ← multipart png, → {url}
  POST upload-video        ← multipart video, → {url}

Save/list failures are PersistenceError; upload failures are SubmissionError
because an item cannot go forward without its assets.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any

import httpx
from pydantic import ValidationError

from . import config
from .errors import PersistenceError, SubmissionError
from .schemas import SummaryEntry

logger = logging.getLogger(__name__)


class SummaryStore:
    def __init__(self, http: httpx.AsyncClient, endpoints: config.Endpoints | None = None) -> None:
        self._http = http
        self._endpoints = endpoints or config.endpoints()

    # ── Entries ───────────────────────────────────────────────────

    async def save(self, entry: SummaryEntry) -> None:
        try:
            resp = await self._http.post(self._endpoints.save_summary, json=entry.to_wire())
        except httpx.HTTPError as exc:
            raise PersistenceError(f"save-summary transport failure: {exc}") from exc
        if not resp.is_success:
            raise PersistenceError(f"save-summary failed: {resp.status_code}")
        logger.info("Saved summary %s", entry.id)

    async def list_all(self) -> list[SummaryEntry]:
        """Fetch every persisted entry, skipping records that do not validate."""
        try:
            resp = await self._http.get(self._endpoints.list_summaries)
        except httpx.HTTPError as exc:
            raise PersistenceError(f"list-summaries transport failure: {exc}") from exc
        if not resp.is_success:
            raise PersistenceError(f"list-summaries failed: {resp.status_code}")
        try:
            data = resp.json()
        except ValueError as exc:
            raise PersistenceError("list-summaries returned a non-JSON body") from exc
        if not isinstance(data, list):
            raise PersistenceError(f"list-summaries returned {type(data).__name__}, expected a list")

        entries: list[SummaryEntry] = []
        for item in data:
            try:
                entries.append(SummaryEntry.model_validate(item))
            except ValidationError as exc:
                logger.warning("Skipping unreadable stored summary: %s", exc.errors()[0]["msg"])
        logger.debug("Listed %d stored summaries", len(entries))
        return entries

    # ── Assets ────────────────────────────────────────────────────

    async def _upload(self, url: str, filename: str, data: bytes, content_type: str,
                      legacy_key: str) -> str:
        try:
            resp = await self._http.post(url, files={"file": (filename, data, content_type)})
        except httpx.HTTPError as exc:
            raise SubmissionError(f"upload of {filename} failed: {exc}") from exc
        if not resp.is_success:
            raise SubmissionError(
                f"upload of {filename} failed: {resp.status_code} {resp.text}",
                status_code=resp.status_code,
            )
        try:
            body: Any = resp.json()
        except ValueError as exc:
            raise SubmissionError(f"upload of {filename} returned a non-JSON body") from exc
        asset_url = (body.get("url") or body.get(legacy_key)) if isinstance(body, dict) else None
        if not asset_url:
            raise SubmissionError(f"upload of {filename} returned no url")
        return str(asset_url)

    async def upload_thumbnail(self, entry_id: str, png: bytes) -> str:
        url = await self._upload(
            self._endpoints.upload_thumbnail, f"{entry_id}.png", png, "image/png", "thumbUrl",
        )
        logger.info("Uploaded thumbnail for %s", entry_id)
        return url

    async def upload_video(self, entry_id: str, video_path: str | Path) -> str:
        path = Path(video_path)
        suffix = path.suffix or ".webm"
        data = await asyncio.to_thread(path.read_bytes)
        url = await self._upload(
            self._endpoints.upload_video, f"{entry_id}{suffix}", data,
            "video/" + suffix.lstrip("."), "videoUrl",
        )
        logger.info("Uploaded video for %s", entry_id)
        return url
