"""Shared fixtures: a mocked backend, a virtual clock and small mind maps."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager

import httpx
import pytest
import pytest_asyncio
import respx

from vidmap.config import Endpoints
from vidmap.jobs import MediaAsset
from vidmap.schemas import MindMap, SummaryEntry
from vidmap.service import SummaryService

BASE = "http://backend.test"


class FakeClock:
    """Virtual clock whose sleep just moves time forward."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakeMedia:
    def __init__(self) -> None:
        self.extracted: list[str] = []

    async def extract_audio(self, video_path) -> MediaAsset:
        self.extracted.append(str(video_path))
        return MediaAsset(filename="talk.mp3", data=b"ID3 fake audio")

    async def capture_thumbnail(self, video_path) -> bytes:
        return b"\x89PNG fake"


class RecordingNarrator:
    """Records spoken text; optional hook runs with the running count."""

    def __init__(self, on_speak=None) -> None:
        self.spoken: list[str] = []
        self.on_speak = on_speak

    async def speak(self, text: str) -> None:
        self.spoken.append(text)
        if self.on_speak is not None:
            self.on_speak(len(self.spoken))
        await asyncio.sleep(0)


@pytest.fixture
def endpoints() -> Endpoints:
    return Endpoints(base_url=BASE, store_url=BASE)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def backend():
    with respx.mock(base_url=BASE, assert_all_called=False) as router:
        yield router


@pytest_asyncio.fixture
async def http():
    async with httpx.AsyncClient() as client:
        yield client


@pytest.fixture
def mindmap() -> MindMap:
    return MindMap.model_validate({
        "central": {"label": "🎬 Keynote", "narration": "This talk covers two themes."},
        "branches": [
            {
                "label": "🚀 Launch",
                "narration": "First, the launch.",
                "points": [
                    {"label": "Date", "narration": "It ships in May."},
                    {"label": "Price"},
                ],
            },
            {
                "label": "🔒 Security",
                "points": [{"label": "Audits", "narration": "Audits happen yearly."}],
            },
        ],
    })


@pytest.fixture
def narrator() -> RecordingNarrator:
    return RecordingNarrator()


@pytest.fixture
def make_narrator():
    return RecordingNarrator


@pytest.fixture
def media() -> FakeMedia:
    return FakeMedia()


class FakeStore:
    def __init__(self, remote=()) -> None:
        self.remote = list(remote)
        self.saved: list[SummaryEntry] = []

    async def list_all(self) -> list[SummaryEntry]:
        return list(self.remote)

    async def save(self, entry: SummaryEntry) -> None:
        self.saved.append(entry)


@pytest.fixture
def stored(mindmap) -> list[SummaryEntry]:
    return [
        SummaryEntry(
            id="a", title="Keynote", summary_text="• Launch in May.",
            mindmap_json=mindmap, video_url="http://cdn.test/a.mp4",
        ),
        SummaryEntry(id="b", title="Standup", summary_text="• Nothing yet."),
    ]


@pytest.fixture
def offline_service(monkeypatch, stored, media) -> SummaryService:
    """A service backed by an in-memory store, returned by every SummaryService.open()."""
    service = SummaryService(jobs=None, store=FakeStore(stored), deriver=None, media=media)

    @asynccontextmanager
    async def fake_open(registry=None):
        yield service

    monkeypatch.setattr(SummaryService, "open", fake_open)
    return service
