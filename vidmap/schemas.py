"""vidmap schema — summary entries, chapters and canonical mind maps.

Field names are snake_case in Python and camelCase on the wire
(``summaryText``, ``mindmapJson``...), matching the remote summary store.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

PLACEHOLDER_TEXT = "Generating..."


class ModelKind(str, Enum):
    T5_SMALL = "t5-small"
    GEMINI = "gemini"

    @property
    def structured(self) -> bool:
        """Whether this model family returns chapter records instead of prose."""
        return self in STRUCTURED_KINDS


STRUCTURED_KINDS = frozenset({ModelKind.GEMINI})


class EntryStatus(str, Enum):
    PLACEHOLDER = "placeholder"
    RAW_RECEIVED = "raw_received"
    NORMALIZED = "normalized"
    MAP_ATTACHED = "map_attached"
    FAILED = "failed"


class WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Chapter(WireModel):
    chapter_title: str
    chapter_summary: str
    start_time: Optional[float] = None  # seconds into the source video

    @field_validator("start_time", mode="before")
    @classmethod
    def _parse_clock_time(cls, value: Any) -> Any:
        """Accept "1:05" / "00:01:05" timestamps as well as plain seconds."""
        if isinstance(value, str) and ":" in value:
            seconds = 0.0
            for part in value.strip().split(":"):
                seconds = seconds * 60 + float(part)
            return seconds
        return value


class MindMapNode(WireModel):
    label: str
    narration: Optional[str] = None


class MindMapBranch(MindMapNode):
    points: list[MindMapNode]

    @field_validator("points", mode="before")
    @classmethod
    def _promote_string_points(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [{"label": p} if isinstance(p, str) else p for p in value]
        return value


class MindMap(WireModel):
    central: MindMapNode
    branches: list[MindMapBranch]

    @field_validator("central", mode="before")
    @classmethod
    def _promote_string_central(cls, value: Any) -> Any:
        return {"label": value} if isinstance(value, str) else value


class SummaryEntry(WireModel):
    id: str
    title: str
    thumbnail_url: Optional[str] = None
    video_url: Optional[str] = None
    summary_text: str = PLACEHOLDER_TEXT
    summary_json: Optional[list[Chapter]] = None
    mindmap_json: Optional[MindMap] = None
    model_kind: Optional[ModelKind] = None
    created_at: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    status: EntryStatus = Field(default=EntryStatus.PLACEHOLDER, exclude=True)

    def to_wire(self) -> dict[str, Any]:
        """Serialize for the remote store (camelCase, unset optionals dropped)."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class JobHandle(BaseModel):
    job_id: str
    submitted_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class NormalizedSummary(BaseModel):
    summary_text: str
    summary_json: Optional[list[Chapter]] = None
