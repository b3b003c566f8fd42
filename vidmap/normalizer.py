"""Result normalizer — turns a job's raw text into a displayable summary.

Structured model families return JSON chapter records; plain families return
prose that is split into one bullet per sentence. Pure functions, no I/O.
"""

from __future__ import annotations

import json

from pydantic import ValidationError

from .errors import MalformedStructuredResult
from .schemas import Chapter, ModelKind, NormalizedSummary

BULLET = "•"
_SENTENCE_BREAK = ". "


def _strip_fence(raw: str) -> str:
    raw = raw.strip()
    if raw.startswith("```"):
        raw = raw.split("\n", 1)[-1].rsplit("```", 1)[0].strip()
    return raw


def parse_chapters(raw_text: str) -> list[Chapter]:
    """Parse an ordered list of chapter records, trimming each body."""
    try:
        data = json.loads(_strip_fence(raw_text))
    except json.JSONDecodeError as exc:
        raise MalformedStructuredResult(str(exc)) from exc

    if not isinstance(data, list):
        raise MalformedStructuredResult(f"expected a list of chapters, got {type(data).__name__}")

    try:
        chapters = [Chapter.model_validate(item) for item in data]
    except ValidationError as exc:
        raise MalformedStructuredResult(f"invalid chapter record: {exc.errors()[0]['msg']}") from exc

    return [c.model_copy(update={"chapter_summary": c.chapter_summary.strip()}) for c in chapters]


def bulletize(raw_text: str) -> str:
    """One bullet per sentence, splitting on ". " and giving back the consumed period."""
    fragments = raw_text.split(_SENTENCE_BREAK)
    lines = []
    for i, fragment in enumerate(fragments):
        fragment = fragment.strip()
        if i < len(fragments) - 1:
            fragment += "."
        if fragment and fragment != ".":
            lines.append(f"{BULLET} {fragment}")
    return "\n".join(lines)


def normalize(raw_text: str, model_kind: ModelKind) -> NormalizedSummary:
    """Convert raw job text into ``summary_text`` (+ ``summary_json`` for chapters).

    Raises MalformedStructuredResult when a structured kind's text does not parse.
    """
    if model_kind.structured:
        chapters = parse_chapters(raw_text)
        text = "\n\n".join(f"{c.chapter_title}: {c.chapter_summary}" for c in chapters)
        return NormalizedSummary(summary_text=text, summary_json=chapters)

    return NormalizedSummary(summary_text=bulletize(raw_text))


def normalize_or_degrade(raw_text: str, model_kind: ModelKind) -> NormalizedSummary:
    """Like normalize(), but a parse failure becomes an explanatory summary_text."""
    try:
        return normalize(raw_text, model_kind)
    except MalformedStructuredResult as exc:
        return NormalizedSummary(summary_text=f"Error parsing structured summary: {exc}")
