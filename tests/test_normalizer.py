"""Tests for turning raw job text into display summaries."""

import json

import pytest

from vidmap.errors import MalformedStructuredResult
from vidmap.normalizer import bulletize, normalize, normalize_or_degrade
from vidmap.schemas import ModelKind


def test_structured_single_chapter_is_trimmed() -> None:
    raw = json.dumps([{"chapterTitle": "Intro", "chapterSummary": " Hello world. "}])

    result = normalize(raw, ModelKind.GEMINI)

    assert result.summary_text == "Intro: Hello world."
    assert [c.model_dump(by_alias=True, exclude_none=True) for c in result.summary_json] == [
        {"chapterTitle": "Intro", "chapterSummary": "Hello world."}
    ]


def test_structured_chapters_are_separated_by_blank_line() -> None:
    raw = json.dumps([
        {"chapterTitle": "Intro", "chapterSummary": "Hi.", "startTime": 0},
        {"chapterTitle": "Demo", "chapterSummary": "  Shows it.\n", "startTime": 95.5},
    ])

    result = normalize(raw, ModelKind.GEMINI)

    assert result.summary_text == "Intro: Hi.\n\nDemo: Shows it."
    assert result.summary_json[1].start_time == 95.5


@pytest.mark.parametrize("start, expected", [
    ("00:01:05", 65.0),
    ("1:05", 65.0),
    ("1:02:15.5", 3735.5),
    ("42", 42.0),
    (7, 7.0),
])
def test_structured_accepts_clock_timestamps(start, expected) -> None:
    raw = json.dumps([{"chapterTitle": "A", "chapterSummary": "b", "startTime": start}])
    assert normalize(raw, ModelKind.GEMINI).summary_json[0].start_time == expected


def test_structured_bad_timestamp_is_malformed() -> None:
    raw = json.dumps([{"chapterTitle": "A", "chapterSummary": "b", "startTime": "1:xx"}])
    with pytest.raises(MalformedStructuredResult):
        normalize(raw, ModelKind.GEMINI)


def test_structured_accepts_fenced_json() -> None:
    raw = '```json\n[{"chapterTitle": "A", "chapterSummary": "b"}]\n```'
    assert normalize(raw, ModelKind.GEMINI).summary_text == "A: b"


@pytest.mark.parametrize("raw", [
    "not json at all",
    '{"chapterTitle": "A", "chapterSummary": "b"}',
    '[{"chapterTitle": "A"}]',
])
def test_structured_parse_failure_raises(raw: str) -> None:
    with pytest.raises(MalformedStructuredResult):
        normalize(raw, ModelKind.GEMINI)


def test_degraded_result_keeps_something_displayable() -> None:
    result = normalize_or_degrade("oops", ModelKind.GEMINI)
    assert result.summary_text.startswith("Error parsing structured summary:")
    assert result.summary_json is None


def test_plain_text_gets_one_bullet_per_sentence() -> None:
    result = normalize("A. B. C.", ModelKind.T5_SMALL)
    assert result.summary_text == "• A.\n• B.\n• C."
    assert result.summary_json is None


def test_plain_text_keeps_last_fragment_as_is() -> None:
    assert bulletize("Intro. Then more") == "• Intro.\n• Then more"


def test_plain_text_drops_empty_fragments() -> None:
    assert bulletize("One. . Two. ") == "• One.\n• Two."
    assert bulletize("") == ""


def test_plain_text_never_parses_json() -> None:
    raw = '[{"chapterTitle": "A", "chapterSummary": "b"}]'
    assert normalize(raw, ModelKind.T5_SMALL).summary_text == f"• {raw}"


def test_normalize_is_deterministic() -> None:
    raw = json.dumps([{"chapterTitle": "Intro", "chapterSummary": "Hello."}])
    for kind in ModelKind:
        first = normalize_or_degrade(raw, kind)
        second = normalize_or_degrade(raw, kind)
        assert first == second
