"""Tests for the job client: submission and the poll loop on a virtual clock."""

from __future__ import annotations

import httpx
import pytest

from vidmap.errors import PollError, ProtocolError, SubmissionError
from vidmap.jobs import (
    JobClient,
    MediaAsset,
    Processing,
    Ready,
    TimedOut,
    UnexpectedTerminal,
    parse_status,
)
from vidmap.schemas import ModelKind

ASSET = MediaAsset(filename="talk.mp3", data=b"audio")


def _processing() -> httpx.Response:
    return httpx.Response(200, json={"status": "processing"})


def _client(http, endpoints, clock) -> JobClient:
    return JobClient(http, endpoints, sleep=clock.sleep, clock=clock)


def test_parse_status_variants() -> None:
    assert isinstance(parse_status({"status": "processing"}), Processing)
    assert parse_status({"status": "done", "summary": "Hi."}) == Ready(summary="Hi.")
    assert isinstance(parse_status({"status": "failed"}), UnexpectedTerminal)


def test_parse_status_reencodes_decoded_chapters() -> None:
    status = parse_status({"status": "done", "summary": [{"chapterTitle": "A", "chapterSummary": "b"}]})
    assert isinstance(status, Ready)
    assert status.summary == '[{"chapterTitle": "A", "chapterSummary": "b"}]'


def test_unexpected_terminal_text_carries_payload() -> None:
    status = UnexpectedTerminal(payload={"status": "failed"})
    assert status.text == 'Unexpected response: {"status": "failed"}'


@pytest.mark.asyncio
async def test_submit_sends_file_and_model(backend, http, endpoints, clock) -> None:
    route = backend.post("/submit-job").mock(return_value=httpx.Response(200, json={"job_id": "j1"}))

    handle = await _client(http, endpoints, clock).submit(ASSET, ModelKind.T5_SMALL)

    assert handle.job_id == "j1"
    body = route.calls.last.request.content
    assert b'name="model_name"' in body
    assert b"t5-small" in body
    assert b'filename="talk.mp3"' in body


@pytest.mark.asyncio
async def test_submit_non_success_is_submission_error(backend, http, endpoints, clock) -> None:
    backend.post("/submit-job").mock(return_value=httpx.Response(503))

    with pytest.raises(SubmissionError) as info:
        await _client(http, endpoints, clock).submit(ASSET, ModelKind.GEMINI)
    assert info.value.status_code == 503


@pytest.mark.asyncio
async def test_submit_transport_failure_is_submission_error(backend, http, endpoints, clock) -> None:
    backend.post("/submit-job").mock(side_effect=httpx.ConnectError("refused"))

    with pytest.raises(SubmissionError):
        await _client(http, endpoints, clock).submit(ASSET, ModelKind.GEMINI)


@pytest.mark.asyncio
async def test_submit_without_job_id_is_protocol_error(backend, http, endpoints, clock) -> None:
    backend.post("/submit-job").mock(return_value=httpx.Response(200, json={"queued": True}))

    with pytest.raises(ProtocolError):
        await _client(http, endpoints, clock).submit(ASSET, ModelKind.GEMINI)


@pytest.mark.asyncio
async def test_poll_returns_first_summary_and_stops(backend, http, endpoints, clock) -> None:
    route = backend.get("/job-result/j1").mock(side_effect=[
        _processing(),
        _processing(),
        httpx.Response(200, json={"status": "done", "summary": "Intro. Then more."}),
        httpx.Response(200, json={"status": "done", "summary": "never read"}),
    ])

    outcome = await _client(http, endpoints, clock).poll_until_ready("j1", timeout_ms=60_000, interval_ms=1_000)

    assert outcome == Ready(summary="Intro. Then more.")
    assert route.call_count == 3
    assert clock.sleeps == [1.0, 1.0, 1.0]


@pytest.mark.asyncio
async def test_poll_waits_before_every_query(backend, http, endpoints, clock) -> None:
    route = backend.get("/job-result/j1").mock(
        return_value=httpx.Response(200, json={"status": "done", "summary": "Now."}),
    )

    await _client(http, endpoints, clock).poll_until_ready("j1", timeout_ms=60_000, interval_ms=10_000)

    assert route.call_count == 1
    assert clock.sleeps == [10.0]


@pytest.mark.asyncio
async def test_poll_times_out_without_further_queries(backend, http, endpoints, clock) -> None:
    route = backend.get("/job-result/j1").mock(return_value=_processing())

    outcome = await _client(http, endpoints, clock).poll_until_ready("j1", timeout_ms=3_000, interval_ms=1_000)

    assert isinstance(outcome, TimedOut)
    assert outcome.waited_ms == 3_000
    assert route.call_count == 3
    assert clock.now == 3.0


@pytest.mark.asyncio
async def test_poll_surfaces_unexpected_terminal_status(backend, http, endpoints, clock) -> None:
    route = backend.get("/job-result/j1").mock(return_value=httpx.Response(200, json={"status": "failed"}))

    outcome = await _client(http, endpoints, clock).poll_until_ready("j1", timeout_ms=60_000, interval_ms=1_000)

    assert isinstance(outcome, UnexpectedTerminal)
    assert outcome.payload == {"status": "failed"}
    assert route.call_count == 1


@pytest.mark.asyncio
async def test_poll_error_aborts_immediately(backend, http, endpoints, clock) -> None:
    route = backend.get("/job-result/j1").mock(side_effect=[_processing(), httpx.Response(500), _processing()])

    with pytest.raises(PollError) as info:
        await _client(http, endpoints, clock).poll_until_ready("j1", timeout_ms=60_000, interval_ms=1_000)

    assert info.value.status_code == 500
    assert route.call_count == 2


@pytest.mark.asyncio
async def test_poll_non_json_body_is_protocol_error(backend, http, endpoints, clock) -> None:
    backend.get("/job-result/j1").mock(return_value=httpx.Response(200, text="<html>oops</html>"))

    with pytest.raises(ProtocolError):
        await _client(http, endpoints, clock).poll_until_ready("j1", timeout_ms=60_000, interval_ms=1_000)
