"""Job client — submits media to the summarization backend and polls for the result.

The backend has no push channel, so completion is discovered by polling
``job-result/{job_id}`` at a fixed interval under a hard ceiling. Each status
body is parsed into a tagged result at this boundary:

  Processing           keep waiting
  Ready(summary)       terminal, summary body present
  UnexpectedTerminal   terminal, status is not "processing" and there is no summary

The wait primitive and the clock are injected so the loop can be driven by a
virtual clock in tests.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable, Union

import httpx

from . import config
from .errors import PollError, ProtocolError, SubmissionError
from .schemas import JobHandle, ModelKind

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]
Clock = Callable[[], float]


# ── Tagged job status ────────────────────────────────────────

@dataclass(frozen=True, slots=True)
class Processing:
    payload: dict[str, Any]


@dataclass(frozen=True, slots=True)
class Ready:
    summary: str

    @property
    def text(self) -> str:
        return self.summary


@dataclass(frozen=True, slots=True)
class UnexpectedTerminal:
    payload: dict[str, Any]

    @property
    def text(self) -> str:
        return f"Unexpected response: {json.dumps(self.payload)}"


@dataclass(frozen=True, slots=True)
class TimedOut:
    waited_ms: int


JobStatus = Union[Processing, Ready, UnexpectedTerminal]
PollOutcome = Union[Ready, UnexpectedTerminal, TimedOut]

TIMED_OUT_MESSAGE = "Error: Summary not available in time."


def parse_status(payload: Any) -> JobStatus:
    """Classify a job-result body."""
    if not isinstance(payload, dict):
        raise ProtocolError(f"job result is not an object: {payload!r}")
    summary = payload.get("summary")
    if summary:
        if not isinstance(summary, str):
            # Some backends hand back already-decoded chapter JSON
            summary = json.dumps(summary, ensure_ascii=False)
        return Ready(summary=summary)
    if payload.get("status") != "processing":
        return UnexpectedTerminal(payload=payload)
    return Processing(payload=payload)


# ── Media asset ──────────────────────────────────────────────

@dataclass(slots=True)
class MediaAsset:
    """A blob ready to be posted as multipart ``file``."""

    filename: str
    data: bytes
    content_type: str = "audio/mpeg"

    @classmethod
    def from_path(cls, path: str | Path, content_type: str = "audio/mpeg") -> "MediaAsset":
        p = Path(path)
        return cls(filename=p.name, data=p.read_bytes(), content_type=content_type)


# ── Client ───────────────────────────────────────────────────

class JobClient:
    def __init__(
        self,
        http: httpx.AsyncClient,
        endpoints: config.Endpoints | None = None,
        sleep: Sleep = asyncio.sleep,
        clock: Clock = time.monotonic,
    ) -> None:
        self._http = http
        self._endpoints = endpoints or config.endpoints()
        self._sleep = sleep
        self._clock = clock

    async def submit(self, asset: MediaAsset, model_kind: ModelKind) -> JobHandle:
        """Send the asset with a model selector; return the backend's job handle."""
        url = self._endpoints.submit_job
        logger.info("Submitting job: file=%s model=%s", asset.filename, model_kind.value)
        try:
            resp = await self._http.post(
                url,
                files={"file": (asset.filename, asset.data, asset.content_type)},
                data={"model_name": model_kind.value},
            )
        except httpx.HTTPError as exc:
            raise SubmissionError(f"submit-job transport failure: {exc}") from exc

        if not resp.is_success:
            raise SubmissionError(f"Submit job failed: {resp.status_code}", status_code=resp.status_code)

        try:
            body = resp.json()
        except ValueError as exc:
            raise ProtocolError("submit-job returned a non-JSON body") from exc

        job_id = body.get("job_id") if isinstance(body, dict) else None
        if not job_id:
            raise ProtocolError(f"submit-job response has no job_id: {body!r}")

        logger.info("Job submitted: %s", job_id)
        return JobHandle(job_id=str(job_id))

    async def check(self, job_id: str) -> JobStatus:
        """Query the job status once."""
        url = self._endpoints.job_result(job_id)
        try:
            resp = await self._http.get(url)
        except httpx.HTTPError as exc:
            raise PollError(f"job-result transport failure: {exc}") from exc

        logger.debug("Polled %s: HTTP %d", job_id, resp.status_code)
        if not resp.is_success:
            raise PollError(f"Poll job failed: {resp.status_code}", status_code=resp.status_code)

        try:
            payload = resp.json()
        except ValueError as exc:
            raise ProtocolError("job-result returned a non-JSON body") from exc
        return parse_status(payload)

    async def poll_until_ready(
        self,
        job_id: str,
        timeout_ms: int | None = None,
        interval_ms: int | None = None,
    ) -> PollOutcome:
        """Wait-then-query until a terminal status or the ceiling elapses.

        Returns Ready or UnexpectedTerminal on the first terminal status and
        TimedOut if none arrives within ``timeout_ms``. Transport failures and
        non-success statuses raise PollError immediately; retrying is the
        caller's call.
        """
        default_timeout, default_interval = config.poll_policy()
        timeout_ms = default_timeout if timeout_ms is None else timeout_ms
        interval_ms = default_interval if interval_ms is None else interval_ms

        start = self._clock()
        attempts = 0
        while (self._clock() - start) * 1000 < timeout_ms:
            await self._sleep(interval_ms / 1000)
            attempts += 1
            status = await self.check(job_id)
            if isinstance(status, Processing):
                continue
            if isinstance(status, UnexpectedTerminal):
                logger.warning("Job %s ended with unexpected status: %s", job_id, status.payload)
            else:
                logger.info("Job %s ready after %d poll(s)", job_id, attempts)
            return status

        logger.warning("Job %s not ready after %d ms (%d polls)", job_id, timeout_ms, attempts)
        return TimedOut(waited_ms=timeout_ms)
