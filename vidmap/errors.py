"""Error taxonomy for the summarize → poll → derive → persist pipeline."""

from __future__ import annotations


class VidmapError(Exception):
    """Base class for every error vidmap raises on purpose."""


class SubmissionError(VidmapError):
    """Upload or job submission failed (transport error or non-success status)."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class MediaError(SubmissionError):
    """The media collaborator could not produce an asset (audio, thumbnail)."""


class ProtocolError(VidmapError):
    """A remote response did not have the shape the client relies on."""


class PollError(VidmapError):
    """Transport failure or non-success status while polling a job."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class MalformedStructuredResult(VidmapError):
    """A structured model's raw result could not be parsed into chapters."""


class MindmapDerivationError(VidmapError):
    """The generation collaborator failed or returned an unusable mind map."""


class PersistenceError(VidmapError):
    """Remote save or list of summary entries failed."""
