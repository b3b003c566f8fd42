"""Media collaborator — audio extraction and thumbnail capture via ffmpeg.

The job backend wants a compact mp3, not the original video, and the entry
list wants one still frame. Both come from the ffmpeg binary
(VIDMAP_FFMPEG, or whatever ``ffmpeg`` resolves to on PATH).
"""

from __future__ import annotations

import asyncio
import logging
import shutil
import subprocess
import tempfile
from pathlib import Path

from . import config
from .errors import MediaError
from .jobs import MediaAsset

logger = logging.getLogger(__name__)


def _ffmpeg() -> str:
    path = config.get("VIDMAP_FFMPEG") or shutil.which("ffmpeg")
    if not path:
        raise MediaError("ffmpeg not found; install it or set VIDMAP_FFMPEG")
    return path


def _run(cmd: list[str], timeout: int) -> None:
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, timeout=timeout, check=False)
    except (OSError, subprocess.SubprocessError) as exc:
        raise MediaError(f"ffmpeg failed to run: {exc}") from exc
    if result.returncode != 0:
        tail = (result.stderr or "").strip().splitlines()[-1:] or ["no output"]
        raise MediaError(f"ffmpeg exited with {result.returncode}: {tail[0]}")


def _extract_audio(video_path: Path) -> MediaAsset:
    with tempfile.TemporaryDirectory(prefix="vidmap-audio-") as temp_dir:
        out = Path(temp_dir) / f"{video_path.stem}.mp3"
        _run([
            _ffmpeg(), "-y", "-loglevel", "error",
            "-i", str(video_path),
            "-vn", "-ac", "1", "-ar", "16000", "-b:a", "64k",
            str(out),
        ], timeout=600)
        asset = MediaAsset(filename=out.name, data=out.read_bytes(), content_type="audio/mpeg")
    logger.info("Extracted audio from %s (%d bytes)", video_path.name, len(asset.data))
    return asset


def _capture_thumbnail(video_path: Path, at_sec: float) -> bytes:
    with tempfile.TemporaryDirectory(prefix="vidmap-thumb-") as temp_dir:
        out = Path(temp_dir) / "thumb.png"
        _run([
            _ffmpeg(), "-y", "-loglevel", "error",
            "-ss", f"{at_sec:.3f}",
            "-i", str(video_path),
            "-frames:v", "1",
            str(out),
        ], timeout=60)
        png = out.read_bytes()
    logger.debug("Captured thumbnail from %s (%d bytes)", video_path.name, len(png))
    return png


class FfmpegMedia:
    """Default media collaborator; runs ffmpeg in a worker thread."""

    def __init__(self, thumbnail_at_sec: float = 0.0) -> None:
        self.thumbnail_at_sec = thumbnail_at_sec

    async def extract_audio(self, video_path: str | Path) -> MediaAsset:
        return await asyncio.to_thread(_extract_audio, Path(video_path))

    async def capture_thumbnail(self, video_path: str | Path) -> bytes:
        return await asyncio.to_thread(_capture_thumbnail, Path(video_path), self.thumbnail_at_sec)
