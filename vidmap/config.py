"""vidmap configuration — loads settings from .env file or environment.

Config is loaded from (in priority order):
  1. Environment variables (highest priority)
  2. .env file in current directory
  3. .vidmap/.env file
  4. Defaults

Keys:
  VIDMAP_BASE_URL           job service base URL (submit-job, job-result, generate-mindmap)
  VIDMAP_STORE_URL          summary store base URL (defaults to VIDMAP_BASE_URL)
  VIDMAP_MODEL              default model kind: gemini | t5-small
  VIDMAP_POLL_TIMEOUT_MS    poll ceiling (600000)
  VIDMAP_POLL_INTERVAL_MS   poll interval (10000)
  VIDMAP_HTTP_TIMEOUT       per-request timeout in seconds (60)
  VIDMAP_MINDMAP_PROVIDER   backend | llm
  VIDMAP_FFMPEG             ffmpeg binary (looked up on PATH by default)
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

_loaded = False

DEFAULT_BASE_URL = "http://localhost:8080"
DEFAULT_POLL_TIMEOUT_MS = 600_000
DEFAULT_POLL_INTERVAL_MS = 10_000
DEFAULT_HTTP_TIMEOUT = 60


def _parse_env_file(path: Path) -> dict[str, str]:
    """Parse a simple .env file (KEY=VALUE, one per line)."""
    values: dict[str, str] = {}
    if not path.exists():
        return values
    for line in path.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        if "=" not in line:
            continue
        key, _, value = line.partition("=")
        key = key.strip()
        value = value.strip().strip("\"'")
        values[key] = value
    return values


def load_config() -> None:
    """Load config from .env files into os.environ (if not already set)."""
    global _loaded
    if _loaded:
        return
    _loaded = True

    candidates = [
        Path.cwd() / ".env",
        Path.cwd() / ".vidmap" / ".env",
    ]

    for env_path in candidates:
        values = _parse_env_file(env_path)
        if values:
            logger.debug("Loaded config from %s", env_path)
            for key, value in values.items():
                if key not in os.environ:  # env vars take priority
                    os.environ[key] = value
            break  # use first found


def get(key: str, default: str = "") -> str:
    """Get a config value (loads .env on first call)."""
    load_config()
    return os.environ.get(key, default)


def get_int(key: str, default: int) -> int:
    """Get an integer config value, falling back to default on bad input."""
    raw = get(key)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring non-integer %s=%r, using %d", key, raw, default)
        return default


@dataclass(frozen=True)
class Endpoints:
    """Resolved URLs of every remote path the pipeline talks to."""

    base_url: str
    store_url: str

    @property
    def submit_job(self) -> str:
        return f"{self.base_url}/submit-job"

    def job_result(self, job_id: str) -> str:
        return f"{self.base_url}/job-result/{job_id}"

    @property
    def generate_mindmap(self) -> str:
        return f"{self.base_url}/generate-mindmap"

    @property
    def save_summary(self) -> str:
        return f"{self.store_url}/save-summary"

    @property
    def list_summaries(self) -> str:
        return f"{self.store_url}/list-summaries"

    @property
    def upload_thumbnail(self) -> str:
        return f"{self.store_url}/upload-thumbnail"

    @property
    def upload_video(self) -> str:
        return f"{self.store_url}/upload-video"


def endpoints() -> Endpoints:
    base_url = get("VIDMAP_BASE_URL", DEFAULT_BASE_URL).rstrip("/")
    store_url = (get("VIDMAP_STORE_URL") or base_url).rstrip("/")
    return Endpoints(base_url=base_url, store_url=store_url)


def poll_policy() -> tuple[int, int]:
    """Return (timeout_ms, interval_ms)."""
    return (
        get_int("VIDMAP_POLL_TIMEOUT_MS", DEFAULT_POLL_TIMEOUT_MS),
        get_int("VIDMAP_POLL_INTERVAL_MS", DEFAULT_POLL_INTERVAL_MS),
    )


def http_timeout() -> float:
    return float(get_int("VIDMAP_HTTP_TIMEOUT", DEFAULT_HTTP_TIMEOUT))
