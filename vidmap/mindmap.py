"""Mind-map deriver — builds a central/branch/point tree from a summary.

Generation is delegated to a collaborator:

  BackendMindmapGenerator  POST generate-mindmap on the job backend (default)
  LLMMindmapGenerator      any OpenAI-compatible API, called directly

Pick with VIDMAP_MINDMAP_PROVIDER=backend|llm. For the llm provider:

  VIDMAP_LLM_API_KEY=sk-or-v1-your-key-here      (or OPENAI_API_KEY)
  VIDMAP_LLM_BASE_URL=https://openrouter.ai/api/v1
  VIDMAP_LLM_MODEL=google/gemma-3-12b-it:free

Whatever the collaborator returns is validated into a MindMap; anything
unusable is a MindmapDerivationError.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Protocol

import httpx
from pydantic import ValidationError

from . import config
from .errors import MindmapDerivationError
from .schemas import MindMap, ModelKind

logger = logging.getLogger(__name__)

_SYSTEM_PROMPT = (
    "You turn video summaries into mind maps. "
    "Respond with JSON only: {\"central\": {\"label\": \"topic\", \"narration\": \"one sentence\"}, "
    "\"branches\": [{\"label\": \"emoji + theme\", \"narration\": \"one sentence\", "
    "\"points\": [{\"label\": \"short point\", \"narration\": \"one sentence\"}]}]}. "
    "Use 3-6 branches with 2-4 points each. Start every branch label with one emoji."
)
_USER_PROMPT = "Build a mind map for this summary:\n\n{summary}"


class MindmapGenerator(Protocol):
    async def generate(self, summary: str, model_kind: ModelKind) -> Any: ...


def _parse_json_loosely(raw: str) -> Any:
    """Parse model output, tolerating code fences and a truncated tail."""
    raw = raw.strip()
    if raw.startswith("```"):
        raw = raw.split("\n", 1)[-1].rsplit("```", 1)[0].strip()
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        for fix in [raw + "}", raw + "]}", raw + "}]}", raw + "}]}]}", raw + '"}]}]}']:
            try:
                return json.loads(fix)
            except json.JSONDecodeError:
                continue
    return None


class BackendMindmapGenerator:
    def __init__(self, http: httpx.AsyncClient, endpoints: config.Endpoints | None = None) -> None:
        self._http = http
        self._endpoints = endpoints or config.endpoints()

    async def generate(self, summary: str, model_kind: ModelKind) -> Any:
        logger.debug("Requesting mind map from backend (model=%s)", model_kind.value)
        try:
            resp = await self._http.post(
                self._endpoints.generate_mindmap,
                json={"summary": summary, "model_type": model_kind.value},
            )
        except httpx.HTTPError as exc:
            raise MindmapDerivationError(f"generate-mindmap transport failure: {exc}") from exc
        if not resp.is_success:
            raise MindmapDerivationError(f"Mindmap request failed: {resp.status_code}")
        try:
            result = resp.json()
        except ValueError as exc:
            raise MindmapDerivationError("generate-mindmap returned a non-JSON body") from exc
        if isinstance(result, dict) and "mindmap" in result:
            return result["mindmap"]
        return result


def _get_llm_config() -> tuple[str | None, str | None, str]:
    """Return (api_key, base_url, model) from config (.env file or env vars)."""
    api_key = config.get("VIDMAP_LLM_API_KEY") or config.get("OPENAI_API_KEY")
    base_url = config.get("VIDMAP_LLM_BASE_URL") or None
    model = config.get("VIDMAP_LLM_MODEL", "gpt-4o-mini")
    return api_key, base_url, model


class LLMMindmapGenerator:
    def __init__(self, client: Any = None, model: str | None = None) -> None:
        api_key, base_url, default_model = _get_llm_config()
        self.model = model or default_model
        if client is None and api_key:
            from openai import AsyncOpenAI

            client_kwargs: dict[str, Any] = {"api_key": api_key}
            if base_url:
                client_kwargs["base_url"] = base_url
            client = AsyncOpenAI(**client_kwargs)
        self._client = client

    async def generate(self, summary: str, model_kind: ModelKind) -> Any:
        if self._client is None:
            raise MindmapDerivationError(
                "No LLM API key configured. Set VIDMAP_LLM_API_KEY or OPENAI_API_KEY."
            )
        user_content = _USER_PROMPT.format(summary=summary)
        logger.info("Calling LLM for mind map: model=%s", self.model)
        try:
            try:
                response = await self._client.chat.completions.create(
                    model=self.model,
                    messages=[
                        {"role": "system", "content": _SYSTEM_PROMPT},
                        {"role": "user", "content": user_content},
                    ],
                    temperature=0.2,
                    max_tokens=1200,
                )
            except Exception as sys_err:
                # Some free models reject system prompts
                if "400" in str(sys_err) or "system" in str(sys_err).lower():
                    logger.info("System prompt not supported, retrying as user message")
                    response = await self._client.chat.completions.create(
                        model=self.model,
                        messages=[{"role": "user", "content": f"{_SYSTEM_PROMPT}\n\n{user_content}"}],
                        temperature=0.2,
                        max_tokens=1200,
                    )
                else:
                    raise
        except Exception as exc:
            raise MindmapDerivationError(f"LLM mind map failed ({self.model}): {exc}") from exc

        raw = response.choices[0].message.content or ""
        parsed = _parse_json_loosely(raw)
        if parsed is None:
            raise MindmapDerivationError(f"LLM response was not JSON ({len(raw)} chars)")
        return parsed


def canonicalize(payload: Any) -> MindMap:
    """Validate a generator payload into the canonical central/branches/points shape."""
    if not isinstance(payload, dict):
        raise MindmapDerivationError(f"mind map is not an object: {type(payload).__name__}")
    if "central" not in payload or not isinstance(payload.get("branches"), list):
        raise MindmapDerivationError("mind map needs a central node and a branches array")
    try:
        return MindMap.model_validate(payload)
    except ValidationError as exc:
        raise MindmapDerivationError(f"invalid mind map: {exc.errors()[0]['msg']}") from exc


class MindmapDeriver:
    def __init__(self, generator: MindmapGenerator) -> None:
        self.generator = generator

    async def derive(self, summary_text: str, model_kind: ModelKind) -> MindMap:
        payload = await self.generator.generate(summary_text, model_kind)
        mindmap = canonicalize(payload)
        logger.info(
            "Mind map derived: %r with %d branch(es)",
            mindmap.central.label, len(mindmap.branches),
        )
        return mindmap


def make_generator(http: httpx.AsyncClient, endpoints: config.Endpoints | None = None) -> MindmapGenerator:
    """Build the generator named by VIDMAP_MINDMAP_PROVIDER."""
    provider = config.get("VIDMAP_MINDMAP_PROVIDER", "backend").lower()
    if provider == "llm":
        return LLMMindmapGenerator()
    if provider != "backend":
        logger.warning("Unknown VIDMAP_MINDMAP_PROVIDER=%r, using backend", provider)
    return BackendMindmapGenerator(http, endpoints)
