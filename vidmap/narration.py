"""Narration — the sequential, cancellable walk that speaks a mind map aloud.

Order is fixed: central node, then each branch followed by its points. Only
one step is ever in flight; the cancel flag is checked before each step, so a
step already handed to the narrator finishes (and clears its highlight) but
nothing after it runs.
"""

from __future__ import annotations

import asyncio
import logging
import unicodedata
from dataclasses import dataclass
from typing import Callable, Optional, Protocol, Sequence

from .schemas import MindMapNode

logger = logging.getLogger(__name__)

_CUE_CATEGORIES = {"So", "Sk", "Mn", "Cf"}  # pictographs, modifiers, variation selectors, ZWJ


class Narrator(Protocol):
    async def speak(self, text: str) -> None: ...


@dataclass(frozen=True, slots=True)
class NarrationStep:
    node_id: str
    text: str
    cue: Optional[str] = None


def split_cue(label: str) -> tuple[Optional[str], str]:
    """Split a leading emoji glyph off a label: ("🚀", "Launch") for "🚀 Launch"."""
    i = 0
    while i < len(label) and unicodedata.category(label[i]) in _CUE_CATEGORIES:
        i += 1
    if i == 0:
        return None, label.strip()
    return label[:i], label[i:].strip()


def step_for(node_id: str, node: MindMapNode) -> NarrationStep:
    cue, bare = split_cue(node.label)
    return NarrationStep(node_id=node_id, text=(node.narration or bare).strip(), cue=cue)


class NarrationWalk:
    def __init__(
        self,
        steps: Sequence[NarrationStep],
        narrator: Narrator,
        highlight: Callable[[NarrationStep], None],
        clear: Callable[[NarrationStep], None],
    ) -> None:
        self.steps = list(steps)
        self._narrator = narrator
        self._highlight = highlight
        self._clear = clear
        self.cancelled = False
        self.spoken: list[str] = []

    def cancel(self) -> None:
        self.cancelled = True

    async def run(self) -> bool:
        """Walk every step; returns False if cancelled before the end."""
        for step in self.steps:
            if self.cancelled:
                logger.debug("Narration cancelled after %d step(s)", len(self.spoken))
                return False
            self._highlight(step)
            try:
                await self._narrator.speak(step.text)
            finally:
                self._clear(step)
            self.spoken.append(step.node_id)
        return True


class PacedNarrator:
    """Hands text to a sink and waits roughly as long as saying it would take."""

    def __init__(self, sink: Callable[[str], None], words_per_minute: int = 170) -> None:
        self._sink = sink
        self.words_per_minute = words_per_minute

    async def speak(self, text: str) -> None:
        self._sink(text)
        words = len(text.split())
        if words and self.words_per_minute > 0:
            await asyncio.sleep(words * 60 / self.words_per_minute)
