"""vidmap renderer — plain-text views of entries and mind-map graphs.

Entries prefer their chapter list when one exists and fall back to the
flattened summary text. Graphs render as an indented outline of the visible
nodes, with the highlighted node marked.
"""

from __future__ import annotations

from .graph import GraphState, Role
from .schemas import Chapter, EntryStatus, SummaryEntry

_STATUS_LABELS = {
    EntryStatus.PLACEHOLDER: "pending",
    EntryStatus.RAW_RECEIVED: "pending",
    EntryStatus.NORMALIZED: "summarized",
    EntryStatus.MAP_ATTACHED: "summarized + map",
    EntryStatus.FAILED: "failed",
}

_INDENT = {Role.CENTRAL: "", Role.BRANCH: "  ", Role.POINT: "    "}


def _format_time(sec: float) -> str:
    """Convert seconds to a timestamp like '1:25' or '1:02:15'."""
    total = int(sec)
    hours, minutes, seconds = total // 3600, (total % 3600) // 60, total % 60
    if hours > 0:
        return f"{hours}:{minutes:02d}:{seconds:02d}"
    return f"{minutes}:{seconds:02d}"


def _format_chapter(chapter: Chapter) -> str:
    heading = chapter.chapter_title
    if chapter.start_time is not None:
        heading = f"{_format_time(chapter.start_time)} {heading}"
    return f"▸ {heading}\n  {chapter.chapter_summary}"


def render_summary(entry: SummaryEntry) -> str:
    """The summary body: chapters when present, else the flattened text."""
    if entry.summary_json:
        return "\n\n".join(_format_chapter(c) for c in entry.summary_json)
    return entry.summary_text


def render_entry(entry: SummaryEntry) -> str:
    header = f"[{_STATUS_LABELS[entry.status]}] {entry.title} ({entry.id})"
    parts = [header, "═" * min(len(header), 60), render_summary(entry)]
    if entry.video_url:
        parts.append(f"→ video: {entry.video_url}")
    return "\n".join(parts)


def render_listing(entries: list[SummaryEntry]) -> str:
    if not entries:
        return "No summaries yet."
    lines = [f"{len(entries)} summar{'y' if len(entries) == 1 else 'ies'}:", ""]
    for e in entries:
        first = render_summary(e).strip().split("\n", 1)[0]
        preview = first[:80] + "..." if len(first) > 80 else first
        lines.append(f"  • {e.title} [{_STATUS_LABELS[e.status]}] {e.id}")
        if preview:
            lines.append(f"    {preview}")
    return "\n".join(lines)


def render_graph(state: GraphState | None) -> str:
    """Indented outline of the visible nodes; '*' marks the highlighted one."""
    if state is None:
        return "No mind map."
    lines = [f"─── MIND MAP ({state.layout.value}) " + "─" * 30]
    for node in state.visible_nodes():
        marker = "*" if node.highlighted else " "
        lines.append(f"{marker} {_INDENT[node.role]}{node.label}")
    return "\n".join(lines)
