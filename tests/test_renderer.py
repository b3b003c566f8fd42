"""Tests for the plain-text renderers."""

from vidmap.graph import Layout, build_graph
from vidmap.renderer import _format_time, render_entry, render_graph, render_listing, render_summary
from vidmap.schemas import Chapter, EntryStatus, SummaryEntry


def test_format_time() -> None:
    assert _format_time(5.2) == "0:05"
    assert _format_time(85) == "1:25"
    assert _format_time(3735) == "1:02:15"


def test_summary_prefers_chapters() -> None:
    entry = SummaryEntry(
        id="a",
        title="Talk",
        summary_text="Intro: Hi.\n\nDemo: Shows it.",
        summary_json=[
            Chapter(chapter_title="Intro", chapter_summary="Hi.", start_time=0),
            Chapter(chapter_title="Demo", chapter_summary="Shows it."),
        ],
    )
    assert render_summary(entry) == "▸ 0:00 Intro\n  Hi.\n\n▸ Demo\n  Shows it."


def test_summary_falls_back_to_text() -> None:
    entry = SummaryEntry(id="a", title="Talk", summary_text="• A.\n• B.")
    assert render_summary(entry) == "• A.\n• B."


def test_entry_header_shows_status_and_video() -> None:
    entry = SummaryEntry(
        id="a", title="Talk", summary_text="Error generating summary",
        video_url="http://cdn.test/a.mp4", status=EntryStatus.FAILED,
    )
    text = render_entry(entry)
    assert text.startswith("[failed] Talk (a)\n")
    assert text.endswith("→ video: http://cdn.test/a.mp4")


def test_listing() -> None:
    assert render_listing([]) == "No summaries yet."

    entries = [SummaryEntry(id="a", title="Talk", summary_text="• First.\n• Second.")]
    text = render_listing(entries)
    assert text.startswith("1 summary:")
    assert "  • Talk [pending] a" in text
    assert "    • First." in text
    assert "Second" not in text


def test_graph_outline_shows_visible_nodes_only(mindmap) -> None:
    state = build_graph(mindmap, Layout.RADIAL)
    state.nodes["central"].highlighted = True

    lines = render_graph(state).splitlines()

    assert lines[0].startswith("─── MIND MAP (radial)")
    assert lines[1:] == ["* 🎬 Keynote", "    🚀 Launch ⊕", "    🔒 Security ⊕"]


def test_graph_outline_without_map() -> None:
    assert render_graph(None) == "No mind map."
