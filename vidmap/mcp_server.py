"""vidmap MCP Server — expose video summaries as tools for any MCP-capable agent.

Run:
    python -m vidmap.mcp_server

Or add to your MCP config:
    {
      "mcpServers": {
        "vidmap": {
          "command": "python",
          "args": ["-m", "vidmap.mcp_server"],
          "env": {
            "VIDMAP_BASE_URL": "https://your-job-backend:8080",
            "VIDMAP_MODEL": "gemini"
          }
        }
      }
    }
"""

from mcp.server.fastmcp import FastMCP

mcp = FastMCP("vidmap")


@mcp.tool()
async def summarize_media(path: str, title: str = "", model: str = "") -> str:
    """Summarize a local video file and derive a mind map from the summary.

    Uploads the video, waits for the summarization job (this can take
    several minutes), and returns the summary plus the mind map outline.

    Args:
        path: Path to a local video file
        title: Display title (defaults to the file name)
        model: "gemini" for chapters, "t5-small" for prose (defaults to config)
    """
    from .graph import build_graph
    from .renderer import render_entry, render_graph
    from .schemas import ModelKind
    from .service import SummaryService

    async with SummaryService.open() as service:
        entry = await service.summarize(path, title=title or None, model_kind=ModelKind(model) if model else None)
    text = render_entry(entry)
    if entry.mindmap_json:
        text += "\n\n" + render_graph(build_graph(entry.mindmap_json))
    return text


@mcp.tool()
async def list_summaries() -> str:
    """List every stored video summary with its id and a one-line preview."""
    from .renderer import render_listing
    from .service import SummaryService

    async with SummaryService.open() as service:
        return render_listing(await service.load())


@mcp.tool()
async def show_summary(entry_id: str) -> str:
    """Show one stored summary and its full mind map.

    Args:
        entry_id: Summary id from list_summaries
    """
    from .graph import build_graph
    from .renderer import render_entry, render_graph
    from .service import SummaryService

    async with SummaryService.open() as service:
        await service.load()
        entry = service.registry.get(entry_id)
    if entry is None:
        return f"no summary with id {entry_id}"
    text = render_entry(entry)
    if entry.mindmap_json:
        text += "\n\n" + render_graph(build_graph(entry.mindmap_json))
    return text


def main() -> None:
    mcp.run()


if __name__ == "__main__":
    main()
