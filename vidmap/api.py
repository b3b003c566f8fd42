"""vidmap HTTP API — FastAPI front for the summary registry.

Usage:
    uvicorn vidmap.api:app --port 8000

POST /summaries returns the placeholder entry at once and runs the pipeline
in the background; poll GET /summaries/{id} to watch it progress.
"""

from __future__ import annotations

import asyncio
import logging
import shutil
import tempfile
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Optional

from fastapi import BackgroundTasks, FastAPI, File, Form, HTTPException, Request, UploadFile

from .graph import Layout, build_graph
from .schemas import ModelKind, SummaryEntry
from .service import SummaryService

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    async with SummaryService.open() as service:
        await service.load()
        app.state.service = service
        yield


app = FastAPI(title="vidmap", version="0.1.0", lifespan=lifespan)


def _service(request: Request) -> SummaryService:
    return request.app.state.service


def _entry_view(entry: SummaryEntry) -> dict[str, Any]:
    return {**entry.to_wire(), "status": entry.status.value}


def _save_upload(file: UploadFile, media_path: Path) -> None:
    with media_path.open("wb") as out:
        shutil.copyfileobj(file.file, out)


async def _run_and_cleanup(service: SummaryService, entry_id: str, media_path: Path) -> None:
    try:
        await service.run(entry_id, media_path)
    finally:
        shutil.rmtree(media_path.parent, ignore_errors=True)


@app.get("/health")
def health():
    return {"status": "ok"}


@app.get("/summaries")
def list_summaries(request: Request):
    return [_entry_view(e) for e in _service(request).registry.list()]


@app.get("/summaries/{entry_id}")
def get_summary(entry_id: str, request: Request):
    entry = _service(request).registry.get(entry_id)
    if entry is None:
        raise HTTPException(status_code=404, detail=f"no summary {entry_id}")
    return _entry_view(entry)


@app.get("/summaries/{entry_id}/graph")
def get_graph(entry_id: str, request: Request, layout: Layout = Layout.STANDARD):
    entry = _service(request).registry.get(entry_id)
    if entry is None or entry.mindmap_json is None:
        raise HTTPException(status_code=404, detail=f"no mind map for {entry_id}")
    state = build_graph(entry.mindmap_json, layout)
    return {
        "layout": state.layout.value,
        "nodes": [
            {"id": n.id, "role": n.role.value, "label": n.label, "visible": n.visible}
            for n in state.nodes.values()
        ],
        "edges": [
            {"id": e.id, "from": e.source, "to": e.target, "visible": e.visible}
            for e in state.edges.values()
        ],
    }


@app.post("/summaries", status_code=202)
async def create_summary(
    request: Request,
    background: BackgroundTasks,
    file: UploadFile = File(...),
    title: Optional[str] = Form(None),
    model: Optional[ModelKind] = Form(None),
):
    service = _service(request)
    filename = Path(file.filename or "upload.webm").name
    media_path = Path(tempfile.mkdtemp(prefix="vidmap-upload-")) / filename
    await asyncio.to_thread(_save_upload, file, media_path)

    entry = service.begin(media_path, title=title, model_kind=model)
    logger.info("Accepted upload %s as %s", filename, entry.id)
    background.add_task(_run_and_cleanup, service, entry.id, media_path)
    return _entry_view(entry)
