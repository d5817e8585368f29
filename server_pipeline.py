# server_pipeline.py
import os
import mimetypes
from typing import Any, Dict, List, Optional, Tuple

from fastapi import FastAPI, UploadFile, File, HTTPException, Query
from fastapi.responses import JSONResponse, Response

from config import settings
from assessment_pipeline import exporters, utils
from assessment_pipeline.constants import PART_COUNT
from assessment_pipeline.content_extraction import uploaded_file_from_bytes
from assessment_pipeline.errors import TransitionRejected
from assessment_pipeline.schemas import UploadedFile
from assessment_pipeline.session import PipelineSession, SessionRegistry, SessionState

logger = utils.setup_logger(__name__)

app = FastAPI(title="Assessment Pipeline Server", version="1.0.0")

# In-memory sessions; a restart discards them
registry = SessionRegistry()


# ---- helpers ----

def _snapshot(session: PipelineSession, state: Optional[SessionState] = None) -> Dict[str, Any]:
    st = state or session.state
    next_part = st.next_part
    return {
        "sessionId": session.session_id,
        "status": st.status.value,
        "files": [{"name": f.name, "mimeType": f.mime_type} for f in st.files],
        "analysis": st.analysis.to_wire() if st.analysis else None,
        "currentPartIndex": st.current_part_index,
        "questionCount": st.total_questions,
        "partCounts": list(st.part_counts),
        "progress": round(st.progress, 4),
        "nextPart": next_part.name if next_part else None,
        "error": st.error,
    }


def _session_or_404(session_id: str) -> PipelineSession:
    session = registry.get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Unknown session.")
    return session


def _accepted(mime: str) -> bool:
    return any(mime.startswith(p) for p in settings.ACCEPTED_MIME_PREFIXES)


def _read_uploads(files: List[UploadFile]) -> Tuple[List[UploadedFile], int]:
    """Turn multipart uploads into UploadedFile records. Returns (records, total_bytes)."""
    records: List[UploadedFile] = []
    total_bytes = 0
    for f in files:
        name = f.filename or "upload"
        mime = (f.content_type or "").split(";")[0].strip()
        if not mime or mime == "application/octet-stream":
            mime = mimetypes.guess_type(name)[0] or ""
        if not _accepted(mime):
            logger.warning("Skipping unsupported file '%s' (%s).", name, mime or "unknown type")
            continue
        data = f.file.read()
        if not data:
            continue
        total_bytes += len(data)
        records.append(uploaded_file_from_bytes(name, mime, data))
    return records, total_bytes


# ---- API ----

@app.get("/health")
def health():
    return {"ok": True, "service": "assessment-pipeline", "version": app.version, "sessions": len(registry)}


@app.post("/api/sessions", status_code=201)
def create_session():
    session = registry.create()
    logger.info("Server: created session %s", session.session_id[:8])
    return _snapshot(session)


@app.get("/api/sessions/{session_id}")
def get_session(session_id: str):
    return _snapshot(_session_or_404(session_id))


@app.delete("/api/sessions/{session_id}")
def delete_session(session_id: str):
    if not registry.drop(session_id):
        raise HTTPException(status_code=404, detail="Unknown session.")
    return {"ok": True}


@app.post("/api/sessions/{session_id}/files")
def upload_files(
    session_id: str,
    files: List[UploadFile] = File(..., description="Textbook PDF(s) and/or chapter images"),
):
    session = _session_or_404(session_id)
    if not files:
        raise HTTPException(status_code=400, detail="No files uploaded.")
    if len(files) + len(session.state.files) > settings.UPLOAD_MAX_FILES:
        raise HTTPException(status_code=413, detail=f"Too many files (>{settings.UPLOAD_MAX_FILES}).")

    records, total_bytes = _read_uploads(files)
    if not records:
        raise HTTPException(status_code=400, detail="Uploaded files are empty or unsupported.")
    if total_bytes > settings.UPLOAD_MAX_TOTAL_BYTES:
        raise HTTPException(
            status_code=413,
            detail=f"Total upload too large (> {settings.UPLOAD_MAX_TOTAL_BYTES // (1024 * 1024)} MB).",
        )

    try:
        state = session.add_files(records)
    except TransitionRejected as e:
        raise HTTPException(status_code=409, detail=str(e))
    return _snapshot(session, state)


@app.delete("/api/sessions/{session_id}/files")
def clear_files(session_id: str):
    session = _session_or_404(session_id)
    try:
        state = session.clear_files()
    except TransitionRejected as e:
        raise HTTPException(status_code=409, detail=str(e))
    return _snapshot(session, state)


@app.post("/api/sessions/{session_id}/analyze")
def analyze(session_id: str):
    """Blocking: returns once the analysis call has finished or failed."""
    session = _session_or_404(session_id)
    try:
        state = session.start_analysis()
    except TransitionRejected as e:
        raise HTTPException(status_code=409, detail=str(e))
    return _snapshot(session, state)


@app.post("/api/sessions/{session_id}/parts/next")
def generate_next_part(session_id: str):
    """Blocking: generates the next part's batch (the same part again after a failure)."""
    session = _session_or_404(session_id)
    try:
        state = session.generate_next_part()
    except TransitionRejected as e:
        raise HTTPException(status_code=409, detail=str(e))
    return _snapshot(session, state)


@app.post("/api/sessions/{session_id}/reset")
def reset_session(session_id: str):
    session = _session_or_404(session_id)
    try:
        state = session.reset()
    except TransitionRejected as e:
        raise HTTPException(status_code=409, detail=str(e))
    return _snapshot(session, state)


@app.get("/api/sessions/{session_id}/export.csv")
def export_csv(session_id: str, part: Optional[int] = Query(None, ge=0, lt=PART_COUNT)):
    state = _session_or_404(session_id).state
    if not exporters.select_part(state.mcqs, part):
        raise HTTPException(status_code=404, detail="No questions to export.")
    filename = exporters.export_filename("csv", part)
    return Response(
        content=exporters.to_csv(state.mcqs, part),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@app.get("/api/sessions/{session_id}/export.json")
def export_json(session_id: str):
    state = _session_or_404(session_id).state
    filename = exporters.export_filename("json")
    return JSONResponse(
        content=[m.to_wire() for m in state.mcqs],
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8080")))
