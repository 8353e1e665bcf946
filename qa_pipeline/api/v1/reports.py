"""Download reports written by the local artifact store."""

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import FileResponse

from qa_pipeline.storage.artifacts import LocalArtifactStore

router = APIRouter()


@router.get("/reports/{filename}")
async def get_report(filename: str, request: Request):
    store = getattr(request.app.state, "artifacts", None)
    if not isinstance(store, LocalArtifactStore):
        raise HTTPException(status_code=404, detail="Reports are not served locally")

    if not store.file_exists(filename):
        raise HTTPException(status_code=404, detail="Report not found")

    media_type = "application/pdf" if filename.endswith(".pdf") else "application/octet-stream"
    return FileResponse(store.get_path(filename), media_type=media_type, filename=filename)
