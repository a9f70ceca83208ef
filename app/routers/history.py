"""Checkpoint history routes: list and delete saved makalah drafts."""

from urllib.parse import quote

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import RedirectResponse

from app.dependencies import get_store, list_documents
from execution.checkpoint_store import PersistenceError

router = APIRouter()


@router.get("/")
async def index(request: Request):
    """Landing page: every saved checkpoint, most recent first."""
    return request.app.state.templates.TemplateResponse(
        request,
        "index.html",
        {
            "documents": list_documents(request),
            "error": request.query_params.get("error"),
        },
    )


@router.post("/checkpoints/{doc_id}/delete")
async def delete_checkpoint(request: Request, doc_id: str):
    """Delete a checkpoint and redirect to the history page."""
    try:
        deleted = get_store(request).delete_by_id(doc_id)
    except PersistenceError as e:
        return RedirectResponse(url=f"/?error={quote(str(e))}", status_code=303)
    if not deleted:
        raise HTTPException(status_code=404, detail="Checkpoint not found")
    request.app.state.sessions.discard(doc_id)
    return RedirectResponse(url="/", status_code=303)
