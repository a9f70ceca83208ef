"""Markdown export routes: preview and download."""

from fastapi import APIRouter, Request
from fastapi.responses import FileResponse

from app.dependencies import get_document
from config.settings import EXPORT_DIR
from execution.document_exporter import apply_formatting, export_markdown, render_markdown
from execution.document_model import progress

router = APIRouter()


@router.get("/export/{doc_id}")
async def export_page(request: Request, doc_id: str):
    """Preview the Markdown rendering of a makalah."""
    doc = get_document(request, doc_id)
    return request.app.state.templates.TemplateResponse(
        request,
        "export.html",
        {
            "doc": doc,
            "markdown": apply_formatting(render_markdown(doc)),
            "progress": progress(doc),
        },
    )


@router.get("/export/{doc_id}/download")
async def download_markdown(request: Request, doc_id: str):
    """Write the Markdown file and send it as a download."""
    doc = get_document(request, doc_id)
    output_path = export_markdown(doc, EXPORT_DIR / doc.id)
    return FileResponse(
        path=output_path,
        filename=output_path.name,
        media_type="text/markdown",
    )
