"""Makalah builder routes: outline, generation, navigation and editing."""

from fastapi import APIRouter, Form, Request
from fastapi.responses import RedirectResponse

from app.dependencies import get_session, new_session
from execution.document_model import ABSTRACT_POSITION, Position, progress

router = APIRouter()


def _builder_url(doc_id: str) -> str:
    return f"/builder/{doc_id}"


def _redirect(session) -> RedirectResponse:
    return RedirectResponse(url=_builder_url(session.document.id), status_code=303)


@router.get("/builder")
async def new_builder(request: Request):
    """Open a fresh session on a new, not yet persisted document."""
    session = new_session(request)
    request.app.state.sessions.add(session)
    return RedirectResponse(url=_builder_url(session.document.id), status_code=303)


@router.get("/builder/{doc_id}")
async def builder_page(request: Request, doc_id: str):
    """Builder page for one makalah."""
    session = get_session(request, doc_id)
    if session.document.id != doc_id:
        # Checkpoint missing or unreadable: the session moved to a new document
        return RedirectResponse(url=_builder_url(session.document.id), status_code=302)

    return request.app.state.templates.TemplateResponse(
        request,
        "builder.html",
        {
            "session": session,
            "doc": session.document,
            "position": session.position,
            "abstract_position": ABSTRACT_POSITION,
            "progress": progress(session.document),
            "notices": session.pop_notices(),
            "error": request.query_params.get("error"),
        },
    )


@router.post("/builder/{doc_id}/outline")
async def submit_outline(
    request: Request,
    doc_id: str,
    title: str = Form(""),
    topic: str = Form(""),
    chapters: str = Form(""),
):
    """Generate the chapter structure and abstract from the description."""
    session = get_session(request, doc_id)
    await session.submit_outline(title, topic, chapters)
    return _redirect(session)


@router.post("/builder/{doc_id}/abstract")
async def generate_abstract(request: Request, doc_id: str):
    session = get_session(request, doc_id)
    await session.generate_abstract()
    return _redirect(session)


@router.post("/builder/{doc_id}/generate")
async def generate_next(request: Request, doc_id: str, overwrite: bool = Form(False)):
    """Generate the next ungenerated sub-chapter."""
    session = get_session(request, doc_id)
    await session.generate_next(overwrite_draft=overwrite)
    return _redirect(session)


@router.post("/builder/{doc_id}/navigate")
async def navigate(request: Request, doc_id: str, direction: str = Form(...)):
    session = get_session(request, doc_id)
    session.navigate(direction)
    return _redirect(session)


@router.post("/builder/{doc_id}/goto")
async def go_to(request: Request, doc_id: str, chapter: int = Form(...), sub: int = Form(...)):
    """Jump to a sub-chapter; chapter=-1, sub=-1 selects the abstract."""
    session = get_session(request, doc_id)
    session.go_to(Position(chapter, sub))
    return _redirect(session)


@router.post("/builder/{doc_id}/edit")
async def edit_current(request: Request, doc_id: str, content: str = Form("")):
    session = get_session(request, doc_id)
    session.edit_current(content)
    return _redirect(session)


@router.post("/builder/{doc_id}/references")
async def edit_references(request: Request, doc_id: str, references: str = Form("")):
    session = get_session(request, doc_id)
    session.edit_references(references)
    return _redirect(session)


@router.post("/builder/{doc_id}/save")
async def save(request: Request, doc_id: str):
    session = get_session(request, doc_id)
    session.save()
    return _redirect(session)


@router.post("/builder/{doc_id}/sample")
async def load_sample(request: Request, doc_id: str):
    """Replace the session document with the bundled sample makalah."""
    session = get_session(request, doc_id)
    if session.load_sample():
        request.app.state.sessions.add(session)
    return _redirect(session)
