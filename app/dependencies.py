"""Shared dependencies for the FastAPI web layer."""

from fastapi import HTTPException, Request

from execution.builder_controller import BuilderSession
from execution.checkpoint_store import CheckpointStore, PersistenceError
from execution.document_model import Document, progress
from execution.usage_policy import UserContext

USER_HEADER = "x-user-id"


def get_store(request: Request) -> CheckpointStore:
    return request.app.state.store


def get_user_context(request: Request) -> UserContext:
    """Return the caller's usage context.

    Signed-in callers are identified by the ``X-User-Id`` header set by the
    auth proxy; everyone else is a guest keyed by client address.
    """
    user_id = request.headers.get(USER_HEADER) or None
    if user_id:
        key = f"user:{user_id}"
    else:
        host = request.client.host if request.client else "anonymous"
        key = f"guest:{host}"
    return request.app.state.ledger.context_for(key, user_id=user_id)


def new_session(request: Request) -> BuilderSession:
    """Create a builder session wired to the app's collaborators."""
    return BuilderSession(
        store=get_store(request),
        generate_fn=request.app.state.generate,
        policy=request.app.state.policy,
        user=get_user_context(request),
    )


def get_session(request: Request, doc_id: str) -> BuilderSession:
    """Return the live session for ``doc_id``, resuming it from its checkpoint.

    An unknown id yields a session on a fresh document; callers compare
    ``session.document.id`` with the requested id to detect that.
    """
    sessions = request.app.state.sessions
    session = sessions.get(doc_id)
    if session is None:
        session = new_session(request)
        session.resume(doc_id)
        sessions.add(session)
    return session


def get_document(request: Request, doc_id: str) -> Document:
    """Return the freshest copy of a document or raise 404."""
    session = request.app.state.sessions.get(doc_id)
    if session is not None:
        return session.document
    try:
        doc = get_store(request).load_by_id(doc_id)
    except PersistenceError as e:
        raise HTTPException(status_code=404, detail=str(e))
    if doc is None:
        raise HTTPException(status_code=404, detail=f"Makalah '{doc_id}' not found")
    return doc


def list_documents(request: Request) -> list[dict]:
    """Summaries of every saved checkpoint for the history page."""
    return [
        {
            "id": doc.id,
            "title": doc.title or "Untitled",
            "topic": doc.topic,
            "last_checkpoint": doc.last_checkpoint,
            "progress": progress(doc),
        }
        for doc in get_store(request).list_all()
    ]
