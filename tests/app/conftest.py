"""Test fixtures for the web layer."""

import pytest
from fastapi.testclient import TestClient

from app.main import app
from execution.builder_controller import BuilderSessions
from execution.usage_policy import UsageLedger, UsagePolicy


@pytest.fixture
def client(store, generator, tmp_path, monkeypatch):
    """TestClient with a temp checkpoint store, stub generator and no usage limits."""
    import app.routers.export as export_router

    monkeypatch.setattr(app.state, "store", store)
    monkeypatch.setattr(app.state, "sessions", BuilderSessions())
    monkeypatch.setattr(app.state, "ledger", UsageLedger())
    monkeypatch.setattr(app.state, "policy", None)
    monkeypatch.setattr(app.state, "generate", generator)
    monkeypatch.setattr(export_router, "EXPORT_DIR", tmp_path / "exports")
    return TestClient(app)


@pytest.fixture
def limited_client(client, monkeypatch):
    """Same client, with the guest-trial/token policy enforced."""
    monkeypatch.setattr(app.state, "policy", UsagePolicy(guest_free_uses=2))
    return client


@pytest.fixture
def new_doc_id(client):
    """Open a new builder session and return its document id."""
    response = client.get("/builder", follow_redirects=False)
    return response.headers["location"].rsplit("/", 1)[1]


@pytest.fixture
def outlined_doc_id(client, new_doc_id):
    """A document whose structure and abstract have been generated."""
    client.post(
        f"/builder/{new_doc_id}/outline",
        data={"title": "AI in Schools", "topic": "Education", "chapters": "Intro; Method"},
        follow_redirects=False,
    )
    return new_doc_id
