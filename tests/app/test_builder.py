"""Tests for the builder routes."""

from app.main import app
from execution.builder_controller import BuilderSessions
from execution.document_model import Position, progress


class TestNewBuilder:
    def test_redirects_to_new_document(self, client):
        response = client.get("/builder", follow_redirects=False)
        assert response.status_code == 303
        assert response.headers["location"].startswith("/builder/")

    def test_new_document_not_persisted_yet(self, client, store, new_doc_id):
        assert store.load_by_id(new_doc_id) is None

    def test_page_shows_outline_form(self, client, new_doc_id):
        response = client.get(f"/builder/{new_doc_id}")
        assert response.status_code == 200
        assert "Chapter structure" in response.text
        assert "Load sample makalah" in response.text

    def test_unknown_document_starts_new_one(self, client):
        response = client.get("/builder/does-not-exist", follow_redirects=False)
        assert response.status_code == 302
        new_location = response.headers["location"]
        assert new_location != "/builder/does-not-exist"

        page = client.get(new_location)
        assert "Checkpoint not found. Starting a new makalah." in page.text

    def test_live_sessions_are_capped(self, client, monkeypatch):
        monkeypatch.setattr(app.state, "sessions", BuilderSessions(max_sessions=2))
        for _ in range(5):
            client.get("/builder", follow_redirects=False)
        assert len(app.state.sessions) == 2

    def test_dropped_session_resumes_from_checkpoint(self, client, monkeypatch):
        monkeypatch.setattr(app.state, "sessions", BuilderSessions(max_sessions=1))
        location = client.get("/builder", follow_redirects=False).headers["location"]
        outlined_doc_id = location.rsplit("/", 1)[1]
        client.post(
            f"/builder/{outlined_doc_id}/outline",
            data={"title": "AI in Schools", "topic": "Education", "chapters": "Intro; Method"},
            follow_redirects=False,
        )
        client.get("/builder", follow_redirects=False)
        assert app.state.sessions.get(outlined_doc_id) is None

        page = client.get(f"/builder/{outlined_doc_id}")
        assert page.status_code == 200
        assert app.state.sessions.get(outlined_doc_id).document.title == "AI in Schools"


class TestOutline:
    def test_outline_generates_structure_and_abstract(self, client, store, generator, outlined_doc_id):
        doc = store.load_by_id(outlined_doc_id)
        assert [c.title for c in doc.chapters] == ["Intro", "Method"]
        assert doc.abstract == "The abstract."
        assert generator.labels == ["Outline", "Abstract"]

        page = client.get(f"/builder/{outlined_doc_id}")
        assert "Initial structure and abstract generated!" in page.text
        assert "Background" in page.text
        assert "0 / 3 sub-chapters generated" in page.text

    def test_outline_redirects_back(self, client, new_doc_id):
        response = client.post(
            f"/builder/{new_doc_id}/outline",
            data={"title": "T", "topic": "Topic", "chapters": "Intro"},
            follow_redirects=False,
        )
        assert response.status_code == 303
        assert response.headers["location"] == f"/builder/{new_doc_id}"

    def test_missing_fields_show_error(self, client, generator, new_doc_id):
        client.post(f"/builder/{new_doc_id}/outline", data={"title": "T"}, follow_redirects=False)
        page = client.get(f"/builder/{new_doc_id}")
        assert "are all required" in page.text
        assert generator.calls == []


class TestGenerate:
    def test_generate_next_fills_first_unit(self, client, store, outlined_doc_id):
        response = client.post(f"/builder/{outlined_doc_id}/generate", follow_redirects=False)
        assert response.status_code == 303

        doc = store.load_by_id(outlined_doc_id)
        assert doc.get_subchapter(Position(0, 0)).generated is True
        assert progress(doc)["generated"] == 1

    def test_generate_until_complete(self, client, store, outlined_doc_id):
        for _ in range(4):
            client.post(f"/builder/{outlined_doc_id}/generate", follow_redirects=False)
        assert progress(store.load_by_id(outlined_doc_id))["complete"] is True
        page = client.get(f"/builder/{outlined_doc_id}")
        assert "All chapters and sub-chapters have been generated!" in page.text

    def test_overwrite_draft(self, client, store, outlined_doc_id):
        client.post(f"/builder/{outlined_doc_id}/edit", data={"content": "My draft"}, follow_redirects=False)
        client.post(f"/builder/{outlined_doc_id}/generate", follow_redirects=False)
        assert store.load_by_id(outlined_doc_id).get_subchapter(Position(0, 0)).content == "My draft"

        client.post(f"/builder/{outlined_doc_id}/generate", data={"overwrite": "true"}, follow_redirects=False)
        sub = store.load_by_id(outlined_doc_id).get_subchapter(Position(0, 0))
        assert sub.generated is True
        assert sub.content == "Generated text."

    def test_abstract_retry(self, client, store, generator, outlined_doc_id):
        generator.replies["Abstract"] = "A better abstract."
        client.post(f"/builder/{outlined_doc_id}/abstract", follow_redirects=False)
        assert store.load_by_id(outlined_doc_id).abstract == "A better abstract."


class TestNavigationAndEditing:
    def test_navigate_next(self, client, outlined_doc_id):
        client.post(f"/builder/{outlined_doc_id}/navigate", data={"direction": "next"}, follow_redirects=False)
        page = client.get(f"/builder/{outlined_doc_id}")
        assert "<h2>1.2 Problem</h2>" in page.text

    def test_navigate_invalid_direction_redirects_with_error(self, client, outlined_doc_id):
        response = client.post(
            f"/builder/{outlined_doc_id}/navigate",
            data={"direction": "sideways"},
            headers={"referer": f"http://testserver/builder/{outlined_doc_id}"},
            follow_redirects=False,
        )
        assert response.status_code == 303
        assert "error=Invalid%20direction" in response.headers["location"]

    def test_goto_abstract_and_edit(self, client, store, outlined_doc_id):
        client.post(f"/builder/{outlined_doc_id}/goto", data={"chapter": -1, "sub": -1}, follow_redirects=False)
        client.post(f"/builder/{outlined_doc_id}/edit", data={"content": "Hand-written abstract"}, follow_redirects=False)
        assert store.load_by_id(outlined_doc_id).abstract == "Hand-written abstract"

    def test_goto_out_of_range(self, client, outlined_doc_id):
        response = client.post(
            f"/builder/{outlined_doc_id}/goto", data={"chapter": 7, "sub": 0}, follow_redirects=False
        )
        assert response.status_code == 303
        assert "error=" in response.headers["location"]

    def test_references_and_save(self, client, store, outlined_doc_id):
        client.post(f"/builder/{outlined_doc_id}/references", data={"references": "[1] Source"}, follow_redirects=False)
        client.post(f"/builder/{outlined_doc_id}/save", follow_redirects=False)
        assert store.load_by_id(outlined_doc_id).references == "[1] Source"
        page = client.get(f"/builder/{outlined_doc_id}")
        assert "Your current makalah draft has been saved." in page.text


class TestSample:
    def test_load_sample_moves_to_new_document(self, client, store, new_doc_id):
        response = client.post(f"/builder/{new_doc_id}/sample", follow_redirects=False)
        location = response.headers["location"]
        sample_id = location.rsplit("/", 1)[1]

        assert sample_id != new_doc_id
        doc = store.load_by_id(sample_id)
        assert progress(doc)["complete"] is True
        assert "Loaded sample makalah data." in client.get(location).text


class TestUsageLimits:
    def test_guest_runs_out_of_free_uses(self, limited_client, store, new_doc_id):
        limited_client.post(
            f"/builder/{new_doc_id}/outline",
            data={"title": "T", "topic": "Topic", "chapters": "Intro"},
            follow_redirects=False,
        )
        limited_client.post(f"/builder/{new_doc_id}/generate", follow_redirects=False)
        limited_client.post(f"/builder/{new_doc_id}/generate", follow_redirects=False)

        assert progress(store.load_by_id(new_doc_id))["generated"] == 1
        page = limited_client.get(f"/builder/{new_doc_id}")
        assert "free guest attempts" in page.text
