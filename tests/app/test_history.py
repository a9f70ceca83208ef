"""Tests for the checkpoint history routes."""

from dataclasses import replace


class TestIndexPage:
    def test_index_returns_200(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert "Makalah History" in response.text

    def test_empty_history_message(self, client):
        assert "No saved makalah yet." in client.get("/").text

    def test_lists_saved_documents_newest_first(self, client, store, sample_document):
        store.save(replace(sample_document, id="old", title="Older Paper", last_checkpoint="2025-01-01T00:00:00+00:00"))
        store.save(replace(sample_document, id="new", title="Newer Paper", last_checkpoint="2025-05-01T00:00:00+00:00"))

        text = client.get("/").text
        assert text.index("Newer Paper") < text.index("Older Paper")
        assert "0 / 3" in text

    def test_outlined_document_appears(self, client, outlined_doc_id):
        assert f"/builder/{outlined_doc_id}" in client.get("/").text


class TestDeleteCheckpoint:
    def test_delete_redirects_home(self, client, store, sample_document):
        store.save(sample_document)
        response = client.post("/checkpoints/doc-1/delete", follow_redirects=False)
        assert response.status_code == 303
        assert response.headers["location"] == "/"
        assert store.load_by_id("doc-1") is None

    def test_delete_missing_returns_404(self, client):
        response = client.post("/checkpoints/missing/delete", follow_redirects=False)
        assert response.status_code == 404

    def test_delete_drops_live_session(self, client, store, outlined_doc_id):
        client.post(f"/checkpoints/{outlined_doc_id}/delete", follow_redirects=False)
        response = client.get(f"/builder/{outlined_doc_id}", follow_redirects=False)
        assert response.status_code == 302
