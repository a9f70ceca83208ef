"""Shared test fixtures for the MakalahAI test suite."""

import pytest

from execution.checkpoint_store import CheckpointStore
from execution.document_model import Chapter, Document, SubChapter
from execution.generation_client import GenerationResult


@pytest.fixture(autouse=True)
def set_test_environment(monkeypatch):
    """Ensure all tests run with ENVIRONMENT=test and no real API key."""
    monkeypatch.setenv("ENVIRONMENT", "test")
    import execution.generation_client as gc

    monkeypatch.setattr(gc, "OPENAI_API_KEY", "")


@pytest.fixture
def tmp_checkpoint_dir(tmp_path):
    return tmp_path / "checkpoints"


@pytest.fixture
def store(tmp_checkpoint_dir):
    return CheckpointStore(tmp_checkpoint_dir)


@pytest.fixture
def sample_chapters():
    """Two chapters: 'Intro' with two sub-chapters and 'Method' with one."""
    return (
        Chapter(title="Intro", subchapters=(SubChapter(title="Background"), SubChapter(title="Problem"))),
        Chapter(title="Method", subchapters=(SubChapter(title="Data"),)),
    )


@pytest.fixture
def sample_document(sample_chapters):
    return Document(
        id="doc-1",
        title="AI in Schools",
        topic="Education",
        abstract="An abstract.",
        chapters=sample_chapters,
        references="",
        last_checkpoint="2025-01-01T00:00:00+00:00",
    )


OUTLINE_JSON = (
    '[{"title": "Intro", "subchapters": [{"title": "Background"}, {"title": "Problem"}]},'
    ' {"title": "Method", "subchapters": [{"title": "Data"}]}]'
)


class ScriptedGenerator:
    """Stub generate function.

    Replies come from ``replies`` keyed by request label; a label missing
    from the map gets ``default``. Every call is recorded.
    """

    def __init__(self, replies=None, default="Generated text."):
        self.replies = dict(replies or {})
        self.default = default
        self.calls = []

    def __call__(self, instruction, context, label):
        self.calls.append({"instruction": instruction, "context": context, "label": label})
        reply = self.replies.get(label, self.default)
        if isinstance(reply, GenerationResult):
            return reply
        if isinstance(reply, Exception):
            raise reply
        return GenerationResult(content=reply)

    @property
    def labels(self):
        return [call["label"] for call in self.calls]


@pytest.fixture
def generator():
    """A stub generator that answers the outline request with OUTLINE_JSON."""
    return ScriptedGenerator(replies={"Outline": OUTLINE_JSON, "Abstract": "The abstract."})


@pytest.fixture
def make_generator():
    """Factory for ScriptedGenerator stubs, for tests that need custom replies."""
    def _make(replies=None, default="Generated text."):
        merged = {"Outline": OUTLINE_JSON, "Abstract": "The abstract."}
        merged.update(replies or {})
        return ScriptedGenerator(replies=merged, default=default)
    return _make


@pytest.fixture
def outline_json():
    return OUTLINE_JSON
