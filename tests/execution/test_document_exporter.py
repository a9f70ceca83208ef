"""Tests for Markdown export."""

from dataclasses import replace

from config.settings import UNGENERATED_PLACEHOLDER
from execution.document_exporter import (
    apply_formatting,
    export_markdown,
    generate_filename,
    render_markdown,
)
from execution.document_model import Position, apply_generated_content, apply_manual_edit


class TestRenderMarkdown:
    def test_layout(self, sample_document):
        doc = apply_generated_content(sample_document, Position(0, 0), "Background text")
        md = render_markdown(doc)

        assert md.startswith("# AI in Schools\n\n**Topic:** Education\n\n## Abstract\n\nAn abstract.\n\n")
        assert "## Chapter 1: Intro\n\n### 1.1 Background\n\nBackground text\n\n" in md
        assert "## Chapter 2: Method\n\n### 2.1 Data\n\n" in md

    def test_ungenerated_placeholder(self, sample_document):
        md = render_markdown(sample_document)
        assert md.count(UNGENERATED_PLACEHOLDER) == 3

    def test_manual_draft_is_exported(self, sample_document):
        doc = apply_manual_edit(sample_document, Position(1, 0), "Draft data notes")
        assert "Draft data notes" in render_markdown(doc)

    def test_references_only_when_present(self, sample_document):
        assert "## References" not in render_markdown(sample_document)
        md = render_markdown(replace(sample_document, references="[1] A source"))
        assert md.endswith("## References\n\n[1] A source\n\n")

    def test_chapter_order_preserved(self, sample_document):
        md = render_markdown(sample_document)
        assert md.index("Chapter 1: Intro") < md.index("Chapter 2: Method")


class TestApplyFormatting:
    def test_collapses_blank_runs(self):
        assert apply_formatting("a\n\n\n\n\nb") == "a\n\n\nb\n"

    def test_blank_line_before_heading(self):
        assert apply_formatting("text\n## Heading") == "text\n\n## Heading\n"

    def test_strips_trailing_whitespace(self):
        assert apply_formatting("line   \r\nnext\t") == "line\nnext\n"


class TestGenerateFilename:
    def test_safe_name(self):
        assert generate_filename("AI in Schools: A Review") == "AI_in_Schools_A_Review.md"

    def test_empty_title(self):
        assert generate_filename("") == "untitled.md"
        assert generate_filename("???") == "untitled.md"


class TestExportMarkdown:
    def test_writes_file(self, sample_document, tmp_path):
        path = export_markdown(sample_document, tmp_path / "exports")
        assert path.name == "AI_in_Schools.md"
        content = path.read_text(encoding="utf-8")
        assert content.startswith("# AI in Schools")
        assert content.endswith("\n")
