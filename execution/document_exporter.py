"""Markdown export of makalah documents.

Renders a finished or partial document as a flat Markdown file. Sub-chapters
that were never generated get a placeholder line so the table of contents is
always complete.
"""

import re
from pathlib import Path

from config.settings import UNGENERATED_PLACEHOLDER
from execution.document_model import Document


def render_markdown(doc: Document) -> str:
    """Render ``doc`` as Markdown.

    Layout: ``# title``, ``**Topic:**``, ``## Abstract``, then per chapter
    ``## Chapter N: title`` and per sub-chapter ``### N.M title`` followed by
    its content, then ``## References`` when references are present.
    """
    parts = [
        f"# {doc.title}\n\n",
        f"**Topic:** {doc.topic}\n\n",
        f"## Abstract\n\n{doc.abstract}\n\n",
    ]
    for i, chapter in enumerate(doc.chapters, start=1):
        parts.append(f"## Chapter {i}: {chapter.title}\n\n")
        for j, sub in enumerate(chapter.subchapters, start=1):
            parts.append(f"### {i}.{j} {sub.title}\n\n")
            parts.append(f"{sub.content or UNGENERATED_PLACEHOLDER}\n\n")

    if doc.references:
        parts.append(f"## References\n\n{doc.references}\n\n")

    return "".join(parts)


def apply_formatting(document: str) -> str:
    """Normalize line endings, blank-line runs and trailing whitespace."""
    doc = document.replace("\r\n", "\n")

    # Keep at most two blank lines between blocks
    doc = re.sub(r"\n{4,}", "\n\n\n", doc)

    # Headings need a blank line before them
    doc = re.sub(r"([^\n])\n(#{1,6}\s)", r"\1\n\n\2", doc)

    lines = [line.rstrip() for line in doc.split("\n")]
    doc = "\n".join(lines)

    return doc.rstrip() + "\n"


def generate_filename(title: str) -> str:
    """Return ``<title>.md`` with runs of unsafe characters replaced by ``_``."""
    safe_name = re.sub(r"[^a-zA-Z0-9]+", "_", title or "").strip("_")
    return f"{safe_name or 'untitled'}.md"


def export_markdown(doc: Document, directory: str | Path) -> Path:
    """Write the formatted Markdown rendering of ``doc`` under ``directory``.

    Returns:
        Path of the written file.
    """
    output_dir = Path(directory)
    output_dir.mkdir(parents=True, exist_ok=True)
    output_path = output_dir / generate_filename(doc.title)
    output_path.write_text(apply_formatting(render_markdown(doc)), encoding="utf-8")
    return output_path
