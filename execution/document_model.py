"""Document model and progress tracker for the makalah builder.

A document is a title/topic/abstract header followed by an ordered list of
chapters, each holding an ordered list of sub-chapters. Sub-chapters are the
unit of generation: they start empty with ``generated=False`` and flip to
``True`` once accepted LLM output is applied.

All model values are frozen dataclasses. Every ``apply_*`` function returns a
new Document and leaves its argument untouched, so a failed generation can
never leave a half-written structure behind.
"""

import json
import uuid
from dataclasses import asdict, dataclass, field, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, NamedTuple

NEXT = "next"
PREVIOUS = "previous"
DIRECTIONS = (NEXT, PREVIOUS)


def _now() -> str:
    """Return current UTC time as ISO 8601 string."""
    return datetime.now(timezone.utc).isoformat()


class Position(NamedTuple):
    """Address of one unit: zero-based chapter and sub-chapter indices."""

    chapter: int
    sub: int

    @property
    def is_abstract(self) -> bool:
        return self == ABSTRACT_POSITION

    def label(self) -> str:
        """Human-readable ``N.M`` numbering (or ``Abstract``)."""
        if self.is_abstract:
            return "Abstract"
        return f"{self.chapter + 1}.{self.sub + 1}"


# The abstract acts as a virtual zeroth unit when there are no sub-chapters
ABSTRACT_POSITION = Position(-1, -1)
FIRST_POSITION = Position(0, 0)


@dataclass(frozen=True)
class SubChapter:
    title: str
    content: str = ""
    generated: bool = False


@dataclass(frozen=True)
class Chapter:
    title: str
    subchapters: tuple[SubChapter, ...] = ()


@dataclass(frozen=True)
class Document:
    """A makalah: the paper being built, persisted as one checkpoint."""

    id: str
    title: str = ""
    topic: str = ""
    abstract: str = ""
    chapters: tuple[Chapter, ...] = ()
    references: str = ""
    last_checkpoint: str = field(default_factory=_now)

    def to_dict(self) -> dict:
        """Return the JSON-shaped checkpoint dict (tuples become lists)."""
        data = asdict(self)
        data["chapters"] = [
            {"title": chap["title"], "subchapters": list(chap["subchapters"])}
            for chap in data["chapters"]
        ]
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Document":
        """Build a Document from its checkpoint dict (lists become tuples)."""
        chapters = tuple(
            Chapter(
                title=chap["title"],
                subchapters=tuple(
                    SubChapter(
                        title=sub["title"],
                        content=sub.get("content", ""),
                        generated=bool(sub.get("generated", False)),
                    )
                    for sub in chap.get("subchapters", [])
                ),
            )
            for chap in data.get("chapters", [])
        )
        return cls(
            id=data["id"],
            title=data.get("title", ""),
            topic=data.get("topic", ""),
            abstract=data.get("abstract", ""),
            chapters=chapters,
            references=data.get("references", ""),
            last_checkpoint=data.get("last_checkpoint") or _now(),
        )

    def get_subchapter(self, position: Position) -> SubChapter:
        _check_position(self, position)
        return self.chapters[position.chapter].subchapters[position.sub]


def new_document(title: str = "", topic: str = "") -> Document:
    """Create an empty document with a fresh id."""
    return Document(id=str(uuid.uuid4()), title=title, topic=topic)


def _check_position(doc: Document, position: Position) -> None:
    """Raise ValueError unless ``position`` addresses an existing sub-chapter."""
    chapter_idx, sub_idx = position
    if not 0 <= chapter_idx < len(doc.chapters):
        raise ValueError(f"Chapter {chapter_idx} not found")
    if not 0 <= sub_idx < len(doc.chapters[chapter_idx].subchapters):
        raise ValueError(f"Sub-chapter {chapter_idx}.{sub_idx} not found")


def iter_positions(doc: Document) -> Iterator[Position]:
    """Yield every sub-chapter position in document order."""
    for i, chapter in enumerate(doc.chapters):
        for j in range(len(chapter.subchapters)):
            yield Position(i, j)


def progress(doc: Document) -> dict:
    """Return generated/total sub-chapter counts."""
    total = 0
    generated = 0
    for chapter in doc.chapters:
        for sub in chapter.subchapters:
            total += 1
            if sub.generated:
                generated += 1
    return {"generated": generated, "total": total, "complete": total > 0 and generated == total}


def find_next_ungenerated(doc: Document, start: Position = FIRST_POSITION) -> Position | None:
    """Return the first ungenerated sub-chapter at or after ``start``.

    The scan runs forward in document order and does not wrap back to the
    beginning.

    Args:
        doc: The document to scan.
        start: Inclusive starting position.

    Returns:
        The position found, or None when everything from ``start`` onward is
        generated (or the document has no chapters).

    Raises:
        ValueError: If ``start`` lies outside the document.
    """
    if not doc.chapters:
        return None
    chapter_idx, sub_idx = start
    if not 0 <= chapter_idx < len(doc.chapters) or sub_idx < 0:
        raise ValueError(f"Invalid start position {tuple(start)}")
    subs = doc.chapters[chapter_idx].subchapters
    if sub_idx > 0 and sub_idx >= len(subs):
        raise ValueError(f"Invalid start position {tuple(start)}")

    for i in range(chapter_idx, len(doc.chapters)):
        first = sub_idx if i == chapter_idx else 0
        for j in range(first, len(doc.chapters[i].subchapters)):
            if not doc.chapters[i].subchapters[j].generated:
                return Position(i, j)
    return None


def last_generated_position(doc: Document) -> Position | None:
    """Return the last generated sub-chapter in document order, if any."""
    for position in reversed(list(iter_positions(doc))):
        if doc.get_subchapter(position).generated:
            return position
    return None


def build_context(doc: Document, target: Position) -> str:
    """Build the cumulative context sent with the generation of ``target``.

    The context holds the abstract, the title of every chapter up to and
    including the target's, and every generated sub-chapter that comes
    before the target. Nothing at or after the target is included.
    """
    _check_position(doc, target)
    parts = [f"Abstract: {doc.abstract}\n\n"]
    for i in range(target.chapter + 1):
        chapter = doc.chapters[i]
        parts.append(f"Chapter {i + 1}: {chapter.title}\n")
        limit = target.sub if i == target.chapter else len(chapter.subchapters)
        for j in range(limit):
            sub = chapter.subchapters[j]
            if sub.generated:
                parts.append(f"  Sub-chapter {i + 1}.{j + 1}: {sub.title}\n")
                parts.append(f"{sub.content}\n\n")
    return "".join(parts)


def _replace_subchapter(doc: Document, position: Position, **changes) -> Document:
    _check_position(doc, position)
    chapter = doc.chapters[position.chapter]
    subs = list(chapter.subchapters)
    subs[position.sub] = replace(subs[position.sub], **changes)
    chapters = list(doc.chapters)
    chapters[position.chapter] = replace(chapter, subchapters=tuple(subs))
    return replace(doc, chapters=tuple(chapters), last_checkpoint=_now())


def apply_generated_content(doc: Document, position: Position, text: str) -> Document:
    """Store accepted LLM output in a sub-chapter and mark it generated.

    Raises:
        ValueError: If the position is out of range or ``text`` is empty
            (a generated sub-chapter always has content).
    """
    if not text or not text.strip():
        raise ValueError("Generated content must not be empty")
    return _replace_subchapter(doc, position, content=text, generated=True)


def apply_manual_edit(doc: Document, position: Position, text: str) -> Document:
    """Overwrite a sub-chapter's content without touching its generated flag."""
    return _replace_subchapter(doc, position, content=text)


def touch(doc: Document) -> Document:
    """Return ``doc`` with a refreshed checkpoint timestamp."""
    return replace(doc, last_checkpoint=_now())


def apply_abstract(doc: Document, text: str) -> Document:
    return replace(doc, abstract=text, last_checkpoint=_now())


def apply_references(doc: Document, text: str) -> Document:
    return replace(doc, references=text, last_checkpoint=_now())


def apply_outline(doc: Document, title: str, topic: str, chapters: list[Chapter]) -> Document:
    """Replace the skeleton with ``chapters``, every sub-chapter ungenerated."""
    skeleton = tuple(
        Chapter(
            title=chap.title,
            subchapters=tuple(SubChapter(title=sub.title) for sub in chap.subchapters),
        )
        for chap in chapters
    )
    return replace(
        doc,
        title=title,
        topic=topic,
        chapters=skeleton,
        references="",
        last_checkpoint=_now(),
    )


def navigate(doc: Document, position: Position, direction: str) -> Position:
    """Move one sub-chapter forward or backward in document order.

    Movement is clamped at the first and last sub-chapter. A document with
    no sub-chapters only has the abstract to show, so ABSTRACT_POSITION is
    returned. Moving from the abstract lands on the first sub-chapter.

    Raises:
        ValueError: On an unknown direction or a position outside the document.
    """
    if direction not in DIRECTIONS:
        raise ValueError(f"Invalid direction: {direction}. Must be one of {DIRECTIONS}")
    units = list(iter_positions(doc))
    if not units:
        return ABSTRACT_POSITION
    if position.is_abstract:
        return units[0]
    _check_position(doc, position)

    idx = units.index(position)
    if direction == NEXT:
        return units[min(idx + 1, len(units) - 1)]
    return units[max(idx - 1, 0)]


def document_from_sample(path: str | Path) -> Document:
    """Build a fully generated document from a sample JSON file.

    The sample format is ``{"title", "abstract", "sections": [{"heading",
    "content"}]}``; each section becomes a chapter with a single sub-chapter
    of the same title.
    """
    with open(Path(path), "r", encoding="utf-8") as f:
        sample = json.load(f)
    chapters = tuple(
        Chapter(
            title=section["heading"],
            subchapters=(
                SubChapter(title=section["heading"], content=section["content"], generated=True),
            ),
        )
        for section in sample.get("sections", [])
    )
    doc = new_document(title=sample["title"], topic=sample["title"])
    return replace(doc, abstract=sample.get("abstract", ""), chapters=chapters)
