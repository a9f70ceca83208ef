"""Instruction builders for abstract and sub-chapter generation.

The instruction names what to write; the accumulated document context that
goes with it comes from ``document_model.build_context``.
"""

from execution.document_model import Document, Position

ABSTRACT_REQUEST_LABEL = "Abstract"

ABSTRACT_INSTRUCTION = (
    'Generate a concise abstract for a makalah titled "{title}" '
    'on the topic of "{topic}".'
)

CHUNK_INSTRUCTION = (
    'Generate content for the "{sub_title}" sub-chapter under the '
    '"{chapter_title}" chapter for a makalah titled "{title}" '
    'on the topic of "{topic}".'
)

# Extra guidance sent when the target already holds a manual draft that
# the user chose to overwrite
DRAFT_NOTE = " The author left this draft for the sub-chapter; use it as a starting point: {draft}"


def build_abstract_instruction(title: str, topic: str) -> str:
    return ABSTRACT_INSTRUCTION.format(title=title, topic=topic)


def build_chunk_instruction(doc: Document, position: Position) -> str:
    """Build the instruction for one sub-chapter.

    Raises:
        ValueError: If ``position`` is outside the document.
    """
    sub = doc.get_subchapter(position)
    instruction = CHUNK_INSTRUCTION.format(
        sub_title=sub.title,
        chapter_title=doc.chapters[position.chapter].title,
        title=doc.title,
        topic=doc.topic,
    )
    if not sub.generated and sub.content.strip():
        instruction += DRAFT_NOTE.format(draft=sub.content.strip())
    return instruction
