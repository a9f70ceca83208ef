"""Outline parsing for the makalah builder.

Turns the user's free-text or semi-structured chapter description into a
typed Chapter/SubChapter skeleton. The LLM is asked for a bare JSON array;
its reply goes through a sanitize step (code-fence stripping only) and then a
strict parse + schema check. Nothing is repaired beyond the fences.
"""

import json
import logging
import re

from jsonschema import ValidationError

from execution.document_model import Chapter, SubChapter
from execution.schema_validator import validate_outline

logger = logging.getLogger(__name__)

OUTLINE_REQUEST_LABEL = "Outline"

OUTLINE_INSTRUCTION = """Convert the chapter description below into the outline of an academic paper titled "{title}" on the topic of "{topic}".

Return ONLY a JSON array with this structure, no markdown and no commentary:
[
  {{"title": "Chapter title", "subchapters": [{{"title": "Sub-chapter title"}}]}}
]

Rules:
- Keep the chapters and sub-chapters in the order the description gives them
- Use the titles the description gives; do not invent extra chapters
- Every chapter has a "subchapters" array (it may be empty)"""

_FENCE_OPEN = re.compile(r"^```[a-zA-Z]*\s*")
_FENCE_CLOSE = re.compile(r"\s*```$")


class OutlineParseError(Exception):
    """The outline reply is not a valid chapter structure.

    The raw reply is kept on ``raw_text`` for diagnostics.
    """

    def __init__(self, message: str, raw_text: str):
        super().__init__(message)
        self.raw_text = raw_text


def build_outline_instruction(title: str, topic: str) -> str:
    return OUTLINE_INSTRUCTION.format(title=title.strip(), topic=topic.strip())


def strip_code_fences(text: str) -> str:
    """Remove one pair of enclosing Markdown code fences, if present."""
    cleaned = text.strip()
    if cleaned.startswith("```"):
        cleaned = _FENCE_OPEN.sub("", cleaned)
        cleaned = _FENCE_CLOSE.sub("", cleaned)
        cleaned = cleaned.strip()
    return cleaned


def parse_outline_response(raw_text: str) -> list[Chapter]:
    """Parse an outline reply into chapters.

    Args:
        raw_text: The LLM reply, possibly wrapped in code fences.

    Returns:
        Ordered list of Chapter objects with ungenerated sub-chapters.

    Raises:
        OutlineParseError: If the reply is not JSON or does not match the
            outline schema.
    """
    cleaned = strip_code_fences(raw_text or "")
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise OutlineParseError(f"Outline is not valid JSON: {e}", raw_text) from e

    try:
        validate_outline(data)
    except ValidationError as e:
        location = ".".join(str(p) for p in e.absolute_path) or "root"
        raise OutlineParseError(f"Outline does not match the expected structure at {location}: {e.message}", raw_text) from e

    chapters = [
        Chapter(
            title=chap["title"].strip(),
            subchapters=tuple(SubChapter(title=sub["title"].strip()) for sub in chap["subchapters"]),
        )
        for chap in data
    ]
    logger.info(
        "Parsed outline: %d chapters, %d sub-chapters",
        len(chapters),
        sum(len(c.subchapters) for c in chapters),
    )
    return chapters
