"""Single-call writing tools: paraphrase, summarize, grammar and plagiarism checks.

Each tool builds an instruction, sends the user's text through the
generation client and turns the marked-up reply into a typed result. All
language work is done by the LLM; this module only asks and parses.

Reply markers:
    paraphrase  [highlight]changed phrase[/highlight]
    summarize   [key]key term[/key], optional leading [TLDR]
    grammar     [errors=N] [improvements=N] [score=N],
                [fix=original]corrected[/fix] ... [note]why[/note],
                [improve]suggestion[/improve]
    plagiarism  JSON object (see config/schemas/plagiarism.schema.json)
"""

import json
import logging
import re
from dataclasses import asdict, dataclass, field
from typing import Callable

from jsonschema import ValidationError

from execution import generation_client
from execution.generation_client import GenerationResult
from execution.outline_generator import strip_code_fences
from execution.schema_validator import validate_plagiarism_report

logger = logging.getLogger(__name__)

GenerateFn = Callable[[str, str, str], GenerationResult]

PARAPHRASE_STYLES = {
    "standard": "Rewrite the text in clear, natural language while preserving its meaning.",
    "formal": "Rewrite the text in a formal academic register while preserving its meaning.",
    "simple": "Rewrite the text with simple words and short sentences while preserving its meaning.",
    "creative": "Rewrite the text with fresh wording and varied sentence structure while preserving its meaning.",
}

PARAPHRASE_INSTRUCTION = (
    "{style} Wrap every phrase you changed significantly in [highlight] and "
    "[/highlight] markers. Return only the rewritten text."
)

SUMMARY_STYLES = {
    "smart": "Write a coherent prose summary that keeps the main argument.",
    "bullet": "Write the summary as bullet points, one idea per line, each starting with •.",
    "academic": "Write the summary in a formal academic register suitable for an abstract.",
    "tldr": "Start with [TLDR] followed by a single-sentence summary, then one short paragraph.",
}

SUMMARY_INSTRUCTION = (
    "Summarize the text to about {length}% of its original length. {style} "
    "Wrap the most important terms in [key] and [/key] markers."
)

GRAMMAR_STYLES = {
    "standard": "Use standard written English.",
    "academic": "Hold the text to academic writing conventions.",
    "casual": "Keep the casual tone; only fix real errors.",
}

GRAMMAR_INSTRUCTION = (
    "Check the text for grammar, spelling and punctuation. {style} "
    "Start the reply with [errors=N] [improvements=N] [score=N], where score is a "
    "0-100 readability score. Then return the full corrected text. Mark each correction "
    "as [fix=original words]corrected words[/fix] immediately followed by "
    "[note]short explanation[/note]. Wrap optional style suggestions in [improve] and [/improve]."
)

PLAGIARISM_INSTRUCTION = """Assess how original the text is and whether passages resemble known published sources.
Return ONLY a JSON object, no markdown:
{"similarityScore": 0-100, "originalityScore": 0-100,
 "matchedSources": [{"url": "source url", "similarity": 0-100, "matchedText": "matching passage"}]}"""

MIN_SUMMARY_LENGTH = 10
MAX_SUMMARY_LENGTH = 90

_HIGHLIGHT = re.compile(r"\[highlight\](.*?)\[/highlight\]", re.DOTALL)
_KEY = re.compile(r"\[key\](.*?)\[/key\]", re.DOTALL)
# A note belongs to a fix only when nothing but whitespace separates them
_FIX = re.compile(r"\[fix=(.*?)\](.*?)\[/fix\](?:\s*\[note\](.*?)\[/note\])?", re.DOTALL)
_IMPROVE = re.compile(r"\[improve\](.*?)\[/improve\]", re.DOTALL)
_NOTE = re.compile(r"\s*\[note\].*?\[/note\]", re.DOTALL)
_METRIC = re.compile(r"\[(errors|improvements|score)=(\d+)\]")


class ToolError(Exception):
    """A tool request could not be completed."""


class ToolInputError(ToolError):
    """The request itself is invalid (empty text, unknown style, bad length)."""


@dataclass
class ParaphraseResult:
    text: str
    highlights: list[str] = field(default_factory=list)
    raw: str = ""

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class SummaryResult:
    text: str
    key_terms: list[str] = field(default_factory=list)
    tldr: bool = False
    raw: str = ""

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class Correction:
    original: str
    corrected: str
    explanation: str


@dataclass
class GrammarReport:
    text: str
    corrections: list[Correction] = field(default_factory=list)
    improvements: list[str] = field(default_factory=list)
    error_count: int = 0
    improvement_count: int = 0
    readability_score: int = 0
    raw: str = ""

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class MatchedSource:
    url: str
    similarity: float
    matched_text: str


@dataclass
class PlagiarismReport:
    similarity_score: float
    originality_score: float
    matched_sources: list[MatchedSource] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


def _require_text(text: str) -> str:
    if not text or not text.strip():
        raise ToolInputError("Please enter some text to process.")
    return text.strip()


def _resolve_style(style: str, styles: dict) -> str:
    if style not in styles:
        raise ToolInputError(f"Unknown style: {style}. Must be one of {sorted(styles)}")
    return styles[style]


def _run(generate_fn: GenerateFn | None, instruction: str, text: str, label: str) -> str:
    generate_fn = generate_fn or generation_client.generate
    result = generate_fn(instruction, text, label)
    if result.error is not None:
        logger.warning("%s request failed: %s", label, result.error)
        raise ToolError(f"{label} failed: {result.error}")
    return result.content


def paraphrase(text: str, style: str = "standard", generate_fn: GenerateFn | None = None) -> ParaphraseResult:
    """Rewrite ``text`` in the given style, reporting the changed phrases."""
    text = _require_text(text)
    instruction = PARAPHRASE_INSTRUCTION.format(style=_resolve_style(style, PARAPHRASE_STYLES))
    raw = _run(generate_fn, instruction, text, "Paraphrase")
    return ParaphraseResult(
        text=_HIGHLIGHT.sub(r"\1", raw).strip(),
        highlights=[h.strip() for h in _HIGHLIGHT.findall(raw)],
        raw=raw,
    )


def summarize(
    text: str,
    style: str = "smart",
    length_percent: int = 50,
    generate_fn: GenerateFn | None = None,
) -> SummaryResult:
    """Summarize ``text`` to roughly ``length_percent`` of its length."""
    text = _require_text(text)
    if not MIN_SUMMARY_LENGTH <= length_percent <= MAX_SUMMARY_LENGTH:
        raise ToolInputError(
            f"Summary length must be between {MIN_SUMMARY_LENGTH} and {MAX_SUMMARY_LENGTH} percent"
        )
    instruction = SUMMARY_INSTRUCTION.format(
        length=length_percent, style=_resolve_style(style, SUMMARY_STYLES)
    )
    raw = _run(generate_fn, instruction, text, "Summarize")
    cleaned = _KEY.sub(r"\1", raw)
    tldr = "[TLDR]" in cleaned
    cleaned = cleaned.replace("[TLDR]", "TLDR:")
    return SummaryResult(
        text=cleaned.strip(),
        key_terms=[k.strip() for k in _KEY.findall(raw)],
        tldr=tldr,
        raw=raw,
    )


def parse_grammar_response(raw: str) -> GrammarReport:
    """Turn a marked-up grammar reply into a GrammarReport."""
    metrics = {name: int(value) for name, value in _METRIC.findall(raw)}
    corrections = [
        Correction(
            original=match.group(1).strip(),
            corrected=match.group(2).strip(),
            explanation=(match.group(3) or "").strip(),
        )
        for match in _FIX.finditer(raw)
    ]
    improvements = [i.strip() for i in _IMPROVE.findall(raw)]

    text = _METRIC.sub("", raw)
    text = _FIX.sub(r"\2", text)
    # Notes not attached to any fix
    text = _NOTE.sub("", text)
    text = _IMPROVE.sub(r"\1", text)
    text = re.sub(r"[ \t]{2,}", " ", text).strip()

    return GrammarReport(
        text=text,
        corrections=corrections,
        improvements=improvements,
        error_count=metrics.get("errors", len(corrections)),
        improvement_count=metrics.get("improvements", len(improvements)),
        readability_score=metrics.get("score", 0),
        raw=raw,
    )


def check_grammar(text: str, style: str = "standard", generate_fn: GenerateFn | None = None) -> GrammarReport:
    text = _require_text(text)
    instruction = GRAMMAR_INSTRUCTION.format(style=_resolve_style(style, GRAMMAR_STYLES))
    return parse_grammar_response(_run(generate_fn, instruction, text, "Grammar check"))


def parse_plagiarism_response(raw: str) -> PlagiarismReport:
    """Parse the JSON plagiarism reply.

    Raises:
        ToolError: If the reply is not a valid report.
    """
    try:
        data = json.loads(strip_code_fences(raw or ""))
        validate_plagiarism_report(data)
    except json.JSONDecodeError as e:
        raise ToolError(f"Plagiarism report is not valid JSON: {e}") from e
    except ValidationError as e:
        raise ToolError(f"Plagiarism report has an unexpected structure: {e.message}") from e

    return PlagiarismReport(
        similarity_score=data["similarityScore"],
        originality_score=data["originalityScore"],
        matched_sources=[
            MatchedSource(url=s["url"], similarity=s["similarity"], matched_text=s["matchedText"])
            for s in data["matchedSources"]
        ],
    )


def check_plagiarism(text: str, generate_fn: GenerateFn | None = None) -> PlagiarismReport:
    text = _require_text(text)
    return parse_plagiarism_response(_run(generate_fn, PLAGIARISM_INSTRUCTION, text, "Plagiarism check"))
