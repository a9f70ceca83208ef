"""Builder controller: one editing session over one makalah document.

Drives the generation workflow end to end:

    EMPTY --submit_outline--> STRUCTURE_PENDING --> ABSTRACT_PENDING --> READY
    READY --generate_next--> GENERATING_CHUNK --> READY

Only one outline/abstract/chunk call is in flight per session; triggers that
arrive meanwhile are ignored. LLM and persistence failures never escape a
session method: they are logged and turned into Notices for the UI, and the
document is only replaced after a call has fully succeeded.
"""

import asyncio
import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable

from config.settings import GENERATION_TIMEOUT_SECONDS, MAX_LIVE_SESSIONS, SAMPLE_DOCUMENT
from execution import generation_client
from execution.chapter_writer import (
    ABSTRACT_REQUEST_LABEL,
    build_abstract_instruction,
    build_chunk_instruction,
)
from execution.checkpoint_store import CheckpointStore, PersistenceError
from execution.document_exporter import render_markdown
from execution.document_model import (
    ABSTRACT_POSITION,
    FIRST_POSITION,
    PREVIOUS,
    Document,
    Position,
    apply_abstract,
    apply_generated_content,
    apply_manual_edit,
    apply_outline,
    apply_references,
    build_context,
    document_from_sample,
    find_next_ungenerated,
    iter_positions,
    last_generated_position,
    navigate,
    new_document,
    touch,
)
from execution.generation_client import GenerationError, GenerationResult
from execution.outline_generator import (
    OUTLINE_REQUEST_LABEL,
    OutlineParseError,
    build_outline_instruction,
    parse_outline_response,
)
from execution.usage_policy import UsagePolicy, UserContext

logger = logging.getLogger(__name__)

GenerateFn = Callable[[str, str, str], GenerationResult]


class BuilderState(str, Enum):
    EMPTY = "empty"
    STRUCTURE_PENDING = "structure_pending"
    ABSTRACT_PENDING = "abstract_pending"
    READY = "ready"
    GENERATING_CHUNK = "generating_chunk"


IN_FLIGHT_STATES = {
    BuilderState.STRUCTURE_PENDING,
    BuilderState.ABSTRACT_PENDING,
    BuilderState.GENERATING_CHUNK,
}


@dataclass(frozen=True)
class Notice:
    """A user-visible message produced by a session action."""

    level: str  # "info", "success" or "error"
    message: str
    title: str = ""
    created_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


class BuilderSession:
    """Editing session for one document.

    Args:
        store: Checkpoint store used for every persisted mutation.
        generate_fn: ``(instruction, context, label) -> GenerationResult``;
            defaults to the OpenAI-backed generation client.
        policy: Optional usage policy queried before each generation action.
        user: The UserContext charged by ``policy``.
        timeout: Per-call timeout in seconds.
    """

    def __init__(
        self,
        store: CheckpointStore,
        generate_fn: GenerateFn | None = None,
        policy: UsagePolicy | None = None,
        user: UserContext | None = None,
        timeout: float | None = None,
    ):
        self.store = store
        self._generate_fn = generate_fn or generation_client.generate
        self.policy = policy
        self.user = user if user is not None else UserContext()
        self.timeout = timeout if timeout is not None else GENERATION_TIMEOUT_SECONDS
        self.notices: list[Notice] = []
        self.document: Document = new_document()
        self.position: Position = ABSTRACT_POSITION
        self.state = BuilderState.EMPTY
        self.needs_abstract = False
        self.in_flight: Position | None = None

    # ------------------------------------------------------------------
    # Session views
    # ------------------------------------------------------------------

    @property
    def is_busy(self) -> bool:
        return self.state in IN_FLIGHT_STATES

    @property
    def current_title(self) -> str:
        if self.position.is_abstract:
            return "Abstract"
        return self.document.get_subchapter(self.position).title

    @property
    def current_text(self) -> str:
        if self.position.is_abstract:
            return self.document.abstract
        return self.document.get_subchapter(self.position).content

    def pop_notices(self) -> list[Notice]:
        notices, self.notices = self.notices, []
        return notices

    def _notify(self, level: str, message: str, title: str = "") -> Notice:
        notice = Notice(level=level, message=message, title=title)
        self.notices.append(notice)
        return notice

    def _first_position(self) -> Position:
        return next(iter_positions(self.document), ABSTRACT_POSITION)

    def _settle_state(self) -> None:
        """Derive the resting state from the document after a load or reset."""
        has_chapters = bool(self.document.chapters)
        self.state = BuilderState.READY if has_chapters else BuilderState.EMPTY
        self.needs_abstract = has_chapters and not self.document.abstract.strip()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start_new(self) -> Document:
        """Replace the session document with a fresh empty one."""
        self.document = new_document()
        self.position = ABSTRACT_POSITION
        self._settle_state()
        return self.document

    def resume(self, doc_id: str) -> bool:
        """Load a checkpoint into the session.

        A missing or unreadable checkpoint starts a new document instead.

        Returns:
            True if the checkpoint was loaded.
        """
        try:
            doc = self.store.load_by_id(doc_id)
        except PersistenceError as e:
            logger.warning("Failed to load checkpoint %s: %s", doc_id, e)
            self._notify("error", f"Failed to load checkpoint: {e}. Starting a new makalah.", "Error")
            self.start_new()
            return False
        if doc is None:
            self._notify("error", "Checkpoint not found. Starting a new makalah.", "Error")
            self.start_new()
            return False

        self.document = doc
        self.position = last_generated_position(doc) or self._first_position()
        self._settle_state()
        self._notify("info", f"Loaded checkpoint: {doc.title or 'Untitled'}")
        return True

    def load_sample(self) -> bool:
        """Replace the session document with the bundled sample paper."""
        if self.is_busy:
            logger.info("Ignoring sample load for %s while %s", self.document.id, self.state.value)
            return False
        self.document = document_from_sample(SAMPLE_DOCUMENT)
        self.position = self._first_position()
        self._settle_state()
        self._persist()
        self._notify("info", "Loaded sample makalah data.")
        return True

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _persist(self) -> bool:
        try:
            self.store.save(self.document)
        except PersistenceError as e:
            logger.warning("Checkpoint save failed for %s: %s", self.document.id, e)
            self._notify("error", f"Failed to save checkpoint: {e}", "Error")
            return False
        return True

    def _authorize(self, action: str) -> bool:
        if self.policy is None:
            return True
        decision = self.policy.consume(self.user, action)
        if not decision.allowed:
            self._notify("error", decision.reason, "Usage limit reached")
        return decision.allowed

    async def _call(self, instruction: str, context: str, label: str) -> GenerationResult:
        """Run the blocking generate function on a worker thread with a timeout."""
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self._generate_fn, instruction, context, label),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("Generation for %r timed out after %ss", label, self.timeout)
            return GenerationResult(content="", error=f"timed out after {self.timeout:g} seconds")
        except Exception as e:
            logger.warning("Generation for %r raised: %s", label, e)
            return GenerationResult(content="", error=str(e) or type(e).__name__)

    # ------------------------------------------------------------------
    # Generation actions
    # ------------------------------------------------------------------

    async def submit_outline(self, title: str, topic: str, chapter_description: str) -> bool:
        """Create the chapter skeleton from a description, then the abstract.

        Returns:
            True when both the structure and the abstract were generated.
        """
        if self.state is not BuilderState.EMPTY:
            if self.is_busy:
                logger.info("Ignoring outline request for %s while %s", self.document.id, self.state.value)
            else:
                self._notify("info", "This makalah already has a chapter structure.")
            return False

        title, topic, chapter_description = title.strip(), topic.strip(), chapter_description.strip()
        if not (title and topic and chapter_description):
            self._notify("error", "Title, topic and chapter structure are all required.", "Error")
            return False
        if not self._authorize("builder.outline"):
            return False

        self.state = BuilderState.STRUCTURE_PENDING
        self.in_flight = ABSTRACT_POSITION
        result = await self._call(
            build_outline_instruction(title, topic), chapter_description, OUTLINE_REQUEST_LABEL
        )
        try:
            chapters = parse_outline_response(result.raise_for_error(OUTLINE_REQUEST_LABEL))
        except GenerationError as e:
            self.state = BuilderState.EMPTY
            self.in_flight = None
            self._notify(
                "error",
                f"Failed to generate initial structure: {e.message}. Please try again.",
                "Error",
            )
            return False
        except OutlineParseError as e:
            logger.warning("Outline parse failed for %s: %s", self.document.id, e)
            logger.debug("Raw outline reply for %s: %r", self.document.id, e.raw_text)
            self.state = BuilderState.EMPTY
            self.in_flight = None
            self._notify("error", f"Failed to parse the chapter structure: {e}", "Error")
            return False

        self.document = apply_outline(self.document, title, topic, chapters)
        self.position = self._first_position()
        self.needs_abstract = True
        self._persist()
        self.state = BuilderState.ABSTRACT_PENDING
        return await self._run_abstract()

    async def generate_abstract(self) -> bool:
        """Generate (or regenerate) the abstract of a structured document."""
        if self.state is not BuilderState.READY:
            logger.info("Ignoring abstract request for %s while %s", self.document.id, self.state.value)
            return False
        if not self.document.chapters:
            self._notify("info", "Create the chapter structure first.")
            return False
        if not self._authorize("builder.abstract"):
            return False
        self.state = BuilderState.ABSTRACT_PENDING
        self.in_flight = ABSTRACT_POSITION
        return await self._run_abstract()

    async def _run_abstract(self) -> bool:
        try:
            result = await self._call(
                build_abstract_instruction(self.document.title, self.document.topic),
                "",
                ABSTRACT_REQUEST_LABEL,
            )
        finally:
            self.state = BuilderState.READY
            self.in_flight = None

        try:
            content = result.raise_for_error(ABSTRACT_REQUEST_LABEL)
        except GenerationError as e:
            self._notify(
                "error",
                f"{e}. The chapter structure was kept; you can retry the abstract.",
                "Error",
            )
            return False
        if not content.strip():
            self._notify("info", "The abstract request returned no text; you can retry or write it yourself.")
            return False

        self.document = apply_abstract(self.document, content)
        self.needs_abstract = False
        self.position = self._first_position()
        self._persist()
        self._notify(
            "success",
            "Initial structure and abstract generated! You can now start generating chapters.",
            "Success",
        )
        return True

    async def generate_next(self, overwrite_draft: bool = False) -> bool:
        """Generate the first ungenerated sub-chapter of the document.

        A sub-chapter holding a manual draft is not overwritten unless
        ``overwrite_draft`` is set; the draft is then passed along as
        guidance.

        Returns:
            True if a sub-chapter was generated and applied.
        """
        if self.state is not BuilderState.READY:
            logger.info("Ignoring generate request for %s while %s", self.document.id, self.state.value)
            return False

        target = find_next_ungenerated(self.document, FIRST_POSITION)
        if target is None:
            self._notify("info", "All chapters and sub-chapters have been generated!", "Info")
            return False

        sub = self.document.get_subchapter(target)
        if sub.content.strip() and not overwrite_draft:
            self.position = target
            self._notify(
                "info",
                f'"{sub.title}" holds a manual draft that was never generated. '
                "Generate with overwrite to replace it, or keep editing.",
                "Draft kept",
            )
            return False
        if not self._authorize("builder.chunk"):
            return False

        self.state = BuilderState.GENERATING_CHUNK
        self.in_flight = target
        try:
            result = await self._call(
                build_chunk_instruction(self.document, target),
                build_context(self.document, target),
                sub.title,
            )
        finally:
            self.state = BuilderState.READY
            self.in_flight = None

        try:
            content = result.raise_for_error(sub.title)
        except GenerationError as e:
            self._notify("error", f"{e}", "Error")
            return False
        if not content.strip():
            self._notify("info", f'The model returned no text for "{sub.title}"; nothing was changed.')
            return False

        self.document = apply_generated_content(self.document, target, content)
        self.position = target
        self._persist()
        self._notify("success", f'Content for "{sub.title}" has been generated.', "Success")
        return True

    # ------------------------------------------------------------------
    # Synchronous actions
    # ------------------------------------------------------------------

    def navigate(self, direction: str) -> bool:
        """Move the current position one unit; boundaries produce a notice."""
        new_position = navigate(self.document, self.position, direction)
        if new_position == self.position:
            where = "first" if direction == PREVIOUS else "last"
            self._notify("info", f"Already at the {where} section.")
            return False
        self.position = new_position
        return True

    def go_to(self, position: Position) -> None:
        """Jump to a sub-chapter (or the abstract).

        Raises:
            ValueError: If the position is outside the document.
        """
        if not position.is_abstract:
            self.document.get_subchapter(position)
        self.position = position

    def _is_being_generated(self, position: Position) -> bool:
        """True when an in-flight call will write ``position``; posts a notice."""
        if not (self.is_busy and self.in_flight == position):
            return False
        self._notify(
            "info",
            f"{position.label()} is being generated right now; your edit was not applied.",
            "Edit blocked",
        )
        return True

    def edit_current(self, text: str) -> bool:
        """Overwrite the text at the current position with a manual edit.

        Returns:
            False if the position is the target of an in-flight call.
        """
        if self.position.is_abstract:
            return self.edit_abstract(text)
        if self._is_being_generated(self.position):
            return False
        self.document = apply_manual_edit(self.document, self.position, text)
        self._persist()
        return True

    def edit_abstract(self, text: str) -> bool:
        if self._is_being_generated(ABSTRACT_POSITION):
            return False
        self.document = apply_abstract(self.document, text)
        self.needs_abstract = bool(self.document.chapters) and not text.strip()
        self._persist()
        return True

    def edit_references(self, text: str) -> None:
        self.document = apply_references(self.document, text)
        self._persist()

    def save(self) -> bool:
        """Explicitly checkpoint the document."""
        self.document = touch(self.document)
        if self._persist():
            self._notify("success", "Your current makalah draft has been saved.", "Success")
            return True
        return False

    def export_markdown(self) -> str:
        return render_markdown(self.document)


class BuilderSessions:
    """Live sessions of the web app, keyed by document id.

    Holds at most ``max_sessions`` entries. Adding past the cap drops the
    least recently used idle sessions; their documents stay checkpointed and
    are resumed from the store on the next request.
    """

    def __init__(self, max_sessions: int = MAX_LIVE_SESSIONS):
        self.max_sessions = max_sessions
        self._sessions: OrderedDict[str, BuilderSession] = OrderedDict()

    def get(self, doc_id: str) -> BuilderSession | None:
        session = self._sessions.get(doc_id)
        if session is not None:
            self._sessions.move_to_end(doc_id)
        return session

    def add(self, session: BuilderSession) -> None:
        """Register ``session`` under its current document id."""
        for key, existing in list(self._sessions.items()):
            if existing is session and key != session.document.id:
                del self._sessions[key]
        self._sessions[session.document.id] = session
        self._sessions.move_to_end(session.document.id)
        self._evict()

    def _evict(self) -> None:
        # Busy sessions and the newest entry are never dropped
        for key, existing in list(self._sessions.items())[:-1]:
            if len(self._sessions) <= self.max_sessions:
                break
            if existing.is_busy:
                continue
            del self._sessions[key]
            logger.debug("Dropped idle session %s", key)

    def discard(self, doc_id: str) -> None:
        self._sessions.pop(doc_id, None)

    def __len__(self) -> int:
        return len(self._sessions)
