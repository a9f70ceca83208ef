"""Generation client: thin adapter around the OpenAI chat completions API.

Every caller in the builder and the text tools goes through ``generate``.
It never raises; transport problems, missing configuration and timeouts are
reported in ``GenerationResult.error``. A result carrying an error must be
discarded by the caller, whatever ``content`` holds.
"""

import logging
from dataclasses import dataclass

from config.settings import (
    GENERATION_TIMEOUT_SECONDS,
    LLM_ENABLED,
    LLM_MAX_TOKENS,
    LLM_MODEL,
    LLM_TEMPERATURE,
    OPENAI_API_KEY,
)

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are an academic writing assistant. "
    "Follow the instructions exactly and return only the requested text."
)

PROMPT_TEMPLATE = """Instructions: {instruction}
Text to process: {text}

Please provide output in a clear, consistent format."""


class GenerationError(Exception):
    """A generation call returned an error for a named unit of work."""

    def __init__(self, label: str, message: str):
        super().__init__(f'Failed to generate content for "{label}": {message}')
        self.label = label
        self.message = message


@dataclass
class GenerationResult:
    """Outcome of one generation call."""

    content: str
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def raise_for_error(self, label: str) -> str:
        """Return ``content`` or raise GenerationError when ``error`` is set."""
        if self.error is not None:
            raise GenerationError(label, self.error)
        return self.content


def is_available() -> bool:
    """Check if generation is enabled and the OpenAI API key is configured."""
    return LLM_ENABLED and bool(OPENAI_API_KEY)


def build_prompt(instruction: str, context: str) -> str:
    return PROMPT_TEMPLATE.format(instruction=instruction, text=context)


def generate(
    instruction: str,
    context: str,
    request_label: str,
    *,
    model: str | None = None,
    max_tokens: int | None = None,
    temperature: float | None = None,
    timeout: float | None = None,
) -> GenerationResult:
    """Run one instruction + context request against the LLM.

    Args:
        instruction: What to produce.
        context: Text the instruction applies to (may be empty).
        request_label: Short name of the unit being generated, for logs.
        model: Model to use (defaults to LLM_MODEL from settings).
        max_tokens: Max tokens in response (defaults to LLM_MAX_TOKENS).
        temperature: Sampling temperature (defaults to LLM_TEMPERATURE).
        timeout: Request timeout in seconds (defaults to GENERATION_TIMEOUT_SECONDS).

    Returns:
        GenerationResult with the trimmed reply, or an empty reply and
        ``error`` set.
    """
    if not is_available():
        return GenerationResult(content="", error="OPENAI_API_KEY is not configured")

    try:
        import openai
    except ImportError:
        return GenerationResult(
            content="", error="openai package is not installed. Run: pip install openai"
        )

    create_kwargs = {
        "model": model or LLM_MODEL,
        "max_tokens": max_tokens or LLM_MAX_TOKENS,
        "temperature": temperature if temperature is not None else LLM_TEMPERATURE,
        "messages": [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": build_prompt(instruction, context)},
        ],
    }

    try:
        client = openai.OpenAI(
            api_key=OPENAI_API_KEY,
            timeout=timeout or GENERATION_TIMEOUT_SECONDS,
            max_retries=0,
        )
        response = client.chat.completions.create(**create_kwargs)
    except openai.APIError as e:
        logger.warning("Generation for %r failed: %s", request_label, e)
        return GenerationResult(content="", error=f"OpenAI API error: {e}")
    except Exception as e:
        logger.warning("Generation for %r failed: %s", request_label, e)
        return GenerationResult(content="", error=f"LLM call failed: {e}")

    content = (response.choices[0].message.content or "").strip()
    logger.info(
        "Generated %d chars for %r (%s tokens)",
        len(content),
        request_label,
        getattr(response.usage, "total_tokens", "?"),
    )
    return GenerationResult(content=content)
