"""JSON Schema checks for outlines, checkpoints and tool reports.

LLM output and checkpoint files both arrive as loosely-typed JSON; these
helpers are the single place they are checked against the schemas in
``config/schemas`` before being turned into model objects.
"""

import json
from functools import lru_cache
from pathlib import Path

from jsonschema import Draft202012Validator, ValidationError

from config.settings import DOCUMENT_SCHEMA, OUTLINE_SCHEMA, PLAGIARISM_SCHEMA


@lru_cache(maxsize=None)
def load_schema(schema_path: str | Path) -> dict:
    """Load a JSON Schema file.

    Raises:
        FileNotFoundError: If the schema file does not exist.
    """
    with open(Path(schema_path), "r", encoding="utf-8") as f:
        return json.load(f)


def get_validation_errors(data, schema_path: str | Path) -> list[str]:
    """Return every validation error as ``path: message`` strings.

    Args:
        data: The decoded JSON value to check.
        schema_path: Path to the JSON Schema file.

    Returns:
        List of human-readable error messages. Empty if valid.
    """
    validator = Draft202012Validator(load_schema(schema_path))
    errors = sorted(validator.iter_errors(data), key=lambda e: list(e.path))
    return [
        f"{'.'.join(str(p) for p in error.absolute_path) or 'root'}: {error.message}"
        for error in errors
    ]


def validate_outline(data) -> None:
    """Raise ValidationError if ``data`` is not a chapter outline array."""
    Draft202012Validator(load_schema(OUTLINE_SCHEMA)).validate(data)


def validate_document(data) -> None:
    """Raise ValidationError if ``data`` is not a document checkpoint."""
    Draft202012Validator(load_schema(DOCUMENT_SCHEMA)).validate(data)


def validate_plagiarism_report(data) -> None:
    """Raise ValidationError if ``data`` is not a plagiarism report."""
    Draft202012Validator(load_schema(PLAGIARISM_SCHEMA)).validate(data)


def is_valid_document(data) -> bool:
    """Check a checkpoint payload without raising."""
    try:
        validate_document(data)
        return True
    except ValidationError:
        return False
