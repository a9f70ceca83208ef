"""Checkpoint persistence for makalah documents.

Each document is stored as one JSON file named after its id. Writes are full
snapshots (write to temp, then rename) and are serialized per document id so
two overlapping saves of the same document cannot interleave.
"""

import json
import logging
import os
import tempfile
import threading
from pathlib import Path

from jsonschema import ValidationError

from execution.document_model import Document
from execution.schema_validator import validate_document

logger = logging.getLogger(__name__)


class PersistenceError(Exception):
    """Raised when a checkpoint cannot be read, written or deleted."""


class CheckpointStore:
    """Key-value checkpoint store addressed by document id."""

    def __init__(self, directory: str | Path):
        self.directory = Path(directory)
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, doc_id: str) -> threading.Lock:
        with self._locks_guard:
            if doc_id not in self._locks:
                self._locks[doc_id] = threading.Lock()
            return self._locks[doc_id]

    def _path(self, doc_id: str) -> Path:
        if not doc_id or ".." in doc_id or "/" in doc_id or "\\" in doc_id:
            raise PersistenceError(f"Invalid document id: {doc_id!r}")
        return self.directory / f"{doc_id}.json"

    def save(self, doc: Document) -> None:
        """Write the full document snapshot.

        Raises:
            PersistenceError: If the file cannot be written.
        """
        path = self._path(doc.id)
        with self._lock_for(doc.id):
            try:
                path.parent.mkdir(parents=True, exist_ok=True)
                fd, tmp_path = tempfile.mkstemp(
                    dir=str(path.parent), suffix=".tmp", prefix="checkpoint_"
                )
            except OSError as e:
                raise PersistenceError(f"Cannot save checkpoint {doc.id}: {e}") from e
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(doc.to_dict(), f, indent=2, ensure_ascii=False)
                os.replace(tmp_path, str(path))
            except Exception as e:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise PersistenceError(f"Cannot save checkpoint {doc.id}: {e}") from e
        logger.info("Checkpoint saved for %s", doc.id)

    def load_by_id(self, doc_id: str) -> Document | None:
        """Load one checkpoint.

        Returns:
            The Document, or None when no checkpoint exists for ``doc_id``.

        Raises:
            PersistenceError: If the file exists but is unreadable or invalid.
        """
        path = self._path(doc_id)
        if not path.exists():
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
            validate_document(data)
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            raise PersistenceError(f"Cannot load checkpoint {doc_id}: {e}") from e
        return Document.from_dict(data)

    def list_all(self) -> list[Document]:
        """Return every readable checkpoint, most recently saved first."""
        documents = []
        if not self.directory.exists():
            return documents
        for path in sorted(self.directory.glob("*.json")):
            try:
                doc = self.load_by_id(path.stem)
            except PersistenceError as e:
                logger.warning("Skipping unreadable checkpoint %s: %s", path.name, e)
                continue
            if doc is not None:
                documents.append(doc)
        documents.sort(key=lambda d: d.last_checkpoint, reverse=True)
        return documents

    def delete_by_id(self, doc_id: str) -> bool:
        """Delete a checkpoint.

        Returns:
            True if a checkpoint was deleted, False if none existed.

        Raises:
            PersistenceError: If the file exists but cannot be removed.
        """
        path = self._path(doc_id)
        with self._lock_for(doc_id):
            if not path.exists():
                return False
            try:
                path.unlink()
            except OSError as e:
                raise PersistenceError(f"Cannot delete checkpoint {doc_id}: {e}") from e
        with self._locks_guard:
            self._locks.pop(doc_id, None)
        logger.info("Checkpoint deleted for %s", doc_id)
        return True
