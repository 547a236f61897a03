"""One DocumentStore per open document id."""

from __future__ import annotations

import logging
import threading

from framepatch.config import Settings, get_settings
from framepatch.errors import NotFoundError, ValidationError
from framepatch.models.document import Document, check_invariants
from framepatch.store.document_store import DocumentStore

logger = logging.getLogger(__name__)


class DocumentRegistry:
    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or get_settings()
        self._stores: dict[str, DocumentStore] = {}
        self._lock = threading.Lock()

    def open(self, document: Document | None = None) -> DocumentStore:
        """Register a store for ``document`` (a new empty one when omitted)."""
        document = document if document is not None else Document.empty()
        problems = check_invariants(document)
        if problems:
            raise ValidationError(f"Document {document.document_id!r} is inconsistent: {problems[0]}")
        with self._lock:
            if document.document_id in self._stores:
                raise ValidationError(f"Document {document.document_id!r} is already open")
            store = DocumentStore(document, settings=self._settings)
            self._stores[document.document_id] = store
        logger.info("Opened document %s", document.document_id)
        return store

    def get(self, document_id: str) -> DocumentStore:
        store = self._stores.get(document_id)
        if store is None:
            raise NotFoundError(f"Document {document_id!r} is not open")
        return store

    def close(self, document_id: str) -> None:
        with self._lock:
            if self._stores.pop(document_id, None) is None:
                raise NotFoundError(f"Document {document_id!r} is not open")
        logger.info("Closed document %s", document_id)

    def __len__(self) -> int:
        return len(self._stores)

    def __contains__(self, document_id: object) -> bool:
        return document_id in self._stores
