"""Persisted document wrapper ``{type, version, document}`` with version migration."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from pydantic import ValidationError as SchemaError

from framepatch.errors import ValidationError
from framepatch.models.document import Document

logger = logging.getLogger(__name__)

DOCUMENT_TYPE = "document"
CURRENT_VERSION = 1


def _migrate_v0(document: dict[str, Any]) -> dict[str, Any]:
    """v0 stored child lists under ``children`` and had no component map."""
    migrated = dict(document)
    migrated.setdefault("irVersion", "1.0")
    migrated.setdefault("components", {})
    nodes = {}
    for node_id, node in (document.get("nodes") or {}).items():
        node = dict(node)
        if "children" in node and "childIds" not in node:
            node["childIds"] = node.pop("children")
        nodes[node_id] = node
    migrated["nodes"] = nodes
    return migrated


_MIGRATIONS: dict[int, Callable[[dict[str, Any]], dict[str, Any]]] = {
    0: _migrate_v0,
}


def load_persisted(data: Any) -> Document:
    """Validate a persisted wrapper, migrating older versions, and return its Document."""
    if not isinstance(data, dict) or data.get("type") != DOCUMENT_TYPE:
        raise ValidationError("Not a persisted document wrapper")
    version = data.get("version")
    if not isinstance(version, int) or not 0 <= version <= CURRENT_VERSION:
        raise ValidationError(f"Unsupported document version {version!r}")
    document = data.get("document")
    if not isinstance(document, dict):
        raise ValidationError("Persisted wrapper has no document")

    while version < CURRENT_VERSION:
        document = _MIGRATIONS[version](document)
        logger.info("Migrated persisted document from v%d to v%d", version, version + 1)
        version += 1

    try:
        return Document.model_validate(document)
    except SchemaError as e:
        raise ValidationError(f"Invalid persisted document: {e.error_count()} errors") from e


def dump_persisted(document: Document) -> dict[str, Any]:
    return {"type": DOCUMENT_TYPE, "version": CURRENT_VERSION, "document": document.to_json()}
