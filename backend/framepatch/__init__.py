"""framepatch document mutation engine."""

from framepatch.errors import ClipboardError, EngineError, NotFoundError, StructuralError, ValidationError
from framepatch.models.document import Document, Frame, Node, NodeType
from framepatch.patch.applier import PatchApplier, apply_patch, invert
from framepatch.store.document_store import DocumentStore
from framepatch.store.parent_index import ParentIndex

__all__ = [
    "ClipboardError",
    "EngineError",
    "NotFoundError",
    "StructuralError",
    "ValidationError",
    "Document",
    "Frame",
    "Node",
    "NodeType",
    "PatchApplier",
    "apply_patch",
    "invert",
    "DocumentStore",
    "ParentIndex",
]
