"""Engine error taxonomy.

Every failure raised by the mutation engine is an ``EngineError``. Failures are
atomic: the document a caller held before the failing call is still the
current one. ``to_dict()`` is the shape surfaced to automation callers.
"""

from __future__ import annotations

from typing import Any


class EngineError(Exception):
    """Base class for recoverable engine failures."""

    kind = "engine_error"

    def __init__(self, message: str, *, op_index: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.op_index = op_index

    def at(self, op_index: int) -> EngineError:
        """Attach the position of the failing op inside a batch (first one wins)."""
        if self.op_index is None:
            self.op_index = op_index
        return self

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"kind": self.kind, "message": self.message}
        if self.op_index is not None:
            data["opIndex"] = self.op_index
        return data

    def __str__(self) -> str:
        if self.op_index is not None:
            return f"[op {self.op_index}] {self.message}"
        return self.message


class ValidationError(EngineError, ValueError):
    """Nonexistent ID, unresolvable property path, or a value failing its schema."""

    kind = "validation_error"


class StructuralError(EngineError, ValueError):
    """The op would create a cycle, double-attach a node, or orphan a reference."""

    kind = "structural_error"


class NotFoundError(EngineError, LookupError):
    """A drag/paste/automation request references something no longer in the snapshot."""

    kind = "not_found"


class ClipboardError(EngineError, ValueError):
    """Empty or schema-incompatible clipboard content."""

    kind = "clipboard_error"
