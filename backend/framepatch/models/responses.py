"""API response models."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from framepatch.errors import EngineError


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str = "0.1.0"
    environment: str = "development"
    documents: int = 0


class ErrorInfo(BaseModel):
    kind: str
    message: str
    op_index: int | None = Field(default=None, serialization_alias="opIndex")

    @classmethod
    def from_error(cls, error: EngineError) -> ErrorInfo:
        return cls(kind=error.kind, message=error.message, op_index=error.op_index)


class DocumentResponse(BaseModel):
    ok: bool = True
    document_id: str | None = None
    version: int = 0
    document: dict[str, Any] | None = None
    can_undo: bool = False
    can_redo: bool = False
    error: ErrorInfo | None = None


class ClipboardResponse(BaseModel):
    ok: bool = True
    payload: str | None = None
    root_ids: list[str] = Field(default_factory=list)
    error: ErrorInfo | None = None
