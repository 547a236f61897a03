"""API request models."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class CreateDocumentRequest(BaseModel):
    document_id: str | None = Field(default=None, description="Id for a new empty document")
    persisted: dict[str, Any] | None = Field(
        default=None,
        description="Persisted wrapper {type, version, document} to load instead",
    )


class PatchRequest(BaseModel):
    ops: list[dict[str, Any]] = Field(..., description="Patch ops in wire form")
    label: str | None = Field(default=None, description="Undo label for the batch")


class DuplicateRequest(BaseModel):
    selection: list[str] = Field(..., description="Selected node ids")


class PasteRequest(BaseModel):
    payload: str = Field(..., description="Clipboard payload JSON text")
    frame_id: str = Field(..., description="Frame to paste into")
    selection: list[str] = Field(default_factory=list, description="Current selection")
    cursor_x: float | None = Field(default=None, description="Frame-local cursor x")
    cursor_y: float | None = Field(default=None, description="Frame-local cursor y")
