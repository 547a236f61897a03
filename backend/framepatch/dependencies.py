"""FastAPI dependency injection."""

from __future__ import annotations

from fastapi import Request

from framepatch.clipboard.service import ClipboardService
from framepatch.config import Settings
from framepatch.store.registry import DocumentRegistry


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_registry(request: Request) -> DocumentRegistry:
    return request.app.state.registry


def get_clipboard(request: Request) -> ClipboardService:
    return request.app.state.clipboard
