"""Health check endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from framepatch.config import Settings
from framepatch.dependencies import get_registry, get_settings
from framepatch.models.responses import HealthResponse
from framepatch.store.registry import DocumentRegistry

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health(
    registry: DocumentRegistry = Depends(get_registry),
    app_settings: Settings = Depends(get_settings),
) -> HealthResponse:
    return HealthResponse(
        status="ok",
        version="0.1.0",
        environment=app_settings.framepatch_env,
        documents=len(registry),
    )
