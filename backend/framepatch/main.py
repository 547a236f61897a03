"""FastAPI app factory."""

from __future__ import annotations

import logging

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from framepatch.clipboard.service import ClipboardService
from framepatch.config import Settings, settings
from framepatch.store.registry import DocumentRegistry

load_dotenv()

logging.basicConfig(
    level=getattr(logging, settings.framepatch_log_level.upper(), logging.INFO),
    format="%(asctime)s %(name)s %(levelname)s %(message)s",
)


def create_app(app_settings: Settings | None = None) -> FastAPI:
    app_settings = app_settings or settings
    app = FastAPI(
        title="framepatch",
        description="Document mutation engine — invertible patches, undo/redo, drag/drop and clipboard",
        version="0.1.0",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.settings = app_settings
    app.state.registry = DocumentRegistry(app_settings)
    app.state.clipboard = ClipboardService(settings=app_settings)

    from framepatch.api.router import api_router

    app.include_router(api_router)

    return app


app = create_app()
