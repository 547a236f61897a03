"""Document endpoints — the automation contract for patch batches.

Engine failures are returned in the body as ``{ok: false, error}`` so
automation callers can report or retry. Unknown document ids answer 404.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Response

from framepatch.clipboard.service import ClipboardService
from framepatch.dependencies import get_clipboard, get_registry
from framepatch.errors import EngineError, NotFoundError
from framepatch.models.clipboard import ClipboardPayload
from framepatch.models.document import Document, Point
from framepatch.models.patch_ops import parse_ops
from framepatch.models.persisted import load_persisted
from framepatch.models.requests import (
    CreateDocumentRequest,
    DuplicateRequest,
    PasteRequest,
    PatchRequest,
)
from framepatch.models.responses import ClipboardResponse, DocumentResponse, ErrorInfo
from framepatch.store.document_store import DocumentStore
from framepatch.store.registry import DocumentRegistry

router = APIRouter(prefix="/documents")
logger = logging.getLogger(__name__)


def _snapshot(store: DocumentStore) -> DocumentResponse:
    return DocumentResponse(
        ok=True,
        document_id=store.document.document_id,
        version=store.version,
        document=store.document.to_json(),
        can_undo=store.can_undo,
        can_redo=store.can_redo,
    )


def _failure(error: EngineError, response: Response, store: DocumentStore | None = None) -> DocumentResponse:
    if isinstance(error, NotFoundError) and store is None:
        response.status_code = 404
    logger.info("Request rejected: %s", error)
    result = DocumentResponse(ok=False, error=ErrorInfo.from_error(error))
    if store is not None:
        result.document_id = store.document.document_id
        result.version = store.version
        result.can_undo = store.can_undo
        result.can_redo = store.can_redo
    return result


@router.post("", response_model=DocumentResponse)
async def create_document(
    req: CreateDocumentRequest,
    response: Response,
    registry: DocumentRegistry = Depends(get_registry),
) -> DocumentResponse:
    try:
        if req.persisted is not None:
            document = load_persisted(req.persisted)
        else:
            document = Document.empty(req.document_id)
        store = registry.open(document)
    except EngineError as e:
        response.status_code = 400
        return DocumentResponse(ok=False, error=ErrorInfo.from_error(e))
    return _snapshot(store)


@router.get("/{document_id}", response_model=DocumentResponse)
async def get_document(
    document_id: str,
    response: Response,
    registry: DocumentRegistry = Depends(get_registry),
) -> DocumentResponse:
    try:
        return _snapshot(registry.get(document_id))
    except NotFoundError as e:
        return _failure(e, response)


@router.post("/{document_id}/patches", response_model=DocumentResponse)
async def apply_patches(
    document_id: str,
    req: PatchRequest,
    response: Response,
    registry: DocumentRegistry = Depends(get_registry),
) -> DocumentResponse:
    try:
        store = registry.get(document_id)
    except NotFoundError as e:
        return _failure(e, response)
    try:
        ops = parse_ops(req.ops)
        store.apply_patches(ops, req.label or "Automation edit")
    except EngineError as e:
        return _failure(e, response, store)
    return _snapshot(store)


@router.post("/{document_id}/undo", response_model=DocumentResponse)
async def undo(
    document_id: str,
    response: Response,
    registry: DocumentRegistry = Depends(get_registry),
) -> DocumentResponse:
    try:
        store = registry.get(document_id)
    except NotFoundError as e:
        return _failure(e, response)
    try:
        store.undo()
    except EngineError as e:
        return _failure(e, response, store)
    return _snapshot(store)


@router.post("/{document_id}/redo", response_model=DocumentResponse)
async def redo(
    document_id: str,
    response: Response,
    registry: DocumentRegistry = Depends(get_registry),
) -> DocumentResponse:
    try:
        store = registry.get(document_id)
    except NotFoundError as e:
        return _failure(e, response)
    try:
        store.redo()
    except EngineError as e:
        return _failure(e, response, store)
    return _snapshot(store)


@router.delete("/{document_id}/frames/{frame_id}", response_model=DocumentResponse)
async def delete_frame(
    document_id: str,
    frame_id: str,
    response: Response,
    registry: DocumentRegistry = Depends(get_registry),
) -> DocumentResponse:
    try:
        store = registry.get(document_id)
    except NotFoundError as e:
        return _failure(e, response)
    try:
        store.delete_frame(frame_id)
    except EngineError as e:
        return _failure(e, response, store)
    return _snapshot(store)


@router.post("/{document_id}/copy", response_model=ClipboardResponse)
async def copy(
    document_id: str,
    req: DuplicateRequest,
    response: Response,
    registry: DocumentRegistry = Depends(get_registry),
    clipboard: ClipboardService = Depends(get_clipboard),
) -> ClipboardResponse:
    try:
        store = registry.get(document_id)
        payload = clipboard.copy_selection(store, req.selection)
    except NotFoundError as e:
        response.status_code = 404
        return ClipboardResponse(ok=False, error=ErrorInfo.from_error(e))
    except EngineError as e:
        return ClipboardResponse(ok=False, error=ErrorInfo.from_error(e))
    await clipboard.copy(payload)
    return ClipboardResponse(ok=True, payload=payload.to_json(), root_ids=list(payload.root_ids))


@router.post("/{document_id}/paste", response_model=DocumentResponse)
async def paste(
    document_id: str,
    req: PasteRequest,
    response: Response,
    registry: DocumentRegistry = Depends(get_registry),
    clipboard: ClipboardService = Depends(get_clipboard),
) -> DocumentResponse:
    try:
        store = registry.get(document_id)
    except NotFoundError as e:
        return _failure(e, response)
    cursor = None
    if req.cursor_x is not None and req.cursor_y is not None:
        cursor = Point(x=req.cursor_x, y=req.cursor_y)
    try:
        payload = ClipboardPayload.from_json(req.payload)
        clipboard.paste_into(store, payload, req.frame_id, req.selection, cursor)
    except EngineError as e:
        return _failure(e, response, store)
    return _snapshot(store)


@router.post("/{document_id}/duplicate", response_model=DocumentResponse)
async def duplicate(
    document_id: str,
    req: DuplicateRequest,
    response: Response,
    registry: DocumentRegistry = Depends(get_registry),
    clipboard: ClipboardService = Depends(get_clipboard),
) -> DocumentResponse:
    try:
        store = registry.get(document_id)
    except NotFoundError as e:
        return _failure(e, response)
    try:
        clipboard.duplicate(store, req.selection)
    except EngineError as e:
        return _failure(e, response, store)
    return _snapshot(store)
