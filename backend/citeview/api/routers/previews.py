from __future__ import annotations

from typing import Callable

from fastapi import APIRouter, HTTPException

from citeview.api.contracts import (
    PreviewCreateResponse,
    PreviewOpenRequest,
    PreviewPageRequest,
    PreviewVisibilityRequest,
)
from citeview.preview.controller import PreviewController
from citeview.preview.geometry import PageDimensions
from citeview.preview.registry import PreviewRegistry
from citeview.references.index import ReferenceIndex


PreviewRegistryGetter = Callable[[], PreviewRegistry]


def build_previews_router(*, get_preview_registry: PreviewRegistryGetter) -> APIRouter:
    router = APIRouter()

    def require_preview(preview_id: str) -> PreviewController:
        controller = get_preview_registry().get(preview_id)
        if controller is None:
            raise HTTPException(status_code=404, detail="Preview not found.")
        return controller

    @router.post("/previews", response_model=PreviewCreateResponse)
    def create_preview() -> PreviewCreateResponse:
        return PreviewCreateResponse(preview_id=get_preview_registry().create())

    @router.get("/previews/{preview_id}")
    def get_preview(preview_id: str) -> dict[str, object]:
        return require_preview(preview_id).snapshot()

    @router.post("/previews/{preview_id}/open")
    async def open_preview(preview_id: str, payload: PreviewOpenRequest) -> dict[str, object]:
        controller = require_preview(preview_id)
        chunk = payload.chunk
        document_id = payload.document_id
        if payload.reference is not None and payload.ordinal is not None:
            resolved = ReferenceIndex(payload.reference).resolve(payload.ordinal)
            if resolved is None:
                raise HTTPException(status_code=404, detail=f"No reference chunk at ordinal {payload.ordinal}.")
            chunk = resolved.chunk
            document_id = resolved.chunk.document_id

        await controller.open(chunk, document_id=document_id)
        return controller.snapshot()

    @router.post("/previews/{preview_id}/visibility")
    def set_preview_visibility(preview_id: str, payload: PreviewVisibilityRequest) -> dict[str, object]:
        controller = require_preview(preview_id)
        controller.set_visible(payload.visible)
        return controller.snapshot()

    @router.post("/previews/{preview_id}/page")
    def report_page_dimensions(preview_id: str, payload: PreviewPageRequest) -> dict[str, object]:
        controller = require_preview(preview_id)
        controller.update_page_dimensions(PageDimensions(width=payload.width, height=payload.height))
        return controller.snapshot()

    @router.post("/previews/{preview_id}/close")
    def close_preview(preview_id: str) -> dict[str, bool]:
        if not get_preview_registry().close(preview_id):
            raise HTTPException(status_code=404, detail="Preview not found.")
        return {"closed": True}

    return router
