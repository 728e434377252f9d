from __future__ import annotations

from typing import Callable

from fastapi import APIRouter

from citeview.api.contracts import CitationResponse, PopoverRequest, RenderRequest, RenderResponse
from citeview.markup.pipeline import MarkdownContentRenderer
from citeview.references.index import PopoverContent, ReferenceIndex


AnswerRendererGetter = Callable[[], MarkdownContentRenderer]


def build_rendering_router(*, get_answer_renderer: AnswerRendererGetter) -> APIRouter:
    router = APIRouter()

    @router.post("/render", response_model=RenderResponse)
    async def render_answer_endpoint(payload: RenderRequest) -> RenderResponse:
        rendered = await get_answer_renderer().render(
            payload.content,
            payload.reference,
            thumbnails=payload.thumbnails,
            loading=payload.loading,
        )
        return RenderResponse(
            html=rendered.html,
            citations=[
                CitationResponse(
                    ordinal=citation.ordinal,
                    chunk_id=citation.chunk_id,
                    document_id=citation.document_id,
                    popover=citation.popover,
                )
                for citation in rendered.citations
            ],
        )

    @router.post("/references/popover", response_model=PopoverContent)
    def reference_popover(payload: PopoverRequest) -> PopoverContent:
        index = ReferenceIndex(payload.reference, thumbnails=payload.thumbnails)
        return index.popover(payload.ordinal)

    return router
