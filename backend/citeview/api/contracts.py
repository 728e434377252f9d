from __future__ import annotations

from pydantic import BaseModel, Field, model_validator

from citeview.references.index import PopoverContent
from citeview.references.models import Chunk, ReferencePayload


class RenderRequest(BaseModel):
    content: str = Field(default="", max_length=500_000)
    loading: bool = False
    reference: ReferencePayload | None = None
    thumbnails: dict[str, str] = Field(default_factory=dict)


class CitationResponse(BaseModel):
    ordinal: int
    chunk_id: str | None = None
    document_id: str | None = None
    popover: PopoverContent


class RenderResponse(BaseModel):
    html: str
    citations: list[CitationResponse] = Field(default_factory=list)


class PopoverRequest(BaseModel):
    reference: ReferencePayload
    ordinal: int = Field(..., ge=0)
    thumbnails: dict[str, str] = Field(default_factory=dict)


class PreviewCreateResponse(BaseModel):
    preview_id: str


class PreviewOpenRequest(BaseModel):
    reference: ReferencePayload | None = None
    ordinal: int | None = Field(default=None, ge=0)
    chunk: Chunk | None = None
    document_id: str | None = Field(default=None, min_length=1)

    @model_validator(mode="after")
    def _require_target(self) -> "PreviewOpenRequest":
        by_ordinal = self.reference is not None and self.ordinal is not None
        if not by_ordinal and self.chunk is None and self.document_id is None:
            raise ValueError("Provide reference and ordinal, a chunk, or a document_id.")
        return self


class PreviewVisibilityRequest(BaseModel):
    visible: bool


class PreviewPageRequest(BaseModel):
    width: float = Field(..., gt=0)
    height: float = Field(..., gt=0)
