from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ChunkPosition(BaseModel):
    """Page-relative location of a chunk, as fractions of the page size."""

    model_config = ConfigDict(frozen=True)

    page: int = Field(default=1, ge=1)
    box: tuple[float, float, float, float]

    @model_validator(mode="after")
    def _check_box(self) -> "ChunkPosition":
        x1, y1, x2, y2 = self.box
        if any(value < 0.0 or value > 1.0 for value in self.box):
            raise ValueError("position box values must be fractions between 0 and 1")
        if x1 > x2 or y1 > y2:
            raise ValueError("position box must be ordered as (x1, y1, x2, y2)")
        return self


class Chunk(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str = Field(..., min_length=1)
    document_id: str = Field(..., min_length=1)
    content: str = ""
    image_id: str | None = None
    document_name: str | None = None
    position: ChunkPosition | None = None
    width: float | None = Field(default=None, gt=0)
    height: float | None = Field(default=None, gt=0)


class Document(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    doc_id: str = Field(..., min_length=1)
    doc_name: str = ""
    url: str | None = None
    extension: str | None = None
    thumbnail: str | None = None
    count: int = Field(default=0, ge=0)


class ReferencePayload(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    chunks: list[Chunk] = Field(default_factory=list)
    doc_aggs: list[Document] = Field(default_factory=list)
