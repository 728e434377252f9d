from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Literal, Mapping

from pydantic import BaseModel, Field

from citeview.markup.sanitize import sanitize_html
from citeview.references.models import Chunk, Document, ReferencePayload


logger = logging.getLogger("citeview.references")

PREVIEWABLE_EXTENSIONS = {"pdf", "docx", "doc"}

OpenActionKind = Literal["preview", "external", "none"]


class OpenAction(BaseModel):
    kind: OpenActionKind = "none"
    document_id: str | None = None
    chunk_id: str | None = None
    url: str | None = None


class PopoverContent(BaseModel):
    ordinal: int
    chunk_id: str | None = None
    chunk_content: str = ""
    image_id: str | None = None
    document_id: str | None = None
    document_name: str | None = None
    document_url: str | None = None
    thumbnail: str | None = None
    icon: str | None = None
    open_action: OpenAction = Field(default_factory=OpenAction)

    @property
    def is_empty(self) -> bool:
        return self.chunk_id is None


@dataclass(frozen=True)
class ResolvedReference:
    ordinal: int
    chunk: Chunk
    document: Document | None


def get_extension(file_name: str | None) -> str:
    if not file_name:
        return ""
    stem, dot, extension = file_name.strip().rpartition(".")
    if not dot or not stem or not extension:
        return ""
    return extension.lower()


def document_extension(document: Document) -> str:
    if document.extension:
        return document.extension.strip().lstrip(".").lower()
    return get_extension(document.doc_name)


class ReferenceIndex:
    """Read-only lookup from marker ordinals to chunk and document metadata.

    Built once per answer turn from its reference payload and never mutated;
    a new answer gets a new index.
    """

    def __init__(
        self,
        payload: ReferencePayload | None = None,
        *,
        thumbnails: Mapping[str, str] | None = None,
    ) -> None:
        self._payload = payload or ReferencePayload()
        self._chunks = tuple(self._payload.chunks)
        self._documents: dict[str, Document] = {}
        for document in self._payload.doc_aggs:
            self._documents.setdefault(document.doc_id, document)
        self._thumbnails = dict(thumbnails or {})

    @classmethod
    def from_raw(
        cls,
        raw: Mapping[str, Any] | None,
        *,
        thumbnails: Mapping[str, str] | None = None,
    ) -> "ReferenceIndex":
        payload = ReferencePayload.model_validate(dict(raw)) if raw else None
        return cls(payload, thumbnails=thumbnails)

    @property
    def payload(self) -> ReferencePayload:
        return self._payload

    @property
    def document_ids(self) -> list[str]:
        return list(self._documents)

    def __len__(self) -> int:
        return len(self._chunks)

    def chunk_at(self, ordinal: int) -> Chunk | None:
        if 0 <= ordinal < len(self._chunks):
            return self._chunks[ordinal]
        return None

    def document(self, doc_id: str | None) -> Document | None:
        if not doc_id:
            return None
        return self._documents.get(doc_id)

    def document_for(self, chunk: Chunk) -> Document | None:
        return self.document(chunk.document_id)

    def resolve(self, ordinal: int) -> ResolvedReference | None:
        chunk = self.chunk_at(ordinal)
        if chunk is None:
            logger.debug(
                "reference_ordinal_out_of_range",
                extra={"event": "reference_ordinal_out_of_range", "ordinal": ordinal, "chunk_count": len(self)},
            )
            return None
        return ResolvedReference(ordinal=ordinal, chunk=chunk, document=self.document_for(chunk))

    def thumbnail_for(self, document: Document) -> str | None:
        return self._thumbnails.get(document.doc_id) or document.thumbnail

    def open_action(self, chunk: Chunk, document: Document | None) -> OpenAction:
        if document is None:
            return OpenAction()
        if document_extension(document) in PREVIEWABLE_EXTENSIONS:
            return OpenAction(kind="preview", document_id=document.doc_id, chunk_id=chunk.id)
        if document.url:
            return OpenAction(kind="external", document_id=document.doc_id, url=document.url)
        return OpenAction()

    def popover(self, ordinal: int) -> PopoverContent:
        resolved = self.resolve(ordinal)
        if resolved is None:
            return PopoverContent(ordinal=ordinal)

        chunk = resolved.chunk
        document = resolved.document
        content = PopoverContent(
            ordinal=ordinal,
            chunk_id=chunk.id,
            chunk_content=sanitize_html(chunk.content),
            image_id=chunk.image_id,
        )
        if document is None:
            return content

        thumbnail = self.thumbnail_for(document)
        extension = document_extension(document)
        return content.model_copy(
            update={
                "document_id": document.doc_id,
                "document_name": document.doc_name or chunk.document_name,
                "document_url": document.url,
                "thumbnail": thumbnail,
                "icon": None if thumbnail else f"file-icon/{extension}",
                "open_action": self.open_action(chunk, document),
            }
        )
