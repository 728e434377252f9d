from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from citeview.preview.geometry import Highlight, PageDimensions


@dataclass(frozen=True)
class FetchedDocument:
    url: str
    content: bytes
    content_type: str = ""


class PdfDocumentHandle(Protocol):
    @property
    def page_count(self) -> int:
        ...

    def page_dimensions(self, page_number: int) -> PageDimensions:
        ...

    def set_highlights(self, highlights: list[Highlight]) -> None:
        ...

    def scroll_to(self, highlight: Highlight) -> None:
        ...


class PdfRenderService(Protocol):
    async def load(self, url: str) -> PdfDocumentHandle:
        ...


class DocxConverter(Protocol):
    async def convert(self, content: bytes) -> str:
        ...
