from __future__ import annotations

import io

from pypdf import PdfReader

from citeview.errors import DocumentFetchError, PdfLoadError
from citeview.preview.fetcher import DocumentFetcher, server_error_message
from citeview.preview.geometry import Highlight, PageDimensions


class PypdfDocument:
    """PDF handle backed by pypdf.

    Highlights and the scroll target are recorded here for the client viewer,
    which draws the overlay and performs the actual scroll.
    """

    def __init__(self, reader: PdfReader, *, url: str) -> None:
        self._reader = reader
        self._url = url
        self._page_count = len(reader.pages)
        self.highlights: list[Highlight] = []
        self.scroll_target: Highlight | None = None

    @property
    def url(self) -> str:
        return self._url

    @property
    def page_count(self) -> int:
        return self._page_count

    def page_dimensions(self, page_number: int) -> PageDimensions:
        if page_number < 1 or page_number > self._page_count:
            raise PdfLoadError(f"page {page_number} is out of range (1-{self._page_count})")
        # pypdf parses page objects lazily, so a damaged page only fails here.
        try:
            page = self._reader.pages[page_number - 1]
            box = page.mediabox
            width = float(box.width)
            height = float(box.height)
            rotation = page.rotation or 0
        except Exception as exc:
            raise PdfLoadError(f"page {page_number} could not be read: {exc}") from exc
        if rotation % 180 == 90:
            width, height = height, width
        if width <= 0 or height <= 0:
            raise PdfLoadError(f"page {page_number} has an empty media box")
        return PageDimensions(width=width, height=height)

    def set_highlights(self, highlights: list[Highlight]) -> None:
        self.highlights = list(highlights)

    def scroll_to(self, highlight: Highlight) -> None:
        self.scroll_target = highlight


class PypdfRenderService:
    def __init__(self, fetcher: DocumentFetcher) -> None:
        self._fetcher = fetcher

    async def load(self, url: str) -> PypdfDocument:
        try:
            fetched = await self._fetcher.fetch(url)
        except DocumentFetchError as exc:
            raise PdfLoadError(f"pdf fetch failed: {exc}") from exc

        server_message = server_error_message(fetched)
        if server_message is not None:
            raise PdfLoadError(server_message, server_message=server_message)

        try:
            reader = PdfReader(io.BytesIO(fetched.content), strict=False)
            document = PypdfDocument(reader, url=url)
        except Exception as exc:
            raise PdfLoadError(f"pdf parse failed: {exc}") from exc

        if document.page_count == 0:
            raise PdfLoadError("pdf has no pages")
        return document
