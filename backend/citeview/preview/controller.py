from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable
from uuid import uuid4

from citeview.errors import CiteviewError, DocxConversionError, DocxFetchError, PdfLoadError
from citeview.preview.base import DocxConverter, PdfDocumentHandle, PdfRenderService
from citeview.preview.fetcher import DocumentFetcher
from citeview.preview.formats import DetectedFormat, detect_format
from citeview.preview.geometry import Highlight, PageDimensions, build_highlight
from citeview.references.models import Chunk


logger = logging.getLogger("citeview.preview")


class PreviewState(str, Enum):
    UNKNOWN = "unknown"
    DETECTING = "detecting"
    RENDERING_PDF = "rendering_pdf"
    RENDERING_DOCX = "rendering_docx"
    READY = "ready"
    FAILED = "failed"


@dataclass(frozen=True)
class PreviewMessages:
    pdf_load_error: str = "Failed to load PDF file"
    docx_fetch_error: str = "Failed to fetch DOCX file"
    docx_conversion_error: str = "Failed to convert DOCX file"


@dataclass
class PreviewSession:
    session_id: str
    url: str
    chunk: Chunk | None = None
    document_id: str | None = None
    state: PreviewState = PreviewState.UNKNOWN
    detected_format: DetectedFormat = DetectedFormat.UNKNOWN
    loaded: bool = False
    error: str | None = None
    active_highlight: Highlight | None = None
    page_dimensions: PageDimensions | None = None
    docx_html: str | None = None
    fallback_attempted: bool = False
    scroll_pending: bool = False
    scrolled: bool = False
    history: list[PreviewState] = field(default_factory=list)

    def classify(self, detected: DetectedFormat) -> None:
        if detected is DetectedFormat.UNKNOWN and self.detected_format is not DetectedFormat.UNKNOWN:
            raise ValueError("a confirmed document format cannot be reset to unknown")
        self.detected_format = detected


class PreviewController:
    """Drives one document preview panel.

    Every ``open`` replaces the current session. Each await boundary checks
    that the session is still current; results for a replaced session are
    dropped.
    """

    def __init__(
        self,
        *,
        pdf_service: PdfRenderService,
        fetcher: DocumentFetcher,
        docx_converter: DocxConverter,
        url_builder: Callable[[str], str] | None = None,
        messages: PreviewMessages | None = None,
        visible: bool = True,
    ) -> None:
        self._pdf_service = pdf_service
        self._fetcher = fetcher
        self._docx_converter = docx_converter
        self._url_builder = url_builder
        self._messages = messages or PreviewMessages()
        self._visible = visible
        self._session: PreviewSession | None = None
        self._document: PdfDocumentHandle | None = None
        self._scroll_target: Highlight | None = None

    @property
    def session(self) -> PreviewSession | None:
        return self._session

    @property
    def document(self) -> PdfDocumentHandle | None:
        return self._document

    @property
    def visible(self) -> bool:
        return self._visible

    def is_current(self, session: PreviewSession) -> bool:
        return self._session is session

    async def open(
        self,
        chunk: Chunk | None = None,
        *,
        document_id: str | None = None,
        url: str | None = None,
    ) -> PreviewSession:
        doc_id = document_id or (chunk.document_id if chunk is not None else None)
        target = url
        if not target and doc_id and self._url_builder is not None:
            target = self._url_builder(doc_id)
        if not target:
            raise ValueError("A document URL or a document id with a URL builder is required.")

        session = PreviewSession(session_id=uuid4().hex, url=target, chunk=chunk, document_id=doc_id)
        previous = self._session
        self._session = session
        self._document = None
        self._scroll_target = None

        if previous is not None and previous.state not in (PreviewState.READY, PreviewState.FAILED):
            logger.info(
                "preview_session_superseded",
                extra={
                    "event": "preview_session_superseded",
                    "session_id": previous.session_id,
                    "state": previous.state.value,
                    "replaced_by": session.session_id,
                },
            )
        logger.info(
            "preview_opened",
            extra={
                "event": "preview_opened",
                "session_id": session.session_id,
                "document_id": doc_id,
                "chunk_id": chunk.id if chunk is not None else None,
            },
        )

        self._enter(session, PreviewState.UNKNOWN)
        await self._run(session)
        return session

    def close(self) -> None:
        if self._session is not None:
            logger.info(
                "preview_closed",
                extra={"event": "preview_closed", "session_id": self._session.session_id},
            )
        self._session = None
        self._document = None
        self._scroll_target = None

    def set_visible(self, visible: bool) -> None:
        self._visible = visible
        if visible and self._session is not None:
            self._flush_scroll(self._session)

    def update_page_dimensions(self, page: PageDimensions) -> None:
        """Re-place the highlight after the viewer reports a new page size."""
        session = self._session
        if session is None or self._document is None or session.state is not PreviewState.READY:
            return
        session.page_dimensions = page
        self._place_highlight(session, self._document, page)
        self._enter_ready(session)

    def take_scroll_target(self) -> Highlight | None:
        target = self._scroll_target
        self._scroll_target = None
        return target

    def snapshot(self, *, consume_scroll: bool = True) -> dict[str, object]:
        session = self._session
        if session is None:
            return {"state": "closed", "visible": self._visible}

        scroll_target = self.take_scroll_target() if consume_scroll else self._scroll_target
        page = session.page_dimensions
        return {
            "session_id": session.session_id,
            "url": session.url,
            "document_id": session.document_id,
            "chunk_id": session.chunk.id if session.chunk is not None else None,
            "state": session.state.value,
            "detected_format": session.detected_format.value,
            "loaded": session.loaded,
            "error": session.error,
            "visible": self._visible,
            "history": [state.value for state in session.history],
            "page_dimensions": {"width": page.width, "height": page.height} if page else None,
            "highlight": session.active_highlight.to_payload() if session.active_highlight else None,
            "docx_html": session.docx_html,
            "scroll_to": scroll_target.to_payload() if scroll_target else None,
        }

    async def _run(self, session: PreviewSession) -> None:
        self._enter(session, PreviewState.DETECTING)
        detected = detect_format(session.url)
        session.classify(detected)
        logger.info(
            "preview_format_detected",
            extra={
                "event": "preview_format_detected",
                "session_id": session.session_id,
                "url": session.url,
                "detected_format": detected.value,
            },
        )

        if detected is DetectedFormat.DOCX:
            await self._render_docx(session)
        else:
            # Unknown containers are tried as PDF first.
            await self._render_pdf(session)

    async def _render_pdf(self, session: PreviewSession) -> None:
        self._enter(session, PreviewState.RENDERING_PDF)
        try:
            document = await self._pdf_service.load(session.url)
            if not self.is_current(session):
                self._discard(session, step="pdf_load")
                return
            page = document.page_dimensions(1)
        except PdfLoadError as exc:
            if not self.is_current(session):
                self._discard(session, step="pdf_load")
                return
            if session.detected_format is DetectedFormat.UNKNOWN and not session.fallback_attempted:
                session.fallback_attempted = True
                session.classify(DetectedFormat.DOCX)
                logger.info(
                    "preview_pdf_fallback",
                    extra={
                        "event": "preview_pdf_fallback",
                        "session_id": session.session_id,
                        "error": str(exc),
                    },
                )
                await self._render_docx(session)
                return
            self._fail(session, exc.server_message or self._messages.pdf_load_error, exc)
            return

        session.classify(DetectedFormat.PDF)
        session.page_dimensions = page
        self._document = document
        self._place_highlight(session, document, page)
        self._enter_ready(session)

    async def _render_docx(self, session: PreviewSession) -> None:
        self._enter(session, PreviewState.RENDERING_DOCX)
        try:
            fetched = await self._fetcher.fetch(session.url, error_type=DocxFetchError)
        except DocxFetchError as exc:
            if not self.is_current(session):
                self._discard(session, step="docx_fetch")
                return
            self._fail(session, f"{self._messages.docx_fetch_error}: {exc}", exc)
            return
        if not self.is_current(session):
            self._discard(session, step="docx_fetch")
            return

        try:
            markup = await self._docx_converter.convert(fetched.content)
        except DocxConversionError as exc:
            if not self.is_current(session):
                self._discard(session, step="docx_convert")
                return
            self._fail(session, f"{self._messages.docx_conversion_error}: {exc}", exc)
            return
        if not self.is_current(session):
            self._discard(session, step="docx_convert")
            return

        session.docx_html = markup
        # Converted markup has no page geometry to highlight.
        session.active_highlight = None
        self._enter_ready(session)

    def _place_highlight(self, session: PreviewSession, document: PdfDocumentHandle, page: PageDimensions) -> None:
        highlight = build_highlight(session.chunk, page) if session.chunk is not None else None
        session.active_highlight = highlight
        document.set_highlights([highlight] if highlight is not None else [])

    def _enter(self, session: PreviewSession, state: PreviewState) -> None:
        session.state = state
        session.history.append(state)
        logger.debug(
            "preview_state_changed",
            extra={"event": "preview_state_changed", "session_id": session.session_id, "state": state.value},
        )

    def _enter_ready(self, session: PreviewSession) -> None:
        self._enter(session, PreviewState.READY)
        session.loaded = True
        if session.active_highlight is not None and not session.scrolled:
            session.scroll_pending = True
        self._flush_scroll(session)

    def _flush_scroll(self, session: PreviewSession) -> None:
        if not self._visible or not self.is_current(session):
            return
        if session.state is not PreviewState.READY or not session.scroll_pending:
            return
        highlight = session.active_highlight
        if highlight is None or self._document is None:
            session.scroll_pending = False
            return

        self._document.scroll_to(highlight)
        self._scroll_target = highlight
        session.scroll_pending = False
        session.scrolled = True
        logger.info(
            "preview_scrolled_to_highlight",
            extra={
                "event": "preview_scrolled_to_highlight",
                "session_id": session.session_id,
                "highlight_id": highlight.id,
                "page_number": highlight.page_number,
            },
        )

    def _fail(self, session: PreviewSession, message: str, exc: CiteviewError) -> None:
        self._enter(session, PreviewState.FAILED)
        session.error = message
        session.loaded = False
        logger.warning(
            "preview_failed",
            extra={
                "event": "preview_failed",
                "session_id": session.session_id,
                "url": session.url,
                "detected_format": session.detected_format.value,
                "error": str(exc),
            },
        )

    def _discard(self, session: PreviewSession, *, step: str) -> None:
        logger.info(
            "preview_result_discarded",
            extra={"event": "preview_result_discarded", "session_id": session.session_id, "step": step},
        )
