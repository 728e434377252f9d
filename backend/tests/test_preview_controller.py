from __future__ import annotations

import asyncio
import logging

import pytest

from citeview.errors import DocumentFetchError, DocxConversionError, PdfLoadError
from citeview.preview.base import FetchedDocument
from citeview.preview.controller import PreviewController, PreviewState
from citeview.preview.formats import DetectedFormat
from citeview.preview.geometry import Highlight, PageDimensions
from citeview.references.models import Chunk


DOCX_MARKUP = '<div class="document-container"><p>Converted</p></div>'


class FakePdfDocument:
    def __init__(self, width: float = 800.0, height: float = 1000.0) -> None:
        self.width = width
        self.height = height
        self.highlights: list[Highlight] = []
        self.scrolled: list[Highlight] = []

    @property
    def page_count(self) -> int:
        return 3

    def page_dimensions(self, page_number: int) -> PageDimensions:
        return PageDimensions(width=self.width, height=self.height)

    def set_highlights(self, highlights: list[Highlight]) -> None:
        self.highlights = list(highlights)

    def scroll_to(self, highlight: Highlight) -> None:
        self.scrolled.append(highlight)


class FakePdfService:
    def __init__(
        self,
        *,
        fail: bool = False,
        server_message: str | None = None,
        gates: dict[str, asyncio.Event] | None = None,
    ) -> None:
        self.fail = fail
        self.server_message = server_message
        self.gates = gates or {}
        self.calls: list[str] = []
        self.documents: list[FakePdfDocument] = []

    async def load(self, url: str) -> FakePdfDocument:
        self.calls.append(url)
        gate = self.gates.get(url)
        if gate is not None:
            await gate.wait()
        if self.fail:
            raise PdfLoadError("not a pdf", server_message=self.server_message)
        document = FakePdfDocument()
        self.documents.append(document)
        return document


class FakeFetcher:
    def __init__(self, *, error: str | None = None) -> None:
        self.error = error
        self.calls: list[str] = []

    async def fetch(self, url: str, *, error_type: type[DocumentFetchError] = DocumentFetchError) -> FetchedDocument:
        self.calls.append(url)
        if self.error:
            raise error_type(self.error)
        return FetchedDocument(url=url, content=b"PK\x03\x04docx")


class FakeDocxConverter:
    def __init__(self, *, error: str | None = None) -> None:
        self.error = error
        self.calls = 0

    async def convert(self, content: bytes) -> str:
        self.calls += 1
        if self.error:
            raise DocxConversionError(self.error)
        return DOCX_MARKUP


def _chunk(chunk_id: str = "c1", *, positioned: bool = True) -> Chunk:
    data: dict[str, object] = {"id": chunk_id, "document_id": "d1", "content": f"Excerpt {chunk_id}"}
    if positioned:
        data["position"] = {"page": 1, "box": (0.1, 0.1, 0.3, 0.2)}
    return Chunk.model_validate(data)


def _controller(
    pdf_service: FakePdfService | None = None,
    fetcher: FakeFetcher | None = None,
    converter: FakeDocxConverter | None = None,
    *,
    visible: bool = True,
) -> PreviewController:
    return PreviewController(
        pdf_service=pdf_service or FakePdfService(),
        fetcher=fetcher or FakeFetcher(),
        docx_converter=converter or FakeDocxConverter(),
        url_builder=lambda doc_id: f"https://kb.local/v1/document/get/{doc_id}",
        visible=visible,
    )


@pytest.mark.asyncio
async def test_pdf_preview_places_highlight_and_scrolls_once() -> None:
    pdf_service = FakePdfService()
    controller = _controller(pdf_service)

    session = await controller.open(_chunk(), url="https://kb.local/files/report.pdf")

    assert session.state is PreviewState.READY
    assert session.detected_format is DetectedFormat.PDF
    assert session.loaded is True
    assert session.error is None
    assert session.history == [
        PreviewState.UNKNOWN,
        PreviewState.DETECTING,
        PreviewState.RENDERING_PDF,
        PreviewState.READY,
    ]
    highlight = session.active_highlight
    assert highlight is not None
    box = highlight.bounding_rect
    assert (box.x1, box.y1, box.x2, box.y2) == pytest.approx((80, 100, 240, 200))

    document = pdf_service.documents[0]
    assert document.highlights == [highlight]
    assert document.scrolled == [highlight]

    snapshot = controller.snapshot()
    assert snapshot["state"] == "ready"
    assert snapshot["scroll_to"]["id"] == "c1:1"
    assert controller.snapshot()["scroll_to"] is None


@pytest.mark.asyncio
async def test_chunk_without_position_reaches_ready_without_scroll() -> None:
    pdf_service = FakePdfService()
    controller = _controller(pdf_service)

    session = await controller.open(_chunk(positioned=False), url="https://kb.local/files/report.pdf")

    assert session.state is PreviewState.READY
    assert session.active_highlight is None
    assert pdf_service.documents[0].highlights == []
    assert pdf_service.documents[0].scrolled == []
    assert controller.snapshot()["scroll_to"] is None


@pytest.mark.asyncio
async def test_document_id_is_turned_into_url_and_unknown_format_is_tried_as_pdf() -> None:
    pdf_service = FakePdfService()
    controller = _controller(pdf_service)

    session = await controller.open(_chunk())

    assert session.url == "https://kb.local/v1/document/get/d1"
    assert pdf_service.calls == ["https://kb.local/v1/document/get/d1"]
    assert session.detected_format is DetectedFormat.PDF
    assert session.state is PreviewState.READY


@pytest.mark.asyncio
async def test_unknown_format_falls_back_to_docx_once() -> None:
    pdf_service = FakePdfService(fail=True)
    fetcher = FakeFetcher()
    converter = FakeDocxConverter()
    controller = _controller(pdf_service, fetcher, converter)

    session = await controller.open(_chunk(), document_id="d1")

    assert session.state is PreviewState.READY
    assert session.detected_format is DetectedFormat.DOCX
    assert session.fallback_attempted is True
    assert session.history.count(PreviewState.RENDERING_DOCX) == 1
    assert session.docx_html == DOCX_MARKUP
    assert session.active_highlight is None
    assert len(pdf_service.calls) == 1
    assert len(fetcher.calls) == 1
    assert converter.calls == 1
    assert controller.snapshot()["scroll_to"] is None


@pytest.mark.asyncio
async def test_failure_after_fallback_is_terminal() -> None:
    pdf_service = FakePdfService(fail=True)
    fetcher = FakeFetcher(error="connection reset")
    controller = _controller(pdf_service, fetcher)

    session = await controller.open(_chunk(), document_id="d1")

    assert session.state is PreviewState.FAILED
    assert session.error == "Failed to fetch DOCX file: connection reset"
    assert session.loaded is False
    assert session.history == [
        PreviewState.UNKNOWN,
        PreviewState.DETECTING,
        PreviewState.RENDERING_PDF,
        PreviewState.RENDERING_DOCX,
        PreviewState.FAILED,
    ]
    assert len(pdf_service.calls) == 1
    assert len(fetcher.calls) == 1


@pytest.mark.asyncio
async def test_confirmed_pdf_failure_does_not_fall_back() -> None:
    pdf_service = FakePdfService(fail=True)
    fetcher = FakeFetcher()
    controller = _controller(pdf_service, fetcher)

    session = await controller.open(_chunk(), url="https://kb.local/files/report.pdf")

    assert session.state is PreviewState.FAILED
    assert session.error == "Failed to load PDF file"
    assert PreviewState.RENDERING_DOCX not in session.history
    assert fetcher.calls == []


@pytest.mark.asyncio
async def test_server_message_is_surfaced_for_pdf_failure() -> None:
    controller = _controller(FakePdfService(fail=True, server_message="Document not found!"))

    session = await controller.open(_chunk(), url="https://kb.local/files/report.pdf")

    assert session.state is PreviewState.FAILED
    assert session.error == "Document not found!"


@pytest.mark.asyncio
async def test_docx_conversion_failure_has_its_own_message() -> None:
    pdf_service = FakePdfService()
    controller = _controller(pdf_service, converter=FakeDocxConverter(error="corrupt archive"))

    session = await controller.open(_chunk(), url="https://kb.local/files/minutes.docx")

    assert session.state is PreviewState.FAILED
    assert session.error == "Failed to convert DOCX file: corrupt archive"
    assert pdf_service.calls == []


@pytest.mark.asyncio
async def test_scroll_waits_for_visibility_and_fires_once() -> None:
    pdf_service = FakePdfService()
    controller = _controller(pdf_service, visible=False)

    session = await controller.open(_chunk(), url="https://kb.local/files/report.pdf")
    document = pdf_service.documents[0]

    assert session.state is PreviewState.READY
    assert document.scrolled == []
    assert session.scroll_pending is True

    controller.set_visible(True)
    assert len(document.scrolled) == 1

    controller.set_visible(False)
    controller.set_visible(True)
    assert len(document.scrolled) == 1


@pytest.mark.asyncio
async def test_chunk_opened_while_hidden_scrolls_when_shown() -> None:
    pdf_service = FakePdfService()
    controller = _controller(pdf_service)

    await controller.open(_chunk("c1"), url="https://kb.local/files/report.pdf")
    controller.set_visible(False)
    second = await controller.open(_chunk("c2"), url="https://kb.local/files/report.pdf")

    second_document = pdf_service.documents[1]
    assert second_document.scrolled == []

    controller.set_visible(True)
    assert [highlight.id for highlight in second_document.scrolled] == ["c2:1"]
    assert second.scrolled is True


@pytest.mark.asyncio
async def test_page_resize_recomputes_highlight_without_scrolling_again() -> None:
    pdf_service = FakePdfService()
    controller = _controller(pdf_service)

    session = await controller.open(_chunk(), url="https://kb.local/files/report.pdf")
    controller.update_page_dimensions(PageDimensions(width=400, height=500))

    assert session.state is PreviewState.READY
    assert session.active_highlight is not None
    assert session.active_highlight.bounding_rect.x1 == pytest.approx(40)
    assert len(pdf_service.documents[0].scrolled) == 1
    assert session.history.count(PreviewState.READY) == 2


@pytest.mark.asyncio
async def test_new_activation_supersedes_in_flight_session(caplog) -> None:
    slow_url = "https://kb.local/files/slow.pdf"
    gate = asyncio.Event()
    pdf_service = FakePdfService(gates={slow_url: gate})
    controller = _controller(pdf_service)

    first_task = asyncio.create_task(controller.open(_chunk("c1"), url=slow_url))
    await asyncio.sleep(0)
    assert pdf_service.calls == [slow_url]

    second = await controller.open(_chunk("c2"), url="https://kb.local/files/fast.pdf")
    with caplog.at_level(logging.INFO, logger="citeview.preview"):
        gate.set()
        first = await first_task

    assert controller.session is second
    assert second.state is PreviewState.READY
    assert first.state is PreviewState.RENDERING_PDF
    assert first.loaded is False
    assert first.active_highlight is None
    late_document = pdf_service.documents[-1]
    assert late_document.scrolled == []
    assert controller.document is pdf_service.documents[0]
    assert any(getattr(record, "event", None) == "preview_result_discarded" for record in caplog.records)


@pytest.mark.asyncio
async def test_close_discards_session() -> None:
    controller = _controller()
    await controller.open(_chunk(), url="https://kb.local/files/report.pdf")

    controller.close()

    assert controller.session is None
    assert controller.snapshot() == {"state": "closed", "visible": True}


@pytest.mark.asyncio
async def test_open_requires_a_target() -> None:
    controller = PreviewController(
        pdf_service=FakePdfService(),
        fetcher=FakeFetcher(),
        docx_converter=FakeDocxConverter(),
    )
    with pytest.raises(ValueError):
        await controller.open(_chunk())


def test_confirmed_format_never_returns_to_unknown() -> None:
    from citeview.preview.controller import PreviewSession

    session = PreviewSession(session_id="s", url="https://kb.local/x")
    session.classify(DetectedFormat.PDF)
    with pytest.raises(ValueError):
        session.classify(DetectedFormat.UNKNOWN)
