import io

import httpx
import pytest
from fastapi.testclient import TestClient
from pypdf import PdfWriter

from citeview.main import app
from citeview.preview.controller import PreviewController
from citeview.preview.docx_converter import DocxHtmlConverter
from citeview.preview.fetcher import DocumentFetcher
from citeview.preview.pdf_renderer import PypdfRenderService
from citeview.preview.registry import PreviewRegistry


REFERENCE = {
    "chunks": [
        {
            "id": "chunk-a",
            "document_id": "doc-pdf",
            "content": "Net revenue rose 4%.",
            "position": {"page": 1, "box": [0.1, 0.1, 0.3, 0.2]},
        },
    ],
    "doc_aggs": [{"doc_id": "doc-pdf", "doc_name": "annual-report.pdf"}],
}


def _pdf_bytes() -> bytes:
    writer = PdfWriter()
    writer.add_blank_page(width=612, height=792)
    buffer = io.BytesIO()
    writer.write(buffer)
    return buffer.getvalue()


@pytest.fixture
def requested_urls() -> list[str]:
    return []


@pytest.fixture
def preview_registry(monkeypatch, requested_urls: list[str]) -> PreviewRegistry:
    pdf = _pdf_bytes()

    def handler(request: httpx.Request) -> httpx.Response:
        requested_urls.append(str(request.url))
        return httpx.Response(200, content=pdf, headers={"content-type": "application/pdf"})

    def factory() -> PreviewController:
        fetcher = DocumentFetcher(client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))
        return PreviewController(
            pdf_service=PypdfRenderService(fetcher),
            fetcher=fetcher,
            docx_converter=DocxHtmlConverter(),
            url_builder=lambda doc_id: f"https://kb.local/v1/document/get/{doc_id}",
        )

    registry = PreviewRegistry(factory, max_previews=4)
    monkeypatch.setattr("citeview.main.get_preview_registry", lambda: registry)
    return registry


def test_health_and_ready() -> None:
    with TestClient(app) as client:
        health = client.get("/health")
        ready = client.get("/ready")
        root = client.get("/")

    assert health.status_code == 200
    assert health.json()["status"] == "ok"
    assert ready.status_code == 200
    assert ready.json()["checks"]["diagram_renderer"] == {"enabled": False}
    assert root.json() == {"service": "citeview-backend", "status": "running"}


def test_render_returns_markup_and_citations() -> None:
    with TestClient(app) as client:
        response = client.post(
            "/render",
            json={"content": "Revenue grew ~~0== and ~~7==.", "reference": REFERENCE},
        )

    assert response.status_code == 200
    body = response.json()
    assert body["html"].count("reference-icon") == 2
    assert [citation["ordinal"] for citation in body["citations"]] == [0, 7]
    first, second = body["citations"]
    assert first["chunk_id"] == "chunk-a"
    assert first["popover"]["open_action"]["kind"] == "preview"
    assert first["popover"]["icon"] == "file-icon/pdf"
    assert second["chunk_id"] is None
    assert second["popover"]["chunk_content"] == ""


def test_render_without_content_shows_placeholder() -> None:
    with TestClient(app) as client:
        response = client.post("/render", json={"content": "", "loading": True})

    assert response.status_code == 200
    assert response.json() == {"html": "<p>Searching...</p>", "citations": []}


def test_popover_lookup() -> None:
    with TestClient(app) as client:
        found = client.post("/references/popover", json={"reference": REFERENCE, "ordinal": 0})
        missing = client.post("/references/popover", json={"reference": REFERENCE, "ordinal": 3})
        negative = client.post("/references/popover", json={"reference": REFERENCE, "ordinal": -1})

    assert found.status_code == 200
    assert found.json()["document_name"] == "annual-report.pdf"
    assert missing.status_code == 200
    assert missing.json()["chunk_id"] is None
    assert negative.status_code == 422


def test_preview_flow_reaches_ready_with_highlight(
    preview_registry: PreviewRegistry, requested_urls: list[str]
) -> None:
    with TestClient(app) as client:
        created = client.post("/previews")
        assert created.status_code == 200
        preview_id = created.json()["preview_id"]

        opened = client.post(f"/previews/{preview_id}/open", json={"reference": REFERENCE, "ordinal": 0})
        assert opened.status_code == 200
        snapshot = opened.json()
        assert snapshot["state"] == "ready"
        assert snapshot["detected_format"] == "pdf"
        assert snapshot["loaded"] is True
        assert snapshot["page_dimensions"] == {"width": 612.0, "height": 792.0}
        rect = snapshot["highlight"]["position"]["bounding_rect"]
        assert rect["x1"] == pytest.approx(61.2)
        assert rect["y2"] == pytest.approx(158.4)
        assert snapshot["scroll_to"]["id"] == "chunk-a:1"

        polled = client.get(f"/previews/{preview_id}").json()
        assert polled["state"] == "ready"
        assert polled["scroll_to"] is None

        hidden = client.post(f"/previews/{preview_id}/visibility", json={"visible": False})
        assert hidden.json()["visible"] is False

        closed = client.post(f"/previews/{preview_id}/close")
        assert closed.json() == {"closed": True}
        assert client.get(f"/previews/{preview_id}").status_code == 404

    assert requested_urls == ["https://kb.local/v1/document/get/doc-pdf"]


def test_preview_errors(preview_registry: PreviewRegistry) -> None:
    with TestClient(app) as client:
        assert client.get("/previews/unknown").status_code == 404
        assert client.post("/previews/unknown/open", json={"document_id": "d1"}).status_code == 404
        assert client.post("/previews/unknown/close").status_code == 404

        preview_id = client.post("/previews").json()["preview_id"]
        out_of_range = client.post(f"/previews/{preview_id}/open", json={"reference": REFERENCE, "ordinal": 5})
        assert out_of_range.status_code == 404
        assert out_of_range.json()["detail"] == "No reference chunk at ordinal 5."

        no_target = client.post(f"/previews/{preview_id}/open", json={})
        assert no_target.status_code == 422

        assert client.get(f"/previews/{preview_id}").json() == {"state": "closed", "visible": True}


def test_registry_evicts_oldest_preview(preview_registry: PreviewRegistry) -> None:
    ids = [preview_registry.create() for _ in range(5)]

    assert len(preview_registry) == 4
    assert preview_registry.get(ids[0]) is None
    assert preview_registry.get(ids[-1]) is not None


def test_viewer_page_size_moves_highlight_without_scrolling(preview_registry: PreviewRegistry) -> None:
    with TestClient(app) as client:
        preview_id = client.post("/previews").json()["preview_id"]
        client.post(f"/previews/{preview_id}/open", json={"reference": REFERENCE, "ordinal": 0})

        resized = client.post(f"/previews/{preview_id}/page", json={"width": 1224, "height": 1584})
        invalid = client.post(f"/previews/{preview_id}/page", json={"width": 0, "height": 1584})
        missing = client.post("/previews/unknown/page", json={"width": 10, "height": 10})

    assert resized.status_code == 200
    snapshot = resized.json()
    assert snapshot["state"] == "ready"
    assert snapshot["page_dimensions"] == {"width": 1224.0, "height": 1584.0}
    assert snapshot["highlight"]["position"]["bounding_rect"]["x1"] == pytest.approx(122.4)
    assert snapshot["scroll_to"] is None
    assert invalid.status_code == 422
    assert missing.status_code == 404
