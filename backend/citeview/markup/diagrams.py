from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Protocol

import httpx

from citeview.errors import DiagramRenderError, DiagramValidationError
from citeview.markup.tree import Element, Node, Raw, Text, visible_text


logger = logging.getLogger("citeview.diagrams")

DIAGRAM_LANGUAGE = "mermaid"
INVALID_DIAGRAM_TEXT = "Mermaid code generation failed, please regenerate."
VALIDATION_FAILED_TEXT = "Error validating Mermaid code."


@dataclass(frozen=True)
class DiagramConfig:
    """Process-wide diagram settings, built once at application startup."""

    start_on_load: bool = False
    theme: str = "default"
    security_level: str = "loose"
    html_labels: bool = True

    def as_options(self) -> dict[str, str]:
        return {
            "theme": self.theme,
            "security-level": self.security_level,
            "html-labels": "true" if self.html_labels else "false",
        }


class DiagramRenderer(Protocol):
    async def validate(self, source: str) -> bool:
        ...

    async def render(self, source: str) -> str:
        ...


class KrokiDiagramRenderer:
    """Validates and renders mermaid sources through a Kroki-compatible service.

    Results are cached per distinct source text, so rendering the same block
    again during a streaming update does not repeat the request.
    """

    def __init__(
        self,
        *,
        base_url: str,
        config: DiagramConfig,
        client: httpx.AsyncClient | None = None,
        timeout_seconds: float = 10.0,
    ) -> None:
        self._endpoint = base_url.rstrip("/")
        self._config = config
        self._client = client
        self._timeout_seconds = timeout_seconds
        self._rendered: dict[str, str] = {}
        self._invalid: set[str] = set()

    @property
    def config(self) -> DiagramConfig:
        return self._config

    async def validate(self, source: str) -> bool:
        if source in self._rendered:
            return True
        if source in self._invalid:
            return False

        response = await self._post(source, failure=DiagramValidationError)
        if response.status_code == 400:
            self._invalid.add(source)
            return False
        if response.status_code >= 400:
            raise DiagramValidationError(f"diagram service answered {response.status_code}")
        self._rendered[source] = response.text
        return True

    async def render(self, source: str) -> str:
        cached = self._rendered.get(source)
        if cached is not None:
            return cached

        response = await self._post(source, failure=DiagramRenderError)
        if response.status_code >= 400:
            raise DiagramRenderError(f"diagram service answered {response.status_code}")
        self._rendered[source] = response.text
        return response.text

    async def _post(
        self,
        source: str,
        *,
        failure: type[DiagramValidationError] | type[DiagramRenderError],
    ) -> httpx.Response:
        payload = {
            "diagram_source": source,
            "diagram_type": DIAGRAM_LANGUAGE,
            "output_format": "svg",
            "diagram_options": self._config.as_options(),
        }
        try:
            if self._client is not None:
                return await self._client.post(f"{self._endpoint}/", json=payload)
            async with httpx.AsyncClient(timeout=self._timeout_seconds) as client:
                return await client.post(f"{self._endpoint}/", json=payload)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise failure(f"diagram service request failed: {exc}") from exc


def diagram_source(pre: Element) -> str | None:
    """Return the mermaid source of a fenced block, or None for other blocks."""
    if pre.tag != "pre":
        return None
    for child in pre.children:
        if isinstance(child, Element) and child.tag == "code":
            if f"language-{DIAGRAM_LANGUAGE}" in child.class_names:
                return visible_text(child).strip()
    return None


def invalid_diagram_block(source: str) -> Element:
    return Element(
        "div",
        {"class": "mermaid-error"},
        (
            Text(source),
            Element("br"),
            Element("font", {"color": "#FF0000"}, (Text(INVALID_DIAGRAM_TEXT),)),
        ),
    )


async def render_diagram_block(source: str, renderer: DiagramRenderer) -> Element:
    try:
        valid = await renderer.validate(source)
    except DiagramValidationError as exc:
        logger.warning(
            "diagram_validation_failed",
            extra={"event": "diagram_validation_failed", "error": str(exc), "source_chars": len(source)},
        )
        return Element("div", {"class": "mermaid-error"}, (Text(VALIDATION_FAILED_TEXT),))

    if not valid:
        logger.info(
            "diagram_invalid",
            extra={"event": "diagram_invalid", "source_chars": len(source)},
        )
        return invalid_diagram_block(source)

    container = {"class": "mermaid-container", "role": "img", "aria-label": "Flowchart"}
    try:
        svg = await renderer.render(source)
    except DiagramRenderError as exc:
        logger.warning(
            "diagram_render_failed",
            extra={"event": "diagram_render_failed", "error": str(exc)},
        )
        return Element("div", container, (Text(source),))
    return Element("div", container, (Raw(svg),))


async def apply_diagrams(tree: Element, renderer: DiagramRenderer | None) -> Element:
    """Replace every mermaid code fence in ``tree`` with its rendered block."""
    if renderer is None:
        return tree
    return await _apply(tree, renderer)


async def _apply(element: Element, renderer: DiagramRenderer) -> Element:
    children: list[Node] = []
    for child in element.children:
        if not isinstance(child, Element):
            children.append(child)
            continue
        source = diagram_source(child)
        if source is not None:
            children.append(await render_diagram_block(source, renderer))
        else:
            children.append(await _apply(child, renderer))
    return replace(element, children=tuple(children))
