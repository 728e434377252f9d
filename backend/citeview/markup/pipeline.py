from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Mapping

import markdown

from citeview.markup.diagrams import DiagramRenderer, apply_diagrams
from citeview.markup.preprocess import prepare_content
from citeview.markup.sanitize import sanitize_tree
from citeview.markup.substitute import GLYPH_TAG, CitationRef, substitute_markers
from citeview.markup.tree import Component, Element, parse_html, render_element, render_html
from citeview.markup.wrap import wrap_text_nodes
from citeview.references.index import ReferenceIndex
from citeview.references.models import ReferencePayload


logger = logging.getLogger("citeview.markup")

MARKDOWN_EXTENSIONS = ["fenced_code", "tables", "sane_lists"]
DEFAULT_PLACEHOLDER = "Searching..."
GLYPH_ICON = "ⓘ"


@dataclass(frozen=True)
class RenderedAnswer:
    html: str
    citations: list[CitationRef] = field(default_factory=list)


def markdown_to_html(text: str) -> str:
    return markdown.markdown(text, extensions=MARKDOWN_EXTENSIONS, output_format="html")


def render_glyph(element: Element, children: str) -> str:
    del children
    ordinal = int(element.get("data-ordinal") or 0)
    properties = {
        "class": "reference-icon",
        "role": "button",
        "tabindex": "0",
        "aria-label": f"Reference {ordinal + 1}",
        **element.properties,
    }
    return render_element("span", properties, GLYPH_ICON)


ANSWER_COMPONENTS: dict[str, Component] = {GLYPH_TAG: render_glyph}


class MarkdownContentRenderer:
    """Turns generated answer text into HTML with interactive citation glyphs."""

    def __init__(
        self,
        *,
        diagram_renderer: DiagramRenderer | None = None,
        placeholder: str = DEFAULT_PLACEHOLDER,
    ) -> None:
        self._diagram_renderer = diagram_renderer
        self._placeholder = placeholder

    def transform(self, content: str, index: ReferenceIndex) -> tuple[Element, list[CitationRef]]:
        text = prepare_content(content, placeholder=self._placeholder)
        # Answers may echo markup from retrieved documents.
        tree = sanitize_tree(parse_html(markdown_to_html(text)))
        return substitute_markers(wrap_text_nodes(tree), index)

    async def render(
        self,
        content: str,
        reference: ReferencePayload | None = None,
        *,
        thumbnails: Mapping[str, str] | None = None,
        loading: bool = False,
    ) -> RenderedAnswer:
        started = time.perf_counter()
        index = ReferenceIndex(reference, thumbnails=thumbnails)
        tree, citations = self.transform(content, index)

        # Half-streamed diagram sources are always invalid; wait for the final snapshot.
        if not loading:
            tree = await apply_diagrams(tree, self._diagram_renderer)

        html = render_html(tree, ANSWER_COMPONENTS)
        logger.debug(
            "answer_rendered",
            extra={
                "event": "answer_rendered",
                "content_chars": len(content),
                "citation_count": len(citations),
                "loading": loading,
                "duration_ms": round((time.perf_counter() - started) * 1000, 2),
            },
        )
        return RenderedAnswer(html=html, citations=citations)


async def render_answer(
    content: str,
    reference: ReferencePayload | None = None,
    *,
    loading: bool = False,
    renderer: MarkdownContentRenderer | None = None,
    thumbnails: Mapping[str, str] | None = None,
) -> RenderedAnswer:
    active = renderer or MarkdownContentRenderer()
    return await active.render(content, reference, thumbnails=thumbnails, loading=loading)
