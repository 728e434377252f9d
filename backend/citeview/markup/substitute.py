from __future__ import annotations

from dataclasses import dataclass, replace

from citeview.citations.markers import iter_segments
from citeview.markup.tree import CARRIER_TAG, Element, Node, Text
from citeview.references.index import PopoverContent, ReferenceIndex


GLYPH_TAG = "citation-glyph"


@dataclass(frozen=True)
class CitationRef:
    ordinal: int
    chunk_id: str | None
    document_id: str | None
    popover: PopoverContent


def build_glyph(ordinal: int, popover: PopoverContent) -> Element:
    properties = {"data-ordinal": str(ordinal)}
    if popover.chunk_id is not None:
        properties["data-chunk-id"] = popover.chunk_id
    if popover.document_id is not None:
        properties["data-document-id"] = popover.document_id
    return Element(GLYPH_TAG, properties, ())


def substitute_markers(tree: Element, index: ReferenceIndex) -> tuple[Element, list[CitationRef]]:
    """Replace citation markers inside marker carriers with glyph elements.

    Returns the new tree and the citations in document order. Text outside
    carriers is never inspected.
    """
    citations: list[CitationRef] = []
    return _visit(tree, index, citations), citations


def _visit(element: Element, index: ReferenceIndex, citations: list[CitationRef]) -> Element:
    if element.tag == CARRIER_TAG:
        return replace(element, children=_expand_carrier(element.children, index, citations))
    children = tuple(
        _visit(child, index, citations) if isinstance(child, Element) else child for child in element.children
    )
    return replace(element, children=children)


def _expand_carrier(
    children: tuple[Node, ...], index: ReferenceIndex, citations: list[CitationRef]
) -> tuple[Node, ...]:
    expanded: list[Node] = []
    for child in children:
        if not isinstance(child, Text):
            expanded.append(child)
            continue
        for segment in iter_segments(child.value):
            if isinstance(segment, str):
                expanded.append(Text(segment))
                continue
            popover = index.popover(segment)
            citations.append(
                CitationRef(
                    ordinal=segment,
                    chunk_id=popover.chunk_id,
                    document_id=popover.document_id,
                    popover=popover,
                )
            )
            expanded.append(build_glyph(segment, popover))
    return tuple(expanded)
