from __future__ import annotations

from dataclasses import replace

from citeview.markup.tree import CARRIER_TAG, Element, Node, Text


VERBATIM_TAGS = frozenset({"code", "pre"})


def wrap_text_nodes(tree: Element) -> Element:
    """Return a copy of ``tree`` with eligible text nodes moved into marker carriers.

    A text node is eligible when no ancestor is a verbatim element and its
    nearest ancestor is not already a carrier. The input tree is left untouched.
    """
    return _wrap_element(tree, ())


def should_wrap(node: Text, ancestors: tuple[Element, ...]) -> bool:
    if not node.value.strip():
        return False
    if ancestors and ancestors[-1].tag == CARRIER_TAG:
        return False
    return not any(ancestor.tag in VERBATIM_TAGS for ancestor in ancestors)


def _wrap_element(element: Element, ancestors: tuple[Element, ...]) -> Element:
    chain = ancestors + (element,)
    children = tuple(_wrap_node(child, chain) for child in element.children)
    return replace(element, children=children)


def _wrap_node(node: Node, ancestors: tuple[Element, ...]) -> Node:
    if isinstance(node, Element):
        return _wrap_element(node, ancestors)
    if isinstance(node, Text) and should_wrap(node, ancestors):
        return Element(CARRIER_TAG, {}, (node,))
    return node
