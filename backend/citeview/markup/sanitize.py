from __future__ import annotations

import re
from dataclasses import replace
from typing import Mapping

from bs4 import BeautifulSoup, Comment

from citeview.markup.tree import Element, Node


BLOCKED_TAGS = ["script", "style", "iframe", "frame", "object", "embed", "link", "meta", "base", "form"]
URL_ATTRIBUTES = {"href", "src", "xlink:href", "action", "formaction", "background"}
_SCRIPT_URL_PATTERN = re.compile(r"^(?:javascript|vbscript|data:text/html)", re.IGNORECASE)
_URL_NOISE_PATTERN = re.compile(r"[\x00-\x20]+")


def _is_script_url(value: object) -> bool:
    if not isinstance(value, str):
        return False
    compact = _URL_NOISE_PATTERN.sub("", value)
    return bool(_SCRIPT_URL_PATTERN.match(compact))


def is_unsafe_attribute(name: str, value: object) -> bool:
    lowered = name.lower()
    if lowered.startswith("on"):
        return True
    return lowered in URL_ATTRIBUTES and _is_script_url(value)


def sanitize_html(markup: str | None) -> str:
    """Strip active content from retrieved chunk markup before it is displayed."""
    if not markup:
        return ""

    soup = BeautifulSoup(markup, "html.parser")
    for node in soup.find_all(string=lambda text: isinstance(text, Comment)):
        node.extract()
    for tag in soup.find_all(BLOCKED_TAGS):
        tag.decompose()

    for tag in soup.find_all(True):
        for name in list(tag.attrs):
            if is_unsafe_attribute(name, tag.attrs[name]):
                del tag.attrs[name]
    return str(soup)


def _safe_properties(properties: Mapping[str, str]) -> dict[str, str]:
    return {name: value for name, value in properties.items() if not is_unsafe_attribute(name, value)}


def sanitize_tree(tree: Element) -> Element:
    """Same policy as ``sanitize_html``, applied to an already parsed tree."""
    children: list[Node] = []
    for child in tree.children:
        if isinstance(child, Element):
            if child.tag.lower() in BLOCKED_TAGS:
                continue
            children.append(sanitize_tree(child))
        else:
            children.append(child)
    return replace(tree, properties=_safe_properties(tree.properties), children=tuple(children))
