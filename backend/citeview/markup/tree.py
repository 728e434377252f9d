from __future__ import annotations

from dataclasses import dataclass, field
from html import escape
from typing import Callable, Iterator, Mapping, Union

from bs4 import BeautifulSoup, NavigableString, Tag
from bs4.element import PreformattedString


ROOT_TAG = "root"
# Marker-carrier element: a wrapped text node eligible for marker substitution.
CARRIER_TAG = "citation-text"

VOID_TAGS = frozenset(
    {
        "area",
        "base",
        "br",
        "col",
        "embed",
        "hr",
        "img",
        "input",
        "link",
        "meta",
        "source",
        "track",
        "wbr",
    }
)


@dataclass(frozen=True)
class Text:
    value: str


@dataclass(frozen=True)
class Raw:
    """Trusted markup (for example a rendered diagram) emitted verbatim."""

    value: str


@dataclass(frozen=True)
class Element:
    tag: str
    properties: Mapping[str, str] = field(default_factory=dict)
    children: tuple["Node", ...] = ()

    def get(self, name: str, default: str | None = None) -> str | None:
        return self.properties.get(name, default)

    @property
    def class_names(self) -> list[str]:
        return (self.properties.get("class") or "").split()


Node = Union[Text, Raw, Element]

# Receives the element and its already-rendered children.
Component = Callable[[Element, str], str]


def root(*children: Node) -> Element:
    return Element(ROOT_TAG, {}, tuple(children))


def parse_html(markup: str) -> Element:
    soup = BeautifulSoup(markup, "html.parser")
    return Element(ROOT_TAG, {}, _convert_children(soup))


def _convert_children(parent: Tag) -> tuple[Node, ...]:
    children: list[Node] = []
    for child in parent.children:
        converted = _convert(child)
        if converted is not None:
            children.append(converted)
    return tuple(children)


def _convert(node: object) -> Node | None:
    # Comments, doctypes, CDATA and processing instructions carry no visible text.
    if isinstance(node, PreformattedString):
        return None
    if isinstance(node, NavigableString):
        return Text(str(node))
    if isinstance(node, Tag):
        properties: dict[str, str] = {}
        for name, value in node.attrs.items():
            if isinstance(value, (list, tuple)):
                properties[name] = " ".join(value)
            else:
                properties[name] = "" if value is None else str(value)
        return Element(node.name, properties, _convert_children(node))
    return None


def _render_transparent(element: Element, children: str) -> str:
    del element
    return children


DEFAULT_COMPONENTS: dict[str, Component] = {CARRIER_TAG: _render_transparent}


def render_html(node: Node, components: Mapping[str, Component] | None = None) -> str:
    active = dict(DEFAULT_COMPONENTS)
    if components:
        active.update(components)
    return _render(node, active)


def _render(node: Node, components: Mapping[str, Component]) -> str:
    if isinstance(node, Text):
        return escape(node.value, quote=False)
    if isinstance(node, Raw):
        return node.value

    children = "".join(_render(child, components) for child in node.children)
    if node.tag == ROOT_TAG:
        return children
    override = components.get(node.tag)
    if override is not None:
        return override(node, children)
    return render_element(node.tag, node.properties, children)


def render_element(tag: str, properties: Mapping[str, str], children: str = "") -> str:
    attributes = "".join(
        f' {name}="{escape(str(value), quote=True)}"' for name, value in properties.items()
    )
    if tag in VOID_TAGS:
        return f"<{tag}{attributes}/>"
    return f"<{tag}{attributes}>{children}</{tag}>"


def iter_text(node: Node) -> Iterator[str]:
    if isinstance(node, Text):
        yield node.value
        return
    if isinstance(node, Element):
        for child in node.children:
            yield from iter_text(child)


def visible_text(node: Node) -> str:
    return "".join(iter_text(node))


def iter_elements(node: Node, tag: str | None = None) -> Iterator[Element]:
    if not isinstance(node, Element):
        return
    if tag is None or node.tag == tag:
        yield node
    for child in node.children:
        yield from iter_elements(child, tag)
