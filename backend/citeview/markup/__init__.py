from citeview.markup.tree import CARRIER_TAG, Element, Node, Raw, Text, parse_html, render_html
from citeview.markup.wrap import wrap_text_nodes

__all__ = ["CARRIER_TAG", "Element", "Node", "Raw", "Text", "parse_html", "render_html", "wrap_text_nodes"]
