from __future__ import annotations

import io
import re
from html import escape

from docx import Document
from docx.table import Table
from docx.text.hyperlink import Hyperlink
from docx.text.paragraph import Paragraph
from docx.text.run import Run

from citeview.errors import DocxConversionError


DOCUMENT_CONTAINER_CLASS = "document-container"
_HEADING_PATTERN = re.compile(r"^heading\s+([1-6])$", re.IGNORECASE)


def _style_name(paragraph: Paragraph) -> str:
    style = paragraph.style
    if style is None or not style.name:
        return ""
    return style.name.strip()


def _block_tag(style_name: str) -> str:
    lowered = style_name.lower()
    if lowered == "title":
        return "h1"
    match = _HEADING_PATTERN.match(style_name)
    if match:
        return f"h{match.group(1)}"
    return "p"


def _list_tag(style_name: str) -> str | None:
    lowered = style_name.lower()
    if lowered.startswith("list bullet"):
        return "ul"
    if lowered.startswith("list number"):
        return "ol"
    return None


def _render_run(run: Run) -> str:
    text = escape(run.text, quote=False)
    if not text:
        return ""
    if run.underline:
        text = f"<u>{text}</u>"
    if run.italic:
        text = f"<em>{text}</em>"
    if run.bold:
        text = f"<strong>{text}</strong>"
    return text


def _render_inline(paragraph: Paragraph) -> str:
    parts: list[str] = []
    for item in paragraph.iter_inner_content():
        if isinstance(item, Hyperlink):
            inner = "".join(_render_run(run) for run in item.runs)
            if item.url:
                parts.append(f'<a href="{escape(item.url, quote=True)}">{inner}</a>')
            else:
                parts.append(inner)
        else:
            parts.append(_render_run(item))
    return "".join(parts)


def _render_table(table: Table) -> str:
    rows: list[str] = []
    for row in table.rows:
        cells = []
        for cell in row.cells:
            content = "".join(
                f"<p>{inline}</p>" for inline in (_render_inline(p) for p in cell.paragraphs) if inline
            )
            cells.append(f"<td>{content}</td>")
        rows.append(f"<tr>{''.join(cells)}</tr>")
    return f"<table>{''.join(rows)}</table>"


def docx_to_html(content: bytes) -> str:
    document = Document(io.BytesIO(content))
    blocks: list[str] = []
    open_list: str | None = None

    for item in document.iter_inner_content():
        if isinstance(item, Table):
            if open_list:
                blocks.append(f"</{open_list}>")
                open_list = None
            blocks.append(_render_table(item))
            continue

        inline = _render_inline(item)
        if not inline.strip():
            continue
        style_name = _style_name(item)
        list_tag = _list_tag(style_name)
        if list_tag != open_list:
            if open_list:
                blocks.append(f"</{open_list}>")
            if list_tag:
                blocks.append(f"<{list_tag}>")
            open_list = list_tag
        if list_tag:
            blocks.append(f"<li>{inline}</li>")
        else:
            tag = _block_tag(style_name)
            blocks.append(f"<{tag}>{inline}</{tag}>")

    if open_list:
        blocks.append(f"</{open_list}>")
    return f'<div class="{DOCUMENT_CONTAINER_CLASS}">{"".join(blocks)}</div>'


class DocxHtmlConverter:
    async def convert(self, content: bytes) -> str:
        if not content:
            raise DocxConversionError("docx payload is empty")
        try:
            return docx_to_html(content)
        except Exception as exc:
            raise DocxConversionError(f"docx conversion failed: {exc}") from exc
