from __future__ import annotations

import re

from citeview.citations.markers import normalize_legacy_markers


_THINK_OPEN_PATTERN = re.compile(r"<think>")
_THINK_CLOSE_PATTERN = re.compile(r"</think>")
_BLOCK_LATEX_PATTERN = re.compile(r"\\\[([\s\S]*?)\\\]")
_INLINE_LATEX_PATTERN = re.compile(r"\\\(([\s\S]*?)\\\)")


def replace_think_to_section(text: str) -> str:
    replaced = _THINK_OPEN_PATTERN.sub('<section class="think">', text)
    return _THINK_CLOSE_PATTERN.sub("</section>", replaced)


def preprocess_latex(text: str) -> str:
    """Rewrite ``\\[..\\]`` and ``\\(..\\)`` delimiters into dollar delimiters."""
    block = _BLOCK_LATEX_PATTERN.sub(lambda match: f"$${match.group(1)}$$", text)
    return _INLINE_LATEX_PATTERN.sub(lambda match: f"${match.group(1)}$", block)


def prepare_content(content: str, *, placeholder: str) -> str:
    text = content if content != "" else placeholder
    text = normalize_legacy_markers(text)
    return preprocess_latex(replace_think_to_section(text))
