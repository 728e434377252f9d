from __future__ import annotations

import re
from typing import Iterator


MARKER_OPEN = "~~"
MARKER_CLOSE = "=="
MARKER_PATTERN = re.compile(r"~{2}(\d+)={2}")

# Answers produced before the current sentinels used `##N$$`.
LEGACY_MARKER_PATTERN = re.compile(r"#{2}(\d+)\${2}")


def decode(token: str) -> int | None:
    match = MARKER_PATTERN.fullmatch(token)
    if match is None:
        return None
    return int(match.group(1))


def encode(ordinal: int) -> str:
    if ordinal < 0:
        raise ValueError("Marker ordinals are non-negative.")
    return f"{MARKER_OPEN}{ordinal}{MARKER_CLOSE}"


def contains_marker(text: str) -> bool:
    return MARKER_PATTERN.search(text) is not None


def iter_segments(text: str) -> Iterator[str | int]:
    """Yield literal text segments and marker ordinals in their original order.

    Markers are matched left to right without overlap. Empty literal segments
    between adjacent markers are not yielded.
    """
    cursor = 0
    for match in MARKER_PATTERN.finditer(text):
        ordinal = decode(match.group(0))
        if ordinal is None:
            continue
        if match.start() > cursor:
            yield text[cursor : match.start()]
        yield ordinal
        cursor = match.end()
    if cursor < len(text):
        yield text[cursor:]


def normalize_legacy_markers(text: str) -> str:
    return LEGACY_MARKER_PATTERN.sub(lambda match: encode(int(match.group(1))), text)
