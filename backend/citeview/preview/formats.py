from __future__ import annotations

import re
from enum import Enum
from urllib.parse import parse_qs, urlsplit


class DetectedFormat(str, Enum):
    UNKNOWN = "unknown"
    PDF = "pdf"
    DOCX = "docx"


PDF_EXTENSIONS = {"pdf"}
DOCX_EXTENSIONS = {"docx", "doc"}

_EXTENSION_PATTERN = re.compile(r"\.([^./]+)$")


def _classify(extension: str) -> DetectedFormat:
    normalized = extension.strip().lower()
    if normalized in PDF_EXTENSIONS:
        return DetectedFormat.PDF
    if normalized in DOCX_EXTENSIONS:
        return DetectedFormat.DOCX
    return DetectedFormat.UNKNOWN


def detect_format(url: str) -> DetectedFormat:
    """Best-effort container sniffing from the URL alone.

    The path extension wins; a ``type`` query parameter is consulted only when
    the extension says nothing. No bytes are inspected.
    """
    if not url:
        return DetectedFormat.UNKNOWN

    parts = urlsplit(url)
    match = _EXTENSION_PATTERN.search(parts.path)
    if match:
        detected = _classify(match.group(1))
        if detected is not DetectedFormat.UNKNOWN:
            return detected

    for value in parse_qs(parts.query).get("type", []):
        detected = _classify(value)
        if detected is not DetectedFormat.UNKNOWN:
            return detected
    return DetectedFormat.UNKNOWN
