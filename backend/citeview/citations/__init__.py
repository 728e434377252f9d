from citeview.citations.markers import (
    MARKER_PATTERN,
    contains_marker,
    decode,
    encode,
    iter_segments,
    normalize_legacy_markers,
)

__all__ = [
    "MARKER_PATTERN",
    "contains_marker",
    "decode",
    "encode",
    "iter_segments",
    "normalize_legacy_markers",
]
