from citeview.preview.controller import PreviewController, PreviewMessages, PreviewSession, PreviewState
from citeview.preview.formats import DetectedFormat, detect_format
from citeview.preview.geometry import Highlight, OverlayBox, PageDimensions, build_highlight, place

__all__ = [
    "DetectedFormat",
    "Highlight",
    "OverlayBox",
    "PageDimensions",
    "PreviewController",
    "PreviewMessages",
    "PreviewSession",
    "PreviewState",
    "build_highlight",
    "detect_format",
    "place",
]
