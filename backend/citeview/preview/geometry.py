from __future__ import annotations

from dataclasses import dataclass

from citeview.references.models import Chunk


@dataclass(frozen=True)
class PageDimensions:
    width: float
    height: float

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise ValueError("page dimensions must be positive")


@dataclass(frozen=True)
class OverlayBox:
    page_number: int
    x1: float
    y1: float
    x2: float
    y2: float
    width: float
    height: float

    def to_payload(self) -> dict[str, float | int]:
        return {
            "page_number": self.page_number,
            "x1": self.x1,
            "y1": self.y1,
            "x2": self.x2,
            "y2": self.y2,
            "width": self.width,
            "height": self.height,
        }


@dataclass(frozen=True)
class Highlight:
    id: str
    page_number: int
    bounding_rect: OverlayBox
    rects: tuple[OverlayBox, ...]
    text: str = ""
    image_id: str | None = None

    @property
    def is_area(self) -> bool:
        return bool(self.image_id)

    def to_payload(self) -> dict[str, object]:
        content: dict[str, object] = {"text": self.text}
        if self.image_id:
            content["image"] = self.image_id
        return {
            "id": self.id,
            "kind": "area" if self.is_area else "text",
            "position": {
                "page_number": self.page_number,
                "bounding_rect": self.bounding_rect.to_payload(),
                "rects": [rect.to_payload() for rect in self.rects],
            },
            "content": content,
            "comment": {"text": "", "emoji": ""},
        }


def page_for(chunk: Chunk, page: PageDimensions | None) -> PageDimensions | None:
    if page is not None:
        return page
    if chunk.width and chunk.height:
        return PageDimensions(width=chunk.width, height=chunk.height)
    return None


def place(chunk: Chunk, page: PageDimensions | None) -> OverlayBox | None:
    """Scale the chunk's fractional box to the pixel size of its rendered page."""
    if chunk.position is None:
        return None
    dimensions = page_for(chunk, page)
    if dimensions is None:
        return None

    x1, y1, x2, y2 = chunk.position.box
    return OverlayBox(
        page_number=chunk.position.page,
        x1=x1 * dimensions.width,
        y1=y1 * dimensions.height,
        x2=x2 * dimensions.width,
        y2=y2 * dimensions.height,
        width=dimensions.width,
        height=dimensions.height,
    )


def build_highlight(chunk: Chunk, page: PageDimensions | None) -> Highlight | None:
    box = place(chunk, page)
    if box is None:
        return None
    return Highlight(
        id=f"{chunk.id}:{box.page_number}",
        page_number=box.page_number,
        bounding_rect=box,
        rects=(box,),
        text=chunk.content,
        image_id=chunk.image_id,
    )
