from __future__ import annotations

import logging
from collections import OrderedDict
from typing import Callable
from uuid import uuid4

from citeview.preview.controller import PreviewController


logger = logging.getLogger("citeview.preview")


class PreviewRegistry:
    """In-memory preview panels keyed by id; the oldest panel is evicted first."""

    def __init__(self, factory: Callable[[], PreviewController], *, max_previews: int = 64) -> None:
        if max_previews < 1:
            raise ValueError("max_previews must be at least 1")
        self._factory = factory
        self._max_previews = max_previews
        self._controllers: OrderedDict[str, PreviewController] = OrderedDict()

    def __len__(self) -> int:
        return len(self._controllers)

    def create(self) -> str:
        preview_id = uuid4().hex
        self._controllers[preview_id] = self._factory()
        while len(self._controllers) > self._max_previews:
            evicted_id, evicted = self._controllers.popitem(last=False)
            evicted.close()
            logger.info(
                "preview_evicted",
                extra={"event": "preview_evicted", "preview_id": evicted_id},
            )
        return preview_id

    def get(self, preview_id: str) -> PreviewController | None:
        controller = self._controllers.get(preview_id)
        if controller is not None:
            self._controllers.move_to_end(preview_id)
        return controller

    def close(self, preview_id: str) -> bool:
        controller = self._controllers.pop(preview_id, None)
        if controller is None:
            return False
        controller.close()
        return True
