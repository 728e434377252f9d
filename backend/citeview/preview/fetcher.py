from __future__ import annotations

import json
import logging
from typing import Mapping

import httpx

from citeview.errors import DocumentFetchError
from citeview.preview.base import FetchedDocument


logger = logging.getLogger("citeview.preview")

DEFAULT_HEADERS = {
    "Accept": "*/*",
    "Cache-Control": "no-cache",
}


class DocumentFetcher:
    def __init__(
        self,
        *,
        client: httpx.AsyncClient | None = None,
        timeout_seconds: float = 30.0,
        headers: Mapping[str, str] | None = None,
    ) -> None:
        self._client = client
        self._timeout_seconds = timeout_seconds
        self._headers = {**DEFAULT_HEADERS, **(headers or {})}

    async def fetch(
        self,
        url: str,
        *,
        error_type: type[DocumentFetchError] = DocumentFetchError,
    ) -> FetchedDocument:
        try:
            response = await self._get(url)
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as exc:
            raise error_type(f"request to {url} failed: {exc}") from exc

        if response.status_code >= 400:
            raise error_type(
                f"request to {url} answered {response.status_code}",
                status_code=response.status_code,
            )

        logger.debug(
            "document_fetched",
            extra={
                "event": "document_fetched",
                "url": url,
                "bytes": len(response.content),
                "content_type": response.headers.get("content-type", ""),
            },
        )
        return FetchedDocument(
            url=url,
            content=response.content,
            content_type=response.headers.get("content-type", ""),
        )

    async def _get(self, url: str) -> httpx.Response:
        if self._client is not None:
            return await self._client.get(url, headers=self._headers)
        async with httpx.AsyncClient(timeout=self._timeout_seconds, follow_redirects=True) as client:
            return await client.get(url, headers=self._headers)


def server_error_message(document: FetchedDocument) -> str | None:
    """Return the message of a JSON error envelope (``{"code": != 0, "message": ...}``).

    The document endpoint answers 200 with such an envelope when the file is
    missing or not accessible.
    """
    if "json" not in document.content_type.lower():
        return None
    try:
        payload = json.loads(document.content.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        return None
    if not isinstance(payload, dict):
        return None
    code = payload.get("code")
    if code in (None, 0):
        return None
    message = payload.get("message")
    if isinstance(message, str) and message.strip():
        return message.strip()
    return f"document service error code {code}"
