"""
Notion client wrapper (async, httpx) for the destination document.

Covers the three calls the relay needs: resolving a shared page URL into
page/block ids, checking that a block is readable with the integration token,
and appending a paragraph right after a given block. API key and base URL are
loaded through app.core.config.get_settings.
"""

from __future__ import annotations

import re
from typing import Any, Dict, Optional

import httpx

from app.core.config import Settings, get_settings
from app.core.errors import AccessDenied, InvalidUrl, RemoteError
from app.core.logger import get_logger
from app.schemas.document import DocumentTarget

log = get_logger(__name__)


def build_url_pattern(prefix: str) -> "re.Pattern[str]":
    """Compile the document URL grammar for a given scheme+host prefix.

    <prefix>[<path>/][<title>-]<page id>[?<query>][#<block id>]
    """
    if not prefix.endswith("/"):
        prefix += "/"
    return re.compile(
        "^"
        + re.escape(prefix)
        + r"(?:[^?#]*[-/])?"
        + r"(?P<page_id>[a-zA-Z0-9]+)"
        + r"(?:\?[^#]*)?"
        + r"(?:#(?P<anchor_id>[a-zA-Z0-9]+))?$"
    )


def paragraph_block(text: str) -> Dict[str, Any]:
    return {
        "object": "block",
        "type": "paragraph",
        "paragraph": {
            "rich_text": [{"type": "text", "text": {"content": text}}],
        },
    }


class NotionClient:
    def __init__(
        self,
        api_key: Optional[str] = None,
        settings: Optional[Settings] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self.api_key = api_key or self._settings.NOTION_API_KEY
        self._base_url = self._settings.NOTION_API_URL.rstrip("/")
        self._timeout = timeout or self._settings.HTTP_TIMEOUT
        self._transport = transport
        self._url_pattern = build_url_pattern(self._settings.NOTION_URL_PREFIX)
        self._aclient: Optional[httpx.AsyncClient] = None

    def _get_async_client(self) -> httpx.AsyncClient:
        if self._aclient is None:
            self._aclient = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout,
                transport=self._transport,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Notion-Version": self._settings.NOTION_VERSION,
                    "Content-Type": "application/json",
                },
            )
        return self._aclient

    def resolve_target(self, url: str) -> DocumentTarget:
        """Extract the page id and optional block id from a document URL.

        Raises InvalidUrl if the URL does not match the document URL grammar.
        """
        match = self._url_pattern.match((url or "").strip())
        if not match:
            raise InvalidUrl(
                "Invalid Notion URL format. Please ensure the URL is a link to a Notion page or Notion block."
            )
        return DocumentTarget(page_id=match.group("page_id"), anchor_id=match.group("anchor_id"))

    async def retrieve_block(self, block_id: str) -> Dict[str, Any]:
        client = self._get_async_client()
        resp = await client.get(f"/blocks/{block_id}")
        resp.raise_for_status()
        return resp.json()

    async def verify_access(self, block_id: str) -> None:
        """Read the block once; any failure is reported as AccessDenied."""
        try:
            block = await self.retrieve_block(block_id)
        except Exception as e:
            log.warning("Notion block %s not readable: %s", block_id, e)
            raise AccessDenied("Access to the specified Notion block is denied.") from e
        if not isinstance(block, dict) or not block.get("id"):
            raise AccessDenied("Failed to retrieve the specified block.")

    async def check_access(self, url: str) -> DocumentTarget:
        target = self.resolve_target(url)
        await self.verify_access(target.block_id)
        return target

    async def append_text(self, page_id: str, text: str, after: Optional[str] = None) -> str:
        """Append one paragraph to `page_id`, right after block `after`.

        Not idempotent: every call creates a new block. Returns its id.
        """
        payload: Dict[str, Any] = {"children": [paragraph_block(text)]}
        if after:
            payload["after"] = after
        try:
            client = self._get_async_client()
            resp = await client.patch(f"/blocks/{page_id}/children", json=payload)
            resp.raise_for_status()
            data = resp.json()
        except Exception as e:
            log.exception("Notion append failed for page %s: %s", page_id, e)
            raise RemoteError("Failed to append text to Notion") from e

        results = data.get("results") or []
        if not results or not results[0].get("id"):
            raise RemoteError("Notion append returned no block")
        block_id = results[0]["id"]
        log.info("Appended %d chars to page %s after %s -> %s", len(text), page_id, after, block_id)
        return block_id

    async def aclose(self) -> None:
        if self._aclient is not None:
            await self._aclient.aclose()
            self._aclient = None


_client: Optional[NotionClient] = None


def get_notion_client() -> NotionClient:
    global _client
    if _client is None:
        _client = NotionClient()
    return _client
