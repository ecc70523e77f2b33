from __future__ import annotations

import asyncio
from typing import Optional

from app.core.errors import RemoteError
from app.core.logger import get_logger
from app.schemas.document import AppendCursor
from app.services.notion_client import NotionClient

log = get_logger(__name__)

SEED_TEXT = "Starting transcription..."


class DocumentWriter:
    """Owns one session's append cursor in the destination document.

    Every append goes right after the previously appended block, so text lands
    in the order it was appended. Appends are serialized; a failed append
    leaves the cursor where it was.
    """

    def __init__(self, notion: NotionClient) -> None:
        self._notion = notion
        self._cursor: Optional[AppendCursor] = None
        self._lock = asyncio.Lock()

    @property
    def cursor(self) -> Optional[AppendCursor]:
        return self._cursor

    async def set_target(self, url: str) -> AppendCursor:
        """Validate `url` and seed a new cursor with a marker block.

        Raises InvalidUrl, AccessDenied or RemoteError; the current cursor is
        only replaced once the seed block exists.
        """
        target = await self._notion.check_access(url)
        cursor = AppendCursor(page_id=target.page_id, anchor_id=target.anchor_id)
        async with self._lock:
            block_id = await self._notion.append_text(cursor.page_id, SEED_TEXT, after=cursor.position)
            cursor.advance(block_id)
            self._cursor = cursor
        log.info("Document target set: page=%s anchor=%s", cursor.page_id, cursor.anchor_id)
        return cursor

    async def append(self, text: str) -> Optional[str]:
        async with self._lock:
            cursor = self._cursor
            if cursor is None:
                log.error("No Notion block ID set. Cannot append text.")
                return None
            try:
                block_id = await self._notion.append_text(cursor.page_id, text, after=cursor.position)
            except RemoteError:
                log.exception("Append after %s failed; cursor unchanged", cursor.position)
                return None
            cursor.advance(block_id)
            return block_id
