from __future__ import annotations

from typing import Optional

from pydantic import BaseModel


class DocumentTarget(BaseModel):
    """A destination resolved from a document URL."""

    page_id: str
    anchor_id: Optional[str] = None

    @property
    def block_id(self) -> str:
        # Pages are blocks too; without an anchor the page itself is checked
        return self.anchor_id or self.page_id


class AppendCursor(BaseModel):
    page_id: str
    anchor_id: Optional[str] = None
    last_block_id: Optional[str] = None

    @property
    def position(self) -> Optional[str]:
        """Block the next append goes after (None appends at the end of the page)."""
        return self.last_block_id or self.anchor_id

    def advance(self, block_id: str) -> None:
        self.last_block_id = block_id
