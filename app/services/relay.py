"""
Session relay: per-connection state between a client socket, its
transcription strategy and its destination document.

States: connected -> (target_set) -> streaming -> disconnected. Setting a
target is optional; audio is transcribed with or without one, text is only
written once a target is set.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Callable, Dict, Optional

from fastapi import WebSocket

from app.core.config import Settings
from app.core.errors import AccessDenied, InvalidUrl, RemoteError
from app.core.logger import get_logger
from app.services.document_writer import DocumentWriter
from app.services.gladia_client import GladiaClient
from app.services.notion_client import NotionClient
from app.services.strategies import TranscriptionStrategy, create_strategy
from app.services.viewer_hub import ViewerHub
from app.workers.append_queue import AppendQueue

log = get_logger(__name__)


StrategyFactory = Callable[..., TranscriptionStrategy]


class SessionState(str, Enum):
    CONNECTED = "connected"
    TARGET_SET = "target_set"
    STREAMING = "streaming"
    DISCONNECTED = "disconnected"


class TranscriptionSession:
    def __init__(
        self,
        session_id: str,
        settings: Settings,
        notion: NotionClient,
        gladia: GladiaClient,
        hub: ViewerHub,
        viewer: Optional[WebSocket] = None,
        strategy_factory: Optional[StrategyFactory] = None,
    ) -> None:
        self.session_id = session_id
        self.state = SessionState.CONNECTED
        self._notion = notion
        self._hub = hub
        self._viewer = viewer
        self.writer = DocumentWriter(notion)
        self.appends = AppendQueue(self.writer.append, name=f"append-{session_id}")
        factory = strategy_factory or create_strategy
        self.strategy = factory(settings, gladia, self._hub.broadcast, self.appends.submit)

    async def open(self) -> None:
        if self._viewer is not None:
            self._hub.add(self._viewer)
        await self.appends.start()
        await self.strategy.start()
        log.info("Client id: %s connected (strategy=%s)", self.session_id, self.strategy.name)

    async def set_target(self, url: str) -> Dict[str, Any]:
        try:
            cursor = await self.writer.set_target(url)
        except InvalidUrl:
            log.error("Invalid Notion URL provided by client %s", self.session_id)
            return {"status": "error", "message": "Invalid Notion URL"}
        except AccessDenied as e:
            log.error("Notion access denied for client %s: %s", self.session_id, e)
            return {"status": "error", "message": str(e)}
        except RemoteError as e:
            log.error("Error setting Notion target for client %s: %s", self.session_id, e)
            return {"status": "error", "message": "Error setting Notion target"}
        if self.state is SessionState.CONNECTED:
            self.state = SessionState.TARGET_SET
        return {"status": "success", "cursor": cursor.model_dump()}

    async def check_access(self, url: str) -> Dict[str, Any]:
        """Read-only pre-flight of a destination URL; never touches the cursor."""
        try:
            target = await self._notion.check_access(url)
        except (InvalidUrl, AccessDenied) as e:
            return {"error": str(e)}
        return {"anchorId": target.block_id, "pageId": target.page_id}

    async def handle_audio_frame(self, chunk_b64: str) -> None:
        if self.state is SessionState.DISCONNECTED:
            return
        self.state = SessionState.STREAMING
        try:
            await self.strategy.handle_audio_chunk(chunk_b64)
        except Exception:
            log.exception("Strategy %s failed on audio chunk", self.strategy.name)

    async def close(self) -> None:
        if self.state is SessionState.DISCONNECTED:
            return
        self.state = SessionState.DISCONNECTED
        if self._viewer is not None:
            self._hub.discard(self._viewer)
        try:
            await self.strategy.close()
        except Exception:
            log.exception("Closing strategy for %s failed", self.session_id)
        await self.appends.stop()
        log.info("Client id: %s disconnected", self.session_id)
