from __future__ import annotations

from typing import Any, Dict, Optional, Set

from fastapi import WebSocket

from app.core.logger import get_logger

log = get_logger(__name__)


class ViewerHub:
    """Fan-out of transcription results to every connected client."""

    def __init__(self) -> None:
        self._viewers: Set[WebSocket] = set()

    def __len__(self) -> int:
        return len(self._viewers)

    def add(self, websocket: WebSocket) -> None:
        self._viewers.add(websocket)

    def discard(self, websocket: WebSocket) -> None:
        self._viewers.discard(websocket)

    async def broadcast(self, payload: Dict[str, Any]) -> int:
        """Send payload to all viewers; viewers that fail are dropped. Returns deliveries."""
        delivered = 0
        for ws in list(self._viewers):
            try:
                await ws.send_json(payload)
                delivered += 1
            except Exception as exc:
                log.warning("Dropping viewer after failed send: %s", exc)
                self._viewers.discard(ws)
        return delivered


_hub: Optional[ViewerHub] = None


def get_viewer_hub() -> ViewerHub:
    global _hub
    if _hub is None:
        _hub = ViewerHub()
    return _hub
