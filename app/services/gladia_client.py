"""
Gladia client wrapper: pre-recorded jobs over httpx, live transcription over
a websocket.

Pre-recorded flow is upload -> submit -> poll; polling cadence belongs to the
caller. The live flow is a LiveStream: one socket per session, a JSON handshake
sent once right after the socket opens, then binary audio frames. Inbound
messages are handed to a callback as received, together with the parsed
provider event (None for message kinds we do not model).
"""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

import httpx
import websockets

from app.core.config import Settings, get_settings
from app.core.errors import RemoteError, StreamError, SubmitError, UploadError
from app.core.logger import get_logger
from app.schemas.gladia import (
    JobReference,
    JobSnapshot,
    LiveStreamConfig,
    TranscriptionRequest,
    UploadResponse,
)
from app.schemas.transcript import ProviderEvent, parse_provider_event

log = get_logger(__name__)


EventCallback = Callable[[Optional[ProviderEvent], str], Awaitable[None]]
ClosedCallback = Callable[[StreamError], Awaitable[None]]
Connector = Callable[..., Awaitable[Any]]


class StreamState(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


class LiveStream:
    """One long-lived socket to the live transcription endpoint.

    Frames sent while the socket is not open are dropped, never queued.
    There is no reconnect: once closed, the stream stays closed.
    """

    def __init__(
        self,
        url: str,
        config: LiveStreamConfig,
        on_event: EventCallback,
        on_closed: Optional[ClosedCallback] = None,
        connector: Optional[Connector] = None,
    ) -> None:
        self._url = url
        self._config = config
        self._on_event = on_event
        self._on_closed = on_closed
        self._connector = connector or websockets.connect
        self._ws: Any = None
        self._reader: Optional[asyncio.Task] = None
        self._state = StreamState.IDLE
        self.sent_frames = 0
        self.dropped_frames = 0

    @property
    def state(self) -> StreamState:
        return self._state

    @property
    def ready(self) -> bool:
        return self._state is StreamState.OPEN

    async def connect(self) -> None:
        if self._state is not StreamState.IDLE:
            return
        self._state = StreamState.CONNECTING
        try:
            self._ws = await self._connector(self._url, ping_interval=20, max_size=25 * 1024 * 1024)
            log.info("Connected to Gladia live endpoint")
            await self._ws.send(self._config.model_dump_json(exclude_none=True))
        except Exception as e:
            log.exception("Gladia live connection failed: %s", e)
            await self._mark_closed(StreamError(f"connect failed: {e}"))
            return
        if self._state is not StreamState.CONNECTING:
            # closed while the handshake was in flight
            await self._ws.close()
            return
        self._state = StreamState.OPEN
        self._reader = asyncio.create_task(self._read_loop(), name="gladia-live-reader")

    async def send_frame(self, frame: bytes) -> bool:
        """Forward one binary frame; returns False when it was dropped."""
        if not self.ready:
            self.dropped_frames += 1
            return False
        try:
            await self._ws.send(frame)
        except Exception as e:
            log.error("Gladia live send failed: %s", e)
            self.dropped_frames += 1
            await self._mark_closed(StreamError(f"send failed: {e}"))
            return False
        self.sent_frames += 1
        log.debug("Sent audio frame of %.2f MB", len(frame) / (1024 * 1024))
        return True

    async def _read_loop(self) -> None:
        error: StreamError
        try:
            async for message in self._ws:
                raw = message.decode("utf-8", errors="replace") if isinstance(message, bytes) else message
                try:
                    event = parse_provider_event(raw)
                except ValueError:
                    log.debug("Unrecognised Gladia message: %.200s", raw)
                    event = None
                try:
                    await self._on_event(event, raw)
                except Exception:
                    log.exception("Live event handler failed")
            error = StreamError("Gladia socket closed")
        except asyncio.CancelledError:
            raise
        except websockets.ConnectionClosed as e:
            error = StreamError(f"Gladia socket closed: {e}")
        except Exception as e:
            log.exception("Gladia live reader crashed: %s", e)
            error = StreamError(str(e))
        await self._mark_closed(error)

    async def _mark_closed(self, error: StreamError) -> None:
        if self._state is StreamState.CLOSED:
            return
        self._state = StreamState.CLOSED
        if self._on_closed is not None:
            try:
                await self._on_closed(error)
            except Exception:
                log.exception("Live close handler failed")

    async def close(self) -> None:
        """Close the socket without notifying on_closed."""
        self._state = StreamState.CLOSED
        reader, self._reader = self._reader, None
        if reader is not None and reader is not asyncio.current_task():
            reader.cancel()
            try:
                await reader
            except (asyncio.CancelledError, Exception):
                pass
        ws, self._ws = self._ws, None
        if ws is not None:
            try:
                await ws.close()
            except Exception:
                log.exception("Error closing Gladia live socket")


class GladiaClient:
    def __init__(
        self,
        api_key: Optional[str] = None,
        settings: Optional[Settings] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self.api_key = api_key or self._settings.GLADIA_API_KEY
        self._base_url = self._settings.GLADIA_API_URL.rstrip("/")
        self._timeout = timeout or self._settings.HTTP_TIMEOUT
        self._transport = transport
        self._aclient: Optional[httpx.AsyncClient] = None

    def _get_async_client(self) -> httpx.AsyncClient:
        if self._aclient is None:
            self._aclient = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout,
                transport=self._transport,
                headers={"x-gladia-key": self.api_key},
            )
        return self._aclient

    async def upload_audio(
        self,
        audio: bytes,
        filename: str = "audio_file.webm",
        content_type: str = "audio/webm",
    ) -> UploadResponse:
        log.info("Uploading audio blob of %.2f MB", len(audio) / (1024 * 1024))
        try:
            client = self._get_async_client()
            resp = await client.post("/upload", files={"audio": (filename, audio, content_type)})
            resp.raise_for_status()
            return UploadResponse.model_validate(resp.json())
        except Exception as e:
            log.exception("Gladia upload failed: %s", e)
            raise UploadError("Gladia upload failed") from e

    async def submit_job(self, request: TranscriptionRequest) -> JobReference:
        try:
            client = self._get_async_client()
            resp = await client.post("/transcription", json=request.model_dump(exclude_none=True))
            resp.raise_for_status()
            job = JobReference.model_validate(resp.json())
        except Exception as e:
            log.exception("Gladia transcription request failed: %s", e)
            raise SubmitError("Gladia transcription request failed") from e
        log.info("Submitted transcription job %s", job.id)
        return job

    async def poll_job(self, job_id: str) -> JobSnapshot:
        try:
            client = self._get_async_client()
            resp = await client.get(f"/transcription/{job_id}")
            resp.raise_for_status()
            return JobSnapshot.model_validate(resp.json())
        except Exception as e:
            log.exception("Gladia job %s fetch failed: %s", job_id, e)
            raise RemoteError(f"Could not fetch transcription {job_id}") from e

    def live_config(self) -> LiveStreamConfig:
        s = self._settings
        return LiveStreamConfig(
            x_gladia_key=self.api_key,
            sample_rate=s.SAMPLE_RATE,
            encoding=s.ENCODING or None,
            language_behaviour=s.LANGUAGE_BEHAVIOUR,
            language=s.LIVE_LANGUAGE or None,
            transcription_hint=s.CONTEXT_HINT or None,
        )

    def open_stream(
        self,
        on_event: EventCallback,
        on_closed: Optional[ClosedCallback] = None,
        config: Optional[LiveStreamConfig] = None,
    ) -> LiveStream:
        """Create an unconnected LiveStream; call connect() to open it."""
        return LiveStream(
            self._settings.GLADIA_WS_URL,
            config or self.live_config(),
            on_event=on_event,
            on_closed=on_closed,
        )

    async def aclose(self) -> None:
        if self._aclient is not None:
            await self._aclient.aclose()
            self._aclient = None


_client: Optional[GladiaClient] = None


def get_gladia_client() -> GladiaClient:
    global _client
    if _client is None:
        _client = GladiaClient()
    return _client
