"""
Transcription strategies: how a session turns audio chunks into text.

- live: one Gladia socket per session; chunks are forwarded as binary frames
  and final transcripts are appended as they arrive.
- batch: every chunk is a complete recording; it is uploaded, submitted as a
  pre-recorded job and polled until done.

The variant is picked once from settings (TRANSCRIPTION_STRATEGY) when the
session is created. Results reach viewers through `publish`, and text reaches
the document through `append`; neither failure is reported back to the
caller of handle_audio_chunk.
"""

from __future__ import annotations

import abc
import asyncio
import base64
import binascii
from typing import Any, Awaitable, Callable, Dict, Optional, Set, Union

from app.core.config import Settings
from app.core.errors import ConfigurationError, PollTimeout, RemoteError, StreamError
from app.core.logger import get_logger
from app.schemas.gladia import DiarizationConfig, JobSnapshot, TranscriptionRequest
from app.schemas.transcript import (
    ConnectedEvent,
    ErrorEvent,
    ProviderEvent,
    TranscriptEvent,
)
from app.services.gladia_client import GladiaClient, StreamState

log = get_logger(__name__)


PublishCallback = Callable[[Dict[str, Any]], Awaitable[None]]
AppendCallback = Callable[[str], Awaitable[None]]
SleepCallable = Callable[[float], Awaitable[Any]]


def transcription_result(message: Union[str, ProviderEvent]) -> Dict[str, Any]:
    """Viewer payload for one provider message.

    Raw socket text is forwarded untouched; events we build ourselves are
    serialized to JSON.
    """
    data = message if isinstance(message, str) else message.model_dump_json()
    return {"type": "transcriptionResult", "data": data}


def decode_chunk(chunk_b64: str) -> Optional[bytes]:
    try:
        return base64.b64decode(chunk_b64, validate=True)
    except (binascii.Error, ValueError, TypeError):
        log.warning("Dropping audio chunk that is not valid base64")
        return None


class TranscriptionStrategy(abc.ABC):
    name = "base"

    def __init__(self, settings: Settings, publish: PublishCallback, append: AppendCallback) -> None:
        self._settings = settings
        self._publish = publish
        self._append = append

    async def start(self) -> None:
        log.info("%s initialized", type(self).__name__)

    @abc.abstractmethod
    async def handle_audio_chunk(self, chunk_b64: str) -> None:
        """Accept one base64 chunk; results arrive later via publish/append."""

    async def close(self) -> None:
        return None

    async def _emit(self, message: Union[str, ProviderEvent]) -> None:
        try:
            await self._publish(transcription_result(message))
        except Exception:
            log.exception("Publishing transcription result failed")


class LiveTranscriptionStrategy(TranscriptionStrategy):
    name = "live"

    def __init__(
        self,
        settings: Settings,
        gladia: GladiaClient,
        publish: PublishCallback,
        append: AppendCallback,
    ) -> None:
        super().__init__(settings, publish, append)
        self._stream = gladia.open_stream(on_event=self._on_event, on_closed=self._on_closed)
        self._connect_task: Optional[asyncio.Task] = None

    @property
    def stream(self):
        return self._stream

    async def start(self) -> None:
        await super().start()
        # frames arriving before the handshake completes are dropped
        self._connect_task = asyncio.create_task(self._stream.connect(), name="gladia-live-connect")

    async def handle_audio_chunk(self, chunk_b64: str) -> None:
        if self._stream.state is StreamState.CLOSED:
            log.debug("Live stream closed; dropping audio chunk")
            return
        data = decode_chunk(chunk_b64)
        if data is None:
            return
        await self._stream.send_frame(data)

    async def _on_event(self, event: Optional[ProviderEvent], raw: str) -> None:
        await self._emit(raw)
        if isinstance(event, TranscriptEvent):
            if event.is_final and event.transcription.strip():
                await self._append(event.transcription)
        elif isinstance(event, ConnectedEvent):
            log.info("Gladia live session ready: request_id=%s", event.request_id)
        elif isinstance(event, ErrorEvent):
            log.error("Gladia live error: %s", event.message)

    async def _on_closed(self, error: StreamError) -> None:
        log.error("Live transcription stopped, further audio will be dropped: %s", error)

    async def close(self) -> None:
        task, self._connect_task = self._connect_task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        await self._stream.close()


class BatchTranscriptionStrategy(TranscriptionStrategy):
    name = "batch"

    def __init__(
        self,
        settings: Settings,
        gladia: GladiaClient,
        publish: PublishCallback,
        append: AppendCallback,
        sleep: Optional[SleepCallable] = None,
    ) -> None:
        super().__init__(settings, publish, append)
        self._gladia = gladia
        self._sleep = sleep or asyncio.sleep
        self.poll_interval = settings.POLL_INTERVAL
        self.max_poll_attempts = settings.MAX_POLL_ATTEMPTS
        self._units: Set[asyncio.Task] = set()

    async def handle_audio_chunk(self, chunk_b64: str) -> None:
        data = decode_chunk(chunk_b64)
        if data is None:
            return
        # each unit can take up to a minute; don't hold up the caller
        task = asyncio.create_task(self.transcribe_unit(data), name="gladia-batch-unit")
        self._units.add(task)
        task.add_done_callback(self._units.discard)

    def job_request(self, audio_url: str) -> TranscriptionRequest:
        s = self._settings
        return TranscriptionRequest(
            audio_url=audio_url,
            diarization=True,
            diarization_config=DiarizationConfig(
                min_speakers=s.MIN_SPEAKERS,
                max_speakers=s.MAX_SPEAKERS,
                number_of_speakers=s.NUMBER_OF_SPEAKERS,
            ),
            context_prompt=s.CONTEXT_HINT or None,
            language=s.DEFAULT_LANGUAGE or None,
        )

    async def wait_for_job(self, job_id: str) -> JobSnapshot:
        """Poll every `poll_interval` seconds, at most `max_poll_attempts` times.

        A failed poll uses up an attempt. Raises PollTimeout if the job is
        still queued/processing after the last poll.
        """
        for attempt in range(1, self.max_poll_attempts + 1):
            await self._sleep(self.poll_interval)
            try:
                snapshot = await self._gladia.poll_job(job_id)
            except RemoteError:
                log.warning("Job %s poll %d/%d failed", job_id, attempt, self.max_poll_attempts)
                continue
            log.info("Job %s status %s (poll %d/%d)", job_id, snapshot.status, attempt, self.max_poll_attempts)
            if not snapshot.pending:
                return snapshot
        raise PollTimeout(job_id, self.max_poll_attempts)

    async def transcribe_unit(self, audio: bytes) -> Optional[str]:
        """Transcribe one self-contained recording and append its text.

        Returns the transcript, or None when nothing was appended.
        """
        try:
            upload = await self._gladia.upload_audio(audio, "audio_file.webm", "audio/webm;codecs=opus")
            job = await self._gladia.submit_job(self.job_request(upload.audio_url))
            snapshot = await self.wait_for_job(job.id)
        except PollTimeout as e:
            log.warning("Max polling attempts reached, giving up: %s", e)
            return None
        except RemoteError as e:
            log.error("Batch transcription failed: %s", e)
            return None

        if snapshot.status == "error":
            log.error("Transcription job %s failed: %s", snapshot.id, snapshot.error_message)
            return None

        text = snapshot.full_transcript
        log.info("Transcription %s completed (%d chars)", snapshot.id, len(text))
        languages = snapshot.result.transcription.languages if snapshot.result and snapshot.result.transcription else []
        await self._emit(
            TranscriptEvent(type="final", transcription=text, language=languages[0] if languages else None)
        )
        if not text.strip():
            return None
        await self._append(text)
        return text

    async def close(self) -> None:
        units = list(self._units)
        for t in units:
            t.cancel()
        if units:
            await asyncio.gather(*units, return_exceptions=True)
        self._units.clear()


STRATEGIES = {
    LiveTranscriptionStrategy.name: LiveTranscriptionStrategy,
    BatchTranscriptionStrategy.name: BatchTranscriptionStrategy,
}


def create_strategy(
    settings: Settings,
    gladia: GladiaClient,
    publish: PublishCallback,
    append: AppendCallback,
) -> TranscriptionStrategy:
    """Instantiate the strategy named by settings.TRANSCRIPTION_STRATEGY."""
    key = (settings.TRANSCRIPTION_STRATEGY or "").strip().lower()
    # Gladia calls batch jobs "pre-recorded"; accept that spelling too
    if key == "pre-recorded":
        key = "batch"
    cls = STRATEGIES.get(key)
    if cls is None:
        raise ConfigurationError(
            f"Unknown TRANSCRIPTION_STRATEGY {settings.TRANSCRIPTION_STRATEGY!r}; expected one of {sorted(STRATEGIES)}"
        )
    return cls(settings, gladia, publish, append)
