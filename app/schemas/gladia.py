from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class AudioMetadata(BaseModel):
    id: Optional[str] = None
    filename: Optional[str] = None
    extension: Optional[str] = None
    size: Optional[int] = None
    audio_duration: Optional[float] = None
    number_of_channels: Optional[int] = None


class UploadResponse(BaseModel):
    audio_url: str
    audio_metadata: Optional[AudioMetadata] = None


class DiarizationConfig(BaseModel):
    min_speakers: Optional[int] = None
    max_speakers: Optional[int] = None
    number_of_speakers: Optional[int] = None


class TranscriptionRequest(BaseModel):
    audio_url: str
    context_prompt: Optional[str] = None
    custom_vocabulary: Optional[List[str]] = None
    detect_language: Optional[bool] = None
    enable_code_switching: Optional[bool] = None
    diarization: Optional[bool] = None
    diarization_config: Optional[DiarizationConfig] = None
    language: Optional[str] = None
    subtitles: Optional[bool] = None
    summarization: Optional[bool] = None
    custom_metadata: Optional[Any] = None


class JobReference(BaseModel):
    id: str
    result_url: Optional[str] = None


class Utterance(BaseModel):
    text: str = ""
    language: Optional[str] = None
    start: float = 0.0
    end: float = 0.0
    speaker: Optional[int] = None
    channel: Optional[int] = None
    words: List[Dict[str, Any]] = Field(default_factory=list)


class TranscriptionBody(BaseModel):
    full_transcript: str = ""
    languages: List[str] = Field(default_factory=list)
    utterances: List[Utterance] = Field(default_factory=list)


class JobResult(BaseModel):
    metadata: Optional[Dict[str, Any]] = None
    transcription: Optional[TranscriptionBody] = None


class JobSnapshot(BaseModel):
    """One poll of a pre-recorded transcription job."""

    model_config = ConfigDict(extra="allow")

    id: str
    status: Literal["queued", "processing", "done", "error"]
    request_id: Optional[str] = None
    created_at: Optional[str] = None
    completed_at: Optional[str] = None
    error_message: Optional[str] = None
    result: Optional[JobResult] = None

    @property
    def pending(self) -> bool:
        return self.status in ("queued", "processing")

    @property
    def full_transcript(self) -> str:
        if self.result is None or self.result.transcription is None:
            return ""
        return self.result.transcription.full_transcript


class LiveStreamConfig(BaseModel):
    """Handshake sent once over the live socket before any audio frame."""

    x_gladia_key: str
    sample_rate: int = 48000
    encoding: Optional[str] = None
    language_behaviour: str = "automatic single language"
    language: Optional[str] = None
    transcription_hint: Optional[str] = None
    frames_format: Literal["base64", "bytes"] = "bytes"
