from __future__ import annotations

from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter


class WordDetail(BaseModel):
    word: str
    time_begin: float = 0.0
    time_end: float = 0.0
    confidence: float = 0.0


class TranscriptEvent(BaseModel):
    event: Literal["transcript"] = "transcript"
    type: Literal["partial", "final"]
    transcription: str = ""
    language: Optional[str] = None
    time_begin: float = 0.0
    time_end: float = 0.0
    duration: Optional[float] = None
    words: List[WordDetail] = Field(default_factory=list)

    @property
    def is_final(self) -> bool:
        return self.type == "final"


class ConnectedEvent(BaseModel):
    event: Literal["connected"] = "connected"
    request_id: str


class ErrorEvent(BaseModel):
    event: Literal["error"] = "error"
    message: str = ""


ProviderEvent = Annotated[
    Union[TranscriptEvent, ConnectedEvent, ErrorEvent],
    Field(discriminator="event"),
]

_event_adapter = TypeAdapter(ProviderEvent)


def parse_provider_event(payload: Union[str, bytes, Dict[str, Any]]) -> ProviderEvent:
    """Parse one message from the live socket into a typed event.

    Raises pydantic.ValidationError (a ValueError) when the
    message is not one of the three known event shapes.
    """
    if isinstance(payload, (str, bytes)):
        return _event_adapter.validate_json(payload)
    return _event_adapter.validate_python(payload)
