import os
from functools import lru_cache
from typing import List

from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_CONTEXT_HINT = (
    "Un meeting entre Floryan, Head of QARA de Hokla, et Dour, CEO de Dalia Care. "
    "Atelier réglementaire sur Dalia"
)


class Settings(BaseSettings):
    # Gladia (transcription provider)
    GLADIA_API_KEY: str = ""
    GLADIA_API_URL: str = "https://api.gladia.io/v2"
    GLADIA_WS_URL: str = "wss://api.gladia.io/audio/text/audio-transcription"

    # Notion (destination document)
    NOTION_API_KEY: str = ""
    NOTION_API_URL: str = "https://api.notion.com/v1"
    NOTION_VERSION: str = "2022-06-28"
    NOTION_URL_PREFIX: str = "https://www.notion.so/"

    # Strategy: "live" streams frames over a socket, "batch" uploads and polls
    TRANSCRIPTION_STRATEGY: str = "live"

    # Recognition defaults
    DEFAULT_LANGUAGE: str = "fr"
    LIVE_LANGUAGE: str = "french"
    LANGUAGE_BEHAVIOUR: str = "automatic single language"
    CONTEXT_HINT: str = DEFAULT_CONTEXT_HINT
    SAMPLE_RATE: int = 48000
    ENCODING: str = "OPUS"
    MIN_SPEAKERS: int = 1
    MAX_SPEAKERS: int = 2
    NUMBER_OF_SPEAKERS: int = 2

    # Batch polling
    POLL_INTERVAL: float = 5.0
    MAX_POLL_ATTEMPTS: int = 12

    # General
    PORT: int = 3000
    HTTP_TIMEOUT: float = 30.0
    CORS_ORIGINS: List[str] = ["*"]
    LOG_LEVEL: str = "INFO"
    ENV: str = os.getenv("ENV", "development")

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    # Ensure .env is loaded once
    load_dotenv(override=False)
    return Settings()
