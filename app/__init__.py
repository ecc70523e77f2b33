"""Notion transcriber application package.

Relays browser microphone audio to Gladia and appends the transcripts to a
Notion page. Subpackages include:
- api: FastAPI route definitions (HTTP and the transcription websocket)
- core: configuration, logging and error types
- services: Notion/Gladia clients, strategies, session relay
- schemas: Pydantic models
- workers: per-session append queue
"""

__all__ = [
    "api",
    "core",
    "services",
    "schemas",
    "workers",
]

__version__ = "1.0.0"
