import logging
import os
from typing import Optional

_configured = False


def _configure_root_logger() -> None:
    global _configured
    if _configured:
        return
    level = os.getenv("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    # httpx logs every request at INFO; keep it to warnings
    logging.getLogger("httpx").setLevel(logging.WARNING)
    _configured = True


def set_log_level(level: str) -> None:
    """Apply a level name (e.g. "DEBUG") to the root logger.

    Unknown names fall back to INFO.
    """
    _configure_root_logger()
    logging.getLogger().setLevel(getattr(logging, level.upper(), logging.INFO))


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return a module logger with consistent formatting.

    If not yet configured, configures the root logger once.
    """
    _configure_root_logger()
    return logging.getLogger(name or "app")
