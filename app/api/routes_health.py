from fastapi import APIRouter

from app.core.config import get_settings
from app.services.viewer_hub import get_viewer_hub

router = APIRouter()

@router.get("/ready")
def readiness_probe():
    return {"status": "ready", "strategy": get_settings().TRANSCRIPTION_STRATEGY}

@router.get("/live")
def liveness_probe():
    return {"status": "alive", "viewers": len(get_viewer_hub())}
