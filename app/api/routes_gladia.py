from fastapi import APIRouter, File, HTTPException, UploadFile

from app.core.errors import RemoteError
from app.core.logger import get_logger
from app.schemas.gladia import JobReference, JobSnapshot, TranscriptionRequest, UploadResponse
from app.services.gladia_client import get_gladia_client

router = APIRouter()
log = get_logger(__name__)


@router.post("/audio", response_model=UploadResponse)
async def upload_audio(file: UploadFile = File(...)):
    """Proxy an audio upload to Gladia and return its audio_url."""
    data = await file.read()
    if not data:
        raise HTTPException(status_code=400, detail="Empty audio file")
    try:
        return await get_gladia_client().upload_audio(
            data,
            filename=file.filename or "audio_file.webm",
            content_type=file.content_type or "audio/webm",
        )
    except RemoteError as e:
        raise HTTPException(status_code=502, detail=str(e))


@router.post("/transcription", response_model=JobReference)
async def create_transcription(request: TranscriptionRequest):
    try:
        return await get_gladia_client().submit_job(request)
    except RemoteError as e:
        raise HTTPException(status_code=502, detail=str(e))


@router.get("/transcription/{job_id}", response_model=JobSnapshot)
async def get_transcription(job_id: str):
    """Single status read of a pre-recorded job; callers poll this themselves."""
    try:
        return await get_gladia_client().poll_job(job_id)
    except RemoteError as e:
        raise HTTPException(status_code=502, detail=str(e))
