from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from app.core.config import get_settings
from app.core.logger import get_logger, set_log_level
from app.services.gladia_client import get_gladia_client
from app.services.notion_client import get_notion_client
from app.api import routes_gladia, routes_health, routes_notion, routes_transcription

log = get_logger(__name__)

# .env is only loaded by get_settings(), after the root logger was configured
set_log_level(get_settings().LOG_LEVEL)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    log.info("Transcription relay starting (strategy=%s)", get_settings().TRANSCRIPTION_STRATEGY)
    try:
        yield
    finally:
        # Shutdown
        for client in (get_gladia_client(), get_notion_client()):
            try:
                await client.aclose()
            except Exception:
                log.exception("Failed to close %s", type(client).__name__)


app = FastAPI(
    title="Notion Transcriber API",
    description="Relays microphone audio to Gladia and appends transcripts to Notion",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(routes_notion.router, prefix="/notion", tags=["Notion"])
app.include_router(routes_gladia.router, prefix="/gladia", tags=["Gladia"])
app.include_router(routes_health.router, prefix="/health", tags=["Health"])
app.include_router(routes_transcription.router, tags=["WebSocket"])

@app.get("/")
def root():
    return {"status": "Notion transcriber backend running"}
