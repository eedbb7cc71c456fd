"""
Consultation Assistant - FastAPI Application Entry Point

Registers the assistant router (sessions, connectivity, floating assistant)
and the AI backend router (chat, general chat, health).
Starts the connectivity monitor on startup and stops it on shutdown.
"""

import logging
from pathlib import Path
from dotenv import load_dotenv

# Resolve .env relative to project root (parent of app/)
_env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_env_path, override=True)

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import settings
from app.core import records
from app.core.backend_client import backend_client
from app.memory.session_store import connectivity_monitor
from app.routers import ai_backend, assistant

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Consultation Assistant")

# CORS - allow all origins for development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register routers
app.include_router(assistant.router, prefix="/assistant", tags=["assistant"])
app.include_router(ai_backend.router, prefix="/api", tags=["ai-backend"])


@app.on_event("startup")
async def startup_event():
    """Load the clinical records and start probing the backend."""
    records.load_records()
    await connectivity_monitor.start()
    logger.info("Consultation assistant ready")


@app.on_event("shutdown")
async def shutdown_event():
    await connectivity_monitor.stop()
    await backend_client.aclose()
