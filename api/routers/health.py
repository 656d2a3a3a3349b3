"""
Health check endpoints
"""
import os
import shutil
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter
from fastapi.responses import JSONResponse
import structlog

from api.config import settings
from api.models.reel import HealthResponse

logger = structlog.get_logger()
router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health_check() -> Dict[str, Any]:
    """Liveness probe."""
    return {"ok": True}


@router.get("/health/detailed")
async def detailed_health_check():
    """
    Readiness: the encoder binary is on PATH and the output directory is writable.
    """
    health_status: Dict[str, Any] = {
        "ok": True,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": settings.VERSION,
        "components": {},
    }

    ffmpeg = shutil.which(settings.FFMPEG_PATH)
    health_status["components"]["ffmpeg"] = {"ok": ffmpeg is not None}

    output_dir = settings.VIDEO_DIR
    writable = output_dir.is_dir() and os.access(output_dir, os.W_OK)
    health_status["components"]["storage"] = {"ok": writable}

    if not all(c["ok"] for c in health_status["components"].values()):
        health_status["ok"] = False
        logger.warning("Readiness check failed", components=health_status["components"])
        return JSONResponse(status_code=503, content=health_status)

    return health_status
