"""
Image-to-video endpoints
"""
from typing import Optional

from fastapi import APIRouter, Depends, File, Query, Request, UploadFile
import structlog

from api.config import settings
from api.dependencies import get_reel_service
from api.models.reel import ErrorResponse, ReelResponse
from api.services.reel_service import ReelService
from worker.processors.video import VideoArtifact

logger = structlog.get_logger()
router = APIRouter()

ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Missing source or disallowed media type"},
    413: {"model": ErrorResponse, "description": "Source image exceeds the size limit"},
    500: {"model": ErrorResponse, "description": "Encoding failed"},
    502: {"model": ErrorResponse, "description": "Source could not be fetched"},
}


def _first_header_value(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    return value.split(",", 1)[0].strip() or None


def absolute_url(request: Request, relative_path: str) -> str:
    """Resolve a public path against the configured or forwarded origin."""
    if settings.PUBLIC_BASE_URL:
        return f"{settings.PUBLIC_BASE_URL.rstrip('/')}{relative_path}"
    proto = _first_header_value(request.headers.get("x-forwarded-proto")) or request.url.scheme
    host = _first_header_value(request.headers.get("x-forwarded-host")) or request.headers.get("host") or request.url.netloc
    return f"{proto}://{host}{relative_path}"


def _to_response(request: Request, artifact: VideoArtifact) -> ReelResponse:
    return ReelResponse(
        id=artifact.id,
        filename=artifact.filename,
        profile=artifact.profile,
        duration=artifact.duration,
        fps=artifact.fps,
        width=artifact.width,
        height=artifact.height,
        intro_duration=artifact.intro_duration,
        url=absolute_url(request, artifact.public_path),
        path=artifact.public_path,
    )


@router.post("/image-to-video", response_model=ReelResponse, responses=ERROR_RESPONSES)
async def image_to_video(
    request: Request,
    url: Optional[str] = Query(None, description="Remote PNG/JPG URL"),
    duration: Optional[str] = Query(None, description="Seconds, clamped to 1..90"),
    fps: Optional[str] = Query(None, description="Frame rate, clamped to 1..60"),
    width: Optional[str] = Query(None),
    height: Optional[str] = Query(None),
    file: Optional[UploadFile] = File(None, description="PNG/JPG upload, instead of url"),
    service: ReelService = Depends(get_reel_service),
) -> ReelResponse:
    """
    Render a still image into an MP4 held for `duration` seconds.

    Exactly one of `url` or multipart `file` is required. Numeric overrides are
    clamped into range rather than rejected. Any previously stored video is
    replaced by the new one.
    """
    params = service.normalize(duration, fps, width, height)
    artifact = await service.create_baseline(params, url=url, upload=file)
    return _to_response(request, artifact)


@router.post("/image-to-video/compressed", response_model=ReelResponse, responses=ERROR_RESPONSES)
async def image_to_video_compressed(
    request: Request,
    url: Optional[str] = Query(None, description="Remote PNG/JPG URL"),
    duration: Optional[str] = Query(None),
    fps: Optional[str] = Query(None),
    width: Optional[str] = Query(None),
    height: Optional[str] = Query(None),
    intro_url: Optional[str] = Query(None, description="Remote PNG/JPG shown before the main image"),
    intro_duration: Optional[str] = Query(None, description="Intro seconds, 0 disables"),
    file: Optional[UploadFile] = File(None),
    intro: Optional[UploadFile] = File(None, description="Intro PNG/JPG upload, instead of intro_url"),
    service: ReelService = Depends(get_reel_service),
) -> ReelResponse:
    """
    Size-optimized render with an optional intro segment joined in front.
    """
    params = service.normalize(duration, fps, width, height)
    artifact = await service.create_compressed(
        params,
        url=url,
        upload=file,
        intro_url=intro_url,
        intro_upload=intro,
        intro_duration=service.normalize_intro_duration(intro_duration),
    )
    return _to_response(request, artifact)
