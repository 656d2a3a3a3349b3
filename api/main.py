"""
Reelcast - still image to MP4 service
"""
from contextlib import asynccontextmanager
from typing import Any, Dict

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from fastapi.staticfiles import StaticFiles
from prometheus_client import make_asgi_app
from starlette.exceptions import HTTPException as StarletteHTTPException
import structlog

from api.config import settings
from api.dependencies import get_workspace
from api.routers import health, reels
from api.services.metrics import metrics
from api.utils.logger import bind_request_context, setup_logging
from api.utils.error_handlers import (
    ReelError, reel_exception_handler, validation_exception_handler,
    http_exception_handler, general_exception_handler
)

setup_logging()
logger = structlog.get_logger()


class VideoStaticFiles(StaticFiles):
    """Read-only artifact serving with a fixed container content type."""

    def file_response(self, *args, **kwargs):
        response = super().file_response(*args, **kwargs)
        response.headers["content-type"] = "video/mp4"
        return response


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle application startup and shutdown."""
    logger.info("Starting Reelcast", version=settings.VERSION)

    # A missing output directory is fatal; stale files in it are not
    workspace = get_workspace()
    await workspace.ensure_output_dir()
    await workspace.ensure_temp_dir()

    logger.info(
        "Configuration loaded",
        port=settings.PORT,
        video_dir=str(settings.VIDEO_DIR),
        fetch_strategy=settings.FETCH_STRATEGY,
        max_image_bytes=settings.MAX_IMAGE_BYTES,
        video_codec=settings.VIDEO_CODEC,
        default_size=f"{settings.TARGET_WIDTH}x{settings.TARGET_HEIGHT}",
    )

    yield

    logger.info("Shutting down Reelcast")


app = FastAPI(
    title="Reelcast",
    description="Turns a PNG/JPG into a short MP4 with a silent audio track",
    version=settings.VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    request_id = bind_request_context(
        request.method, request.url.path, request.headers.get("x-request-id")
    )
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


app.add_exception_handler(ReelError, reel_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(Exception, general_exception_handler)

app.include_router(reels.router, tags=["reels"])
app.include_router(health.router, tags=["health"])

app.mount("/videos", VideoStaticFiles(directory=settings.VIDEO_DIR, check_dir=False), name="videos")

if settings.ENABLE_METRICS:
    app.mount("/metrics", make_asgi_app(registry=metrics.registry))


@app.get("/", tags=["root"])
async def root() -> Dict[str, Any]:
    """Root endpoint with service information."""
    return {
        "name": "Reelcast",
        "version": settings.VERSION,
        "documentation": "/docs",
        "health": "/health",
        "endpoints": ["/image-to-video", "/image-to-video/compressed"],
    }


def main():
    """Main entry point for API server."""
    import uvicorn

    uvicorn.run(
        "api.main:app",
        host=settings.API_HOST,
        port=settings.PORT,
        workers=settings.API_WORKERS,
        reload=settings.API_RELOAD,
        log_config=None,  # Use structlog
    )


if __name__ == "__main__":
    main()
