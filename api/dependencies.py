"""
FastAPI dependencies: process-wide pipeline components
"""
from functools import lru_cache

from api.config import settings
from api.services.metrics import metrics
from api.services.reel_service import ReelService
from storage.workspace import WorkspaceManager
from worker.fetcher import ContentFetcher, create_fetcher
from worker.processors.video import EncodeOrchestrator
from worker.utils.ffmpeg import Encoder, FFmpegEncoder, baseline_profile, compressed_profile


@lru_cache
def get_workspace() -> WorkspaceManager:
    return WorkspaceManager(settings.VIDEO_DIR, settings.TEMP_DIR, metrics=metrics)


@lru_cache
def get_encoder() -> Encoder:
    return FFmpegEncoder(settings.FFMPEG_PATH, timeout=settings.ENCODE_TIMEOUT_SECONDS)


@lru_cache
def get_fetcher() -> ContentFetcher:
    return create_fetcher(
        settings.FETCH_STRATEGY,
        get_workspace(),
        max_bytes=settings.MAX_IMAGE_BYTES,
        timeout=settings.download_timeout_seconds,
        max_redirects=settings.MAX_REDIRECTS,
        chunk_size=settings.FETCH_CHUNK_SIZE,
        metrics=metrics,
    )


@lru_cache
def get_orchestrator() -> EncodeOrchestrator:
    return EncodeOrchestrator(
        get_encoder(),
        get_workspace(),
        baseline=baseline_profile(settings.BASELINE_AUDIO_BR_KBPS),
        compressed=compressed_profile(
            codec=settings.VIDEO_CODEC,
            crf=settings.VIDEO_CRF,
            preset=settings.VIDEO_PRESET,
            maxrate_kbps=settings.VIDEO_MAXRATE_KBPS,
            bufsize_kbps=settings.VIDEO_BUFSIZE_KBPS,
            keyint=settings.VIDEO_KEYINT,
            audio_bitrate_kbps=settings.AUDIO_BR_KBPS,
        ),
        background_color=settings.BACKGROUND_COLOR,
        public_prefix="/videos",
        metrics=metrics,
    )


def get_reel_service() -> ReelService:
    return ReelService(settings, get_fetcher(), get_orchestrator(), get_workspace())
