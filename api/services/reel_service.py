"""
Request handling: normalize parameters, then fetch, render and publish.
"""
from typing import Any, List, Optional

import structlog

from api.config import Settings
from api.utils.error_handlers import MissingSourceError, ValidationError
from api.utils.validators import clamp_int, normalize_dimension
from storage.workspace import WorkspaceManager
from worker.fetcher import ContentFetcher, StagedInput, stage_upload
from worker.processors.video import EncodeOrchestrator, RenderParams, VideoArtifact

logger = structlog.get_logger()


class ReelService:
    """Sequences fetcher, orchestrator and workspace for one request at a time."""

    def __init__(
        self,
        settings: Settings,
        fetcher: ContentFetcher,
        orchestrator: EncodeOrchestrator,
        workspace: WorkspaceManager,
    ):
        self.settings = settings
        self.fetcher = fetcher
        self.orchestrator = orchestrator
        self.workspace = workspace

    def normalize(self, duration: Any = None, fps: Any = None, width: Any = None, height: Any = None) -> RenderParams:
        """Clamp every numeric override into range; bad values never reject a request."""
        s = self.settings
        return RenderParams(
            duration=clamp_int(duration, s.DEFAULT_DURATION, s.MIN_DURATION, s.MAX_DURATION),
            fps=clamp_int(fps, s.DEFAULT_FPS, s.MIN_FPS, s.MAX_FPS),
            width=normalize_dimension(width, s.TARGET_WIDTH, s.MIN_DIMENSION, s.MAX_DIMENSION),
            height=normalize_dimension(height, s.TARGET_HEIGHT, s.MIN_DIMENSION, s.MAX_DIMENSION),
        )

    def normalize_intro_duration(self, value: Any = None) -> int:
        s = self.settings
        return clamp_int(value, s.DEFAULT_INTRO_DURATION, 0, s.INTRO_MAX_DURATION)

    async def create_baseline(self, params: RenderParams, url: Optional[str] = None, upload=None) -> VideoArtifact:
        _require_one(url, upload, "url", "file", required=True)

        staged: List[StagedInput] = []
        try:
            main = await self._stage(url, upload, "file")
            staged.append(main)
            return await self.orchestrator.render_baseline(main, params)
        finally:
            await self._release(staged)

    async def create_compressed(
        self,
        params: RenderParams,
        url: Optional[str] = None,
        upload=None,
        intro_url: Optional[str] = None,
        intro_upload=None,
        intro_duration: int = 0,
    ) -> VideoArtifact:
        _require_one(url, upload, "url", "file", required=True)
        has_intro = intro_duration > 0 and _require_one(intro_url, intro_upload, "intro_url", "intro", required=False)
        if not has_intro:
            intro_url = intro_upload = None
            intro_duration = 0

        staged: List[StagedInput] = []
        try:
            main = await self._stage(url, upload, "file")
            staged.append(main)
            intro = None
            if intro_url or intro_upload is not None:
                intro = await self._stage(intro_url, intro_upload, "intro")
                staged.append(intro)
            return await self.orchestrator.render_compressed(main, params, intro, intro_duration)
        finally:
            await self._release(staged)

    async def _stage(self, url: Optional[str], upload, field: str) -> StagedInput:
        if url:
            return await self.fetcher.fetch(url)
        return await stage_upload(upload, self.workspace, field=field)

    async def _release(self, staged: List[StagedInput]) -> None:
        for item in staged:
            await self.workspace.release(item.path)


def _require_one(url: Optional[str], upload, url_field: str, file_field: str, required: bool) -> bool:
    has_url = bool(url and url.strip())
    has_upload = upload is not None
    if has_url and has_upload:
        raise ValidationError(f'Provide either "{url_field}" or multipart "{file_field}", not both', field=url_field)
    if required and not (has_url or has_upload):
        raise MissingSourceError(f'Provide ?{url_field}=PNG/JPG or multipart "{file_field}"', field=url_field)
    return has_url or has_upload
