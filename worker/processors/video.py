"""
Encode orchestrator: turns a staged still image into one published MP4 artifact.
"""
import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
from uuid import uuid4

import structlog

from api.utils.error_handlers import EncodeError
from storage.workspace import WorkspaceManager, artifact_filename
from worker.fetcher import StagedInput
from worker.utils.ffmpeg import (
    ConcatJob,
    EncodeProfile,
    Encoder,
    FFmpegError,
    StillClipJob,
    build_fit_and_pad,
)

logger = structlog.get_logger()


@dataclass(frozen=True)
class RenderParams:
    duration: int
    fps: int
    width: int
    height: int


@dataclass
class VideoArtifact:
    """A finished, published video."""

    id: str
    filename: str
    path: Path
    public_path: str
    profile: str
    duration: int
    fps: int
    width: int
    height: int
    intro_duration: int = 0

    @property
    def total_duration(self) -> int:
        return self.duration + self.intro_duration


class EncodeOrchestrator:
    """
    Builds the clip jobs for a render, runs them through an Encoder and hands the
    result to the workspace for publication.

    Every clip of one render shares the same filter stages and profile, which is
    what makes stream-copy concatenation of an intro and main clip valid.
    Intermediate files live in a scratch directory that is removed on every exit
    path; only the final file is moved into the output directory.
    """

    def __init__(
        self,
        encoder: Encoder,
        workspace: WorkspaceManager,
        baseline: EncodeProfile,
        compressed: EncodeProfile,
        background_color: str = "black",
        public_prefix: str = "/videos",
        metrics=None,
    ):
        self.encoder = encoder
        self.workspace = workspace
        self.baseline = baseline
        self.compressed = compressed
        self.background_color = background_color
        self.public_prefix = public_prefix.rstrip("/")
        self.metrics = metrics

    async def render_baseline(self, staged: StagedInput, params: RenderParams) -> VideoArtifact:
        return await self._render(self.baseline, staged, params)

    async def render_compressed(
        self,
        staged: StagedInput,
        params: RenderParams,
        intro: Optional[StagedInput] = None,
        intro_duration: int = 0,
    ) -> VideoArtifact:
        if intro is None or intro_duration <= 0:
            intro, intro_duration = None, 0
        return await self._render(self.compressed, staged, params, intro, intro_duration)

    async def _render(
        self,
        profile: EncodeProfile,
        staged: StagedInput,
        params: RenderParams,
        intro: Optional[StagedInput] = None,
        intro_duration: int = 0,
    ) -> VideoArtifact:
        self._check_input(staged)
        if intro is not None:
            self._check_input(intro)

        artifact_id = uuid4().hex
        filename = artifact_filename(artifact_id)
        stages = build_fit_and_pad(params.width, params.height, params.fps, self.background_color)
        log = logger.bind(artifact_id=artifact_id, profile=profile.name)
        log.info(
            "Encoding started",
            duration=params.duration,
            fps=params.fps,
            width=params.width,
            height=params.height,
            intro_duration=intro_duration,
        )

        started = time.monotonic()
        try:
            async with self.workspace.scratch() as workdir:
                main_clip = workdir / "main.mp4"
                await self.encoder.encode(
                    StillClipJob(staged.path, main_clip, params.duration, stages, profile)
                )
                final = main_clip

                if intro is not None:
                    intro_clip = workdir / "intro.mp4"
                    await self.encoder.encode(
                        StillClipJob(intro.path, intro_clip, intro_duration, stages, profile)
                    )
                    final = workdir / "joined.mp4"
                    await self.encoder.encode(
                        ConcatJob([intro_clip, main_clip], final, workdir / "segments.txt")
                    )

                path = await self.workspace.publish(final, filename)
        except FFmpegError as e:
            self._record(profile, "error")
            log.error("Encoding failed", error=str(e))
            raise EncodeError(str(e), artifact_id=artifact_id) from e
        except OSError as e:
            self._record(profile, "error")
            log.error("Publishing artifact failed", error=str(e))
            raise EncodeError(f"Failed to store artifact: {e.strerror or e}", artifact_id=artifact_id) from e

        elapsed = time.monotonic() - started
        self._record(profile, "ok", elapsed)
        log.info("Encoding finished", seconds=round(elapsed, 3), filename=filename)

        return VideoArtifact(
            id=artifact_id,
            filename=filename,
            path=path,
            public_path=f"{self.public_prefix}/{filename}",
            profile=profile.name,
            duration=params.duration,
            fps=params.fps,
            width=params.width,
            height=params.height,
            intro_duration=intro_duration,
        )

    @staticmethod
    def _check_input(staged: StagedInput) -> None:
        path = Path(staged.path)
        if not path.is_file() or not os.access(path, os.R_OK):
            raise EncodeError(f"Input file missing or unreadable: {path.name}")

    def _record(self, profile: EncodeProfile, outcome: str, seconds: float = 0.0) -> None:
        if self.metrics is not None:
            self.metrics.record_encode(profile.name, outcome, seconds)
