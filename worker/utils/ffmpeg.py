"""
FFmpeg encoder: filter pipelines, codec profiles and subprocess execution.
"""
import asyncio
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union
import aiofiles
import structlog

logger = structlog.get_logger()


class FFmpegError(Exception):
    """Base exception for FFmpeg operations."""
    pass


class FFmpegCommandError(FFmpegError):
    """Exception for FFmpeg command building errors."""
    pass


class FFmpegExecutionError(FFmpegError):
    """The encoder process exited unsuccessfully."""

    def __init__(self, message: str, returncode: Optional[int] = None):
        self.returncode = returncode
        super().__init__(message)


class FFmpegTimeoutError(FFmpegError):
    """Exception for FFmpeg timeout errors."""
    pass


# ---------------------------------------------------------------------------
# Filter pipeline
# ---------------------------------------------------------------------------

_FILTER_SPECIALS = re.compile(r"([\\':,;\[\]=])")


def _escape_filter_value(value: object) -> str:
    text = str(value)
    if any(c in text for c in "\n\r"):
        raise FFmpegCommandError(f"Filter value contains a line break: {text!r}")
    return _FILTER_SPECIALS.sub(r"\\\1", text)


@dataclass(frozen=True)
class FilterStage:
    """One named filter with ordered options, e.g. scale=w=720:h=1280."""

    name: str
    options: Tuple[Tuple[str, object], ...] = ()
    # options whose values are ffmpeg expressions and must not be escaped
    expressions: Tuple[str, ...] = ()

    def render(self) -> str:
        if not re.fullmatch(r"[a-z0-9_]+", self.name):
            raise FFmpegCommandError(f"Invalid filter name: {self.name!r}")
        if not self.options:
            return self.name
        parts = []
        for key, value in self.options:
            rendered = str(value) if key in self.expressions else _escape_filter_value(value)
            parts.append(f"{key}={rendered}")
        return f"{self.name}={':'.join(parts)}"


def render_filter_chain(stages: Sequence[FilterStage]) -> str:
    return ",".join(stage.render() for stage in stages)


def build_fit_and_pad(width: int, height: int, fps: int, color: str = "black") -> List[FilterStage]:
    """Scale into the box without exceeding it, pad to exact size, resample fps."""
    return [
        FilterStage("scale", (("w", width), ("h", height), ("force_original_aspect_ratio", "decrease"))),
        FilterStage(
            "pad",
            (("w", width), ("h", height), ("x", "(ow-iw)/2"), ("y", "(oh-ih)/2"), ("color", color)),
            expressions=("x", "y"),
        ),
        FilterStage("fps", (("fps", fps),)),
    ]


# ---------------------------------------------------------------------------
# Codec profiles and jobs
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class EncodeProfile:
    """Codec parameter set shared by every clip of one render."""

    name: str
    video_codec: str = "libx264"
    pixel_format: str = "yuv420p"
    crf: Optional[int] = None
    preset: Optional[str] = None
    maxrate_kbps: Optional[int] = None
    bufsize_kbps: Optional[int] = None
    keyint: Optional[int] = None
    audio_codec: str = "aac"
    audio_bitrate_kbps: int = 128
    audio_layout: str = "stereo"
    sample_rate: int = 44100
    faststart: bool = True

    def video_args(self) -> List[str]:
        args = ["-c:v", self.video_codec]
        if self.preset:
            args += ["-preset", self.preset]
        if self.crf is not None:
            args += ["-crf", str(self.crf)]
        if self.maxrate_kbps:
            args += ["-maxrate", f"{self.maxrate_kbps}k"]
        if self.bufsize_kbps:
            args += ["-bufsize", f"{self.bufsize_kbps}k"]
        if self.keyint:
            args += ["-g", str(self.keyint)]
        if self.video_codec == "libx265":
            args += ["-tag:v", "hvc1"]
        args += ["-pix_fmt", self.pixel_format]
        return args

    def audio_args(self) -> List[str]:
        channels = "1" if self.audio_layout == "mono" else "2"
        return ["-c:a", self.audio_codec, "-b:a", f"{self.audio_bitrate_kbps}k", "-ac", channels]

    def silence_source(self) -> str:
        return f"anullsrc=channel_layout={self.audio_layout}:sample_rate={self.sample_rate}"


def baseline_profile(audio_bitrate_kbps: int = 128) -> EncodeProfile:
    return EncodeProfile(name="baseline", audio_bitrate_kbps=audio_bitrate_kbps)


def compressed_profile(
    codec: str,
    crf: int,
    preset: str,
    maxrate_kbps: int,
    bufsize_kbps: int,
    keyint: int,
    audio_bitrate_kbps: int,
) -> EncodeProfile:
    return EncodeProfile(
        name="compressed",
        video_codec=codec,
        crf=crf,
        preset=preset,
        maxrate_kbps=maxrate_kbps,
        bufsize_kbps=bufsize_kbps,
        keyint=keyint,
        audio_bitrate_kbps=audio_bitrate_kbps,
        audio_layout="mono",
    )


@dataclass
class StillClipJob:
    """Hold one still image for `duration` seconds with a silent track."""

    image: Path
    output: Path
    duration: int
    stages: List[FilterStage]
    profile: EncodeProfile

    @property
    def inputs(self) -> List[Path]:
        return [self.image]


@dataclass
class ConcatJob:
    """Join already-encoded, parameter-identical segments without re-encoding."""

    segments: List[Path]
    output: Path
    list_file: Path
    faststart: bool = True

    @property
    def inputs(self) -> List[Path]:
        return list(self.segments)


EncodeJob = Union[StillClipJob, ConcatJob]


def escape_concat_path(path: Path) -> str:
    """Quote a path for a concat demuxer `file '...'` directive."""
    text = path.as_posix()
    if "\n" in text or "\r" in text:
        raise FFmpegCommandError(f"Path contains newline characters: {text!r}")
    return text.replace("'", "'\\''")


def concat_list_text(segments: Iterable[Path]) -> str:
    return "".join(f"file '{escape_concat_path(Path(p).resolve())}'\n" for p in segments)


class FFmpegCommandBuilder:
    """Turn encode jobs into ffmpeg argument vectors."""

    def __init__(self, ffmpeg_path: str = "ffmpeg"):
        self.ffmpeg_path = ffmpeg_path

    def build(self, job: EncodeJob) -> List[str]:
        if isinstance(job, StillClipJob):
            return self.build_still_clip(job)
        if isinstance(job, ConcatJob):
            return self.build_concat(job)
        raise FFmpegCommandError(f"Unsupported job type: {type(job).__name__}")

    def build_still_clip(self, job: StillClipJob) -> List[str]:
        if job.duration <= 0:
            raise FFmpegCommandError(f"Clip duration must be positive, got {job.duration}")
        profile = job.profile
        cmd = [self.ffmpeg_path, "-hide_banner", "-nostdin", "-y"]
        cmd += ["-loop", "1", "-i", str(job.image)]
        cmd += ["-f", "lavfi", "-i", profile.silence_source()]
        cmd += ["-map", "0:v:0", "-map", "1:a:0"]
        cmd += ["-vf", render_filter_chain(job.stages)]
        cmd += profile.video_args()
        cmd += profile.audio_args()
        cmd += ["-t", str(job.duration), "-shortest"]
        if profile.faststart:
            cmd += ["-movflags", "+faststart"]
        cmd.append(str(job.output))
        return cmd

    def build_concat(self, job: ConcatJob) -> List[str]:
        if len(job.segments) < 2:
            raise FFmpegCommandError("Concatenation needs at least two segments")
        cmd = [self.ffmpeg_path, "-hide_banner", "-nostdin", "-y"]
        cmd += ["-f", "concat", "-safe", "0", "-i", str(job.list_file)]
        cmd += ["-c", "copy"]
        if job.faststart:
            cmd += ["-movflags", "+faststart"]
        cmd.append(str(job.output))
        return cmd


# ---------------------------------------------------------------------------
# Encoders
# ---------------------------------------------------------------------------

class Encoder(ABC):
    """Applies an encode job to its input files and produces its output file."""

    @abstractmethod
    async def encode(self, job: EncodeJob) -> None:
        """Produce job.output or raise an FFmpegError."""
        pass


class FFmpegEncoder(Encoder):
    """Encoder backed by an ffmpeg subprocess per job."""

    def __init__(self, ffmpeg_path: str = "ffmpeg", timeout: Optional[float] = None, error_lines: int = 10):
        self.builder = FFmpegCommandBuilder(ffmpeg_path)
        self.timeout = timeout if timeout and timeout > 0 else None
        self.error_lines = error_lines

    async def encode(self, job: EncodeJob) -> None:
        if isinstance(job, ConcatJob):
            async with aiofiles.open(job.list_file, "w", encoding="utf-8") as f:
                await f.write(concat_list_text(job.segments))

        cmd = self.builder.build(job)
        logger.info("Running ffmpeg", job=type(job).__name__, output=job.output.name)
        logger.debug("ffmpeg command", command=" ".join(cmd))

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise FFmpegExecutionError(f"ffmpeg executable not found: {self.builder.ffmpeg_path}") from e

        try:
            if self.timeout:
                _, stderr = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
            else:
                _, stderr = await process.communicate()
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            raise FFmpegTimeoutError(f"ffmpeg timed out after {self.timeout:g} seconds")
        except asyncio.CancelledError:
            process.kill()
            await process.wait()
            raise

        if process.returncode != 0:
            raise FFmpegExecutionError(
                self._error_message(process.returncode, stderr, job),
                returncode=process.returncode,
            )
        if not job.output.exists():
            raise FFmpegExecutionError("ffmpeg reported success but produced no output file")

    def _error_message(self, returncode: int, stderr: bytes, job: EncodeJob) -> str:
        lines = [line for line in stderr.decode("utf-8", errors="replace").splitlines() if line.strip()]
        text = "\n".join(lines[-self.error_lines:]) or "no diagnostic output"
        return f"ffmpeg failed with code {returncode}: {redact_paths(text, _job_paths(job))}"


def _job_paths(job: EncodeJob) -> List[Path]:
    paths = list(job.inputs) + [job.output]
    if isinstance(job, ConcatJob):
        paths.append(job.list_file)
    return paths


def redact_paths(text: str, paths: Iterable[Path]) -> str:
    """Replace absolute paths with bare file names so errors never expose layout."""
    replacements: Dict[str, str] = {}
    for path in paths:
        path = Path(path)
        replacements[str(path)] = path.name
        replacements[path.as_posix()] = path.name
        try:
            replacements[str(path.resolve())] = path.name
        except OSError:
            pass
    for full in sorted(replacements, key=len, reverse=True):
        text = text.replace(full, replacements[full])
    return text
