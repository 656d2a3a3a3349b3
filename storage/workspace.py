"""
Temporary-file and output-directory lifecycle
"""
import asyncio
import errno
import shutil
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional, Union
from uuid import uuid4

import aiofiles.os
import structlog

logger = structlog.get_logger()

ARTIFACT_PREFIX = "reel-"
ARTIFACT_SUFFIX = ".mp4"


def artifact_filename(artifact_id: str) -> str:
    return f"{ARTIFACT_PREFIX}{artifact_id}{ARTIFACT_SUFFIX}"


def is_artifact_name(name: str) -> bool:
    return name.startswith(ARTIFACT_PREFIX) and name.lower().endswith(ARTIFACT_SUFFIX)


class WorkspaceManager:
    """
    Owns the temp namespace and the public output directory.

    The output directory is a single-writer resource: purging old artifacts and
    moving a new one in happen under one lock, so concurrent requests cannot
    delete each other's freshly published artifact.
    """

    def __init__(self, output_dir: Path, temp_dir: Path, metrics=None):
        self.output_dir = Path(output_dir)
        self.temp_dir = Path(temp_dir)
        self.metrics = metrics
        self._lock = asyncio.Lock()

    async def ensure_output_dir(self) -> Path:
        await aiofiles.os.makedirs(self.output_dir, exist_ok=True)
        return self.output_dir

    async def ensure_temp_dir(self) -> Path:
        await aiofiles.os.makedirs(self.temp_dir, exist_ok=True)
        return self.temp_dir

    def new_temp_path(self, suffix: str = "", prefix: str = "stage-") -> Path:
        return self.temp_dir / f"{prefix}{uuid4().hex}{suffix}"

    async def purge_artifacts(self) -> int:
        """Delete every finished artifact. Never raises for per-file failures."""
        await self.ensure_output_dir()

        try:
            names = await aiofiles.os.listdir(self.output_dir)
        except OSError as e:
            logger.error("Failed to list output directory", output_dir=str(self.output_dir), error=str(e))
            return 0

        removed = 0
        for name in names:
            if not is_artifact_name(name):
                continue
            path = self.output_dir / name
            try:
                await aiofiles.os.remove(path)
                removed += 1
            except FileNotFoundError:
                pass
            except OSError as e:
                logger.warning("Failed to purge artifact", path=str(path), error=str(e))

        if removed:
            logger.info("Purged previous artifacts", removed=removed)
        if self.metrics is not None:
            self.metrics.record_purge(removed)
        return removed

    async def release(self, path: Optional[Union[str, Path]]) -> None:
        """Best-effort delete of a staged input or intermediate file."""
        if not path:
            return
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning("Failed to release temp file", path=str(path), error=str(e))

    @asynccontextmanager
    async def scratch(self) -> AsyncIterator[Path]:
        """Private per-request directory for intermediate encode files."""
        await self.ensure_temp_dir()
        workdir = self.temp_dir / f"reel-work-{uuid4().hex}"
        await aiofiles.os.mkdir(workdir)
        try:
            yield workdir
        finally:
            try:
                await asyncio.to_thread(shutil.rmtree, workdir)
            except FileNotFoundError:
                pass
            except OSError as e:
                logger.warning("Failed to remove scratch directory", path=str(workdir), error=str(e))

    async def publish(self, source: Path, filename: str) -> Path:
        """Replace whatever is in the output directory with one finished artifact."""
        if not is_artifact_name(filename):
            raise ValueError(f"Not an artifact filename: {filename}")

        async with self._lock:
            await self.purge_artifacts()
            destination = self.output_dir / filename
            await self._move_into(Path(source), destination)

        logger.info("Artifact published", filename=filename)
        return destination

    async def _move_into(self, source: Path, destination: Path) -> None:
        try:
            await aiofiles.os.replace(source, destination)
            return
        except OSError as e:
            if e.errno != errno.EXDEV:
                raise

        # Cross-device: copy under a hidden name, then rename into place
        partial = destination.with_name(f".{destination.name}.part")
        try:
            await asyncio.to_thread(shutil.copyfile, source, partial)
            await aiofiles.os.replace(partial, destination)
        except BaseException:
            await self.release(partial)
            raise
        await self.release(source)
