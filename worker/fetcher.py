"""
Content fetcher: pulls an untrusted image into local temporary storage.

Two strategies share one contract. Both validate the response headers before
any byte touches the disk, enforce the byte ceiling on the declared length and
on the bytes actually received, and remove any partial file on failure.
"""
import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import aiofiles
import httpx
import structlog

from api.utils.error_handlers import FetchError, ReelError, SizeLimitError
from api.utils.validators import resolve_image_extension, validate_source_url, validate_upload_filename
from storage.workspace import WorkspaceManager

logger = structlog.get_logger()

USER_AGENT = "reelcast-fetcher/1.0"


@dataclass
class StagedInput:
    """A validated local copy of a source image."""

    path: Path
    extension: str
    size: int
    origin: str


class ContentFetcher(ABC):
    """Fetch a remote image into the workspace temp namespace."""

    strategy = "base"

    def __init__(
        self,
        workspace: WorkspaceManager,
        max_bytes: int,
        timeout: float,
        max_redirects: int,
        chunk_size: int = 64 * 1024,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        metrics=None,
    ):
        self.workspace = workspace
        self.max_bytes = max_bytes
        self.timeout = timeout
        self.max_redirects = max_redirects
        self.chunk_size = chunk_size
        self.transport = transport
        self.metrics = metrics

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            follow_redirects=True,
            max_redirects=self.max_redirects,
            timeout=httpx.Timeout(self.timeout),
            transport=self.transport,
            headers={"User-Agent": USER_AGENT, "Accept": "image/png,image/jpeg;q=0.9,*/*;q=0.1"},
        )

    async def fetch(self, url: str) -> StagedInput:
        url = validate_source_url(url)
        await self.workspace.ensure_temp_dir()
        try:
            # bounds the whole fetch; httpx timeouts only bound each read
            async with asyncio.timeout(self.timeout):
                async with self._client() as client:
                    async with client.stream("GET", url) as response:
                        extension = self._check_headers(url, response)
                        path = self.workspace.new_temp_path(extension)
                        try:
                            size = await self._transfer(response, path)
                        except BaseException:
                            await self.workspace.release(path)
                            raise
        except SizeLimitError as e:
            self._record("too_large")
            logger.warning("Source exceeds size limit", url=url, bytes=e.observed, limit=e.limit, declared=e.declared)
            raise
        except FetchError:
            self._record("error")
            raise
        except ReelError:
            self._record("rejected")
            raise
        except httpx.TooManyRedirects as e:
            self._record("error")
            raise FetchError(f"Fetch failed: more than {self.max_redirects} redirects", url=url) from e
        except (httpx.TimeoutException, TimeoutError) as e:
            self._record("error")
            raise FetchError(f"Fetch failed: timed out after {self.timeout:g}s", url=url) from e
        except httpx.HTTPError as e:
            self._record("error")
            raise FetchError(f"Fetch failed: {type(e).__name__}: {e}", url=url) from e

        self._record("ok", size)
        logger.info("Source staged", url=url, strategy=self.strategy, bytes=size, extension=extension)
        return StagedInput(path=path, extension=extension, size=size, origin="url")

    def _check_headers(self, url: str, response: httpx.Response) -> str:
        if not response.is_success:
            raise FetchError(f"Fetch failed: {response.status_code} {response.reason_phrase}", url=url)

        # extension fallback follows the requested URL, not the redirect target
        extension = resolve_image_extension(response.headers.get("content-type"), url)

        declared = response.headers.get("content-length")
        if declared is not None:
            try:
                declared_size = int(declared)
            except ValueError:
                declared_size = None
            if declared_size is not None and declared_size > self.max_bytes:
                raise SizeLimitError(declared_size, self.max_bytes, declared=True)
        return extension

    def _record(self, outcome: str, size: int = 0) -> None:
        if self.metrics is not None:
            self.metrics.record_fetch(self.strategy, outcome, size)

    @abstractmethod
    async def _transfer(self, response: httpx.Response, path: Path) -> int:
        """Move the body to path and return the number of bytes written."""
        pass


class BufferedFetcher(ContentFetcher):
    """Read the whole body into memory, then write it out in one go."""

    strategy = "buffered"

    async def _transfer(self, response: httpx.Response, path: Path) -> int:
        body = bytearray()
        async for chunk in response.aiter_bytes(self.chunk_size):
            body.extend(chunk)
            if len(body) > self.max_bytes:
                raise SizeLimitError(len(body), self.max_bytes)

        async with aiofiles.open(path, "wb") as f:
            await f.write(bytes(body))
        return len(body)


class StreamedFetcher(ContentFetcher):
    """Pipe chunks straight to disk, aborting the transfer once over the cap."""

    strategy = "streamed"

    async def _transfer(self, response: httpx.Response, path: Path) -> int:
        received = 0
        async with aiofiles.open(path, "wb") as f:
            async for chunk in response.aiter_bytes(self.chunk_size):
                received += len(chunk)
                if received > self.max_bytes:
                    # leaving the stream context closes the connection mid-body
                    raise SizeLimitError(received, self.max_bytes)
                await f.write(chunk)
        return received


FETCHERS = {
    BufferedFetcher.strategy: BufferedFetcher,
    StreamedFetcher.strategy: StreamedFetcher,
}


def create_fetcher(
    strategy: str,
    workspace: WorkspaceManager,
    max_bytes: int,
    timeout: float,
    max_redirects: int,
    chunk_size: int = 64 * 1024,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    metrics=None,
) -> ContentFetcher:
    try:
        fetcher_cls = FETCHERS[strategy]
    except KeyError:
        raise ValueError(f"Unknown fetch strategy: {strategy}")
    return fetcher_cls(
        workspace,
        max_bytes=max_bytes,
        timeout=timeout,
        max_redirects=max_redirects,
        chunk_size=chunk_size,
        transport=transport,
        metrics=metrics,
    )


async def stage_upload(upload, workspace: WorkspaceManager, field: str = "file", chunk_size: int = 1024 * 1024) -> StagedInput:
    """Materialize an uploaded file as a staged input; only the filename is checked."""
    extension = validate_upload_filename(getattr(upload, "filename", None), field=field)
    await workspace.ensure_temp_dir()
    path = workspace.new_temp_path(extension, prefix="upload-")

    size = 0
    try:
        async with aiofiles.open(path, "wb") as f:
            while chunk := await upload.read(chunk_size):
                await f.write(chunk)
                size += len(chunk)
    except BaseException:
        await workspace.release(path)
        raise

    logger.info("Upload staged", filename=upload.filename, bytes=size, extension=extension)
    return StagedInput(path=path, extension=extension, size=size, origin="upload")
