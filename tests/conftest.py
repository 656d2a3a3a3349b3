"""
Test configuration and fixtures
"""
import os
import shutil
import tempfile
from pathlib import Path
from typing import Callable, Dict, Optional

_TEST_ROOT = Path(tempfile.mkdtemp(prefix="reelcast-tests-"))
os.environ.setdefault("VIDEO_DIR", str(_TEST_ROOT / "videos"))
os.environ.setdefault("TEMP_DIR", str(_TEST_ROOT / "tmp"))
os.environ.setdefault("MAX_IMAGE_BYTES", str(64 * 1024))

import httpx
import pytest
from fastapi.testclient import TestClient

from api.config import settings
from api.dependencies import get_reel_service
from api.main import app
from api.services.reel_service import ReelService
from storage.workspace import WorkspaceManager
from tests.mocks.ffmpeg import MockEncoder
from worker.fetcher import StreamedFetcher
from worker.processors.video import EncodeOrchestrator
from worker.utils.ffmpeg import baseline_profile, compressed_profile

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 256
JPEG_BYTES = b"\xff\xd8\xff\xe0" + b"\x00" * 256


class FakeOrigin:
    """
    Stand-in for remote image servers, routed through httpx.MockTransport.

    Register responses per URL path; every request is recorded.
    """

    def __init__(self):
        self.routes: Dict[str, Callable[[httpx.Request], httpx.Response]] = {}
        self.requests = []

    def add(self, path: str, body: bytes = PNG_BYTES, content_type: Optional[str] = "image/png",
            status: int = 200, headers: Optional[Dict[str, str]] = None) -> None:
        response_headers = dict(headers or {})
        if content_type:
            response_headers["content-type"] = content_type
        self.routes[path] = lambda request: httpx.Response(status, headers=response_headers, content=body)

    def add_handler(self, path: str, handler: Callable[[httpx.Request], httpx.Response]) -> None:
        self.routes[path] = handler

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self.routes.get(request.url.path)
        if handler is None:
            return httpx.Response(404, text="not found")
        return handler(request)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


def list_files(directory: Path):
    if not directory.exists():
        return []
    return sorted(p.name for p in directory.iterdir())


@pytest.fixture
def origin():
    return FakeOrigin()


@pytest.fixture
def workspace(tmp_path):
    return WorkspaceManager(tmp_path / "videos", tmp_path / "tmp")


@pytest.fixture
def mock_encoder():
    return MockEncoder()


@pytest.fixture
def test_profiles():
    return {
        "baseline": baseline_profile(128),
        "compressed": compressed_profile(
            codec="libx264", crf=26, preset="slow", maxrate_kbps=2500,
            bufsize_kbps=5000, keyint=240, audio_bitrate_kbps=64,
        ),
    }


@pytest.fixture
def orchestrator(mock_encoder, workspace, test_profiles):
    return EncodeOrchestrator(
        mock_encoder,
        workspace,
        baseline=test_profiles["baseline"],
        compressed=test_profiles["compressed"],
    )


@pytest.fixture
def app_workspace():
    """Workspace on the configured directories, emptied around each test."""
    for directory in (settings.VIDEO_DIR, settings.TEMP_DIR):
        shutil.rmtree(directory, ignore_errors=True)
        directory.mkdir(parents=True, exist_ok=True)
    yield WorkspaceManager(settings.VIDEO_DIR, settings.TEMP_DIR)
    for directory in (settings.VIDEO_DIR, settings.TEMP_DIR):
        shutil.rmtree(directory, ignore_errors=True)


@pytest.fixture
def service_factory(app_workspace, mock_encoder, origin, test_profiles):
    def build(encoder=None):
        fetcher = StreamedFetcher(
            app_workspace,
            max_bytes=settings.MAX_IMAGE_BYTES,
            timeout=settings.download_timeout_seconds,
            max_redirects=settings.MAX_REDIRECTS,
            transport=origin.transport,
        )
        orchestrator = EncodeOrchestrator(
            encoder or mock_encoder,
            app_workspace,
            baseline=test_profiles["baseline"],
            compressed=test_profiles["compressed"],
        )
        return ReelService(settings, fetcher, orchestrator, app_workspace)
    return build


@pytest.fixture
def client(service_factory):
    """Test client wired to a fake origin and the mock encoder."""
    service = service_factory()
    app.dependency_overrides[get_reel_service] = lambda: service
    try:
        yield TestClient(app, raise_server_exceptions=False)
    finally:
        app.dependency_overrides.clear()
