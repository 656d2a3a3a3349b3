"""
Tests for the workspace manager
"""
import asyncio
import errno
from unittest.mock import patch

import aiofiles.os
import pytest

from storage.workspace import WorkspaceManager, artifact_filename, is_artifact_name
from tests.conftest import list_files


class TestArtifactNames:

    @pytest.mark.unit
    def test_artifact_filename(self):
        assert artifact_filename("abc123") == "reel-abc123.mp4"

    @pytest.mark.unit
    @pytest.mark.parametrize("name,expected", [
        ("reel-abc.mp4", True),
        ("reel-abc.MP4", True),
        ("reel-abc.mp4.part", False),
        ("notes.txt", False),
        ("intro.mp4", False),
        (".reel-abc.mp4.part", False),
    ])
    def test_is_artifact_name(self, name, expected):
        assert is_artifact_name(name) is expected


class TestPurge:

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_purge_removes_only_artifacts(self, workspace):
        await workspace.ensure_output_dir()
        for name in ("reel-one.mp4", "reel-two.mp4", "keep.txt", "other.mp4"):
            (workspace.output_dir / name).write_bytes(b"x")

        removed = await workspace.purge_artifacts()

        assert removed == 2
        assert list_files(workspace.output_dir) == ["keep.txt", "other.mp4"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_purge_creates_missing_directory(self, workspace):
        assert not workspace.output_dir.exists()
        assert await workspace.purge_artifacts() == 0
        assert workspace.output_dir.is_dir()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_purge_swallows_per_file_failures(self, workspace):
        await workspace.ensure_output_dir()
        for name in ("reel-a.mp4", "reel-b.mp4"):
            (workspace.output_dir / name).write_bytes(b"x")

        real_remove = aiofiles.os.remove

        async def flaky_remove(path, *args, **kwargs):
            if str(path).endswith("reel-a.mp4"):
                raise PermissionError(errno.EACCES, "denied")
            return await real_remove(path, *args, **kwargs)

        with patch("storage.workspace.aiofiles.os.remove", side_effect=flaky_remove):
            removed = await workspace.purge_artifacts()

        assert removed == 1
        assert list_files(workspace.output_dir) == ["reel-a.mp4"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_purge_records_metrics(self, tmp_path):
        counts = []

        class Recorder:
            def record_purge(self, removed):
                counts.append(removed)

        workspace = WorkspaceManager(tmp_path / "out", tmp_path / "tmp", metrics=Recorder())
        await workspace.ensure_output_dir()
        (workspace.output_dir / "reel-x.mp4").write_bytes(b"x")

        await workspace.purge_artifacts()
        assert counts == [1]


class TestTempFiles:

    @pytest.mark.unit
    def test_new_temp_paths_are_unique(self, workspace):
        first = workspace.new_temp_path(".png")
        second = workspace.new_temp_path(".png")
        assert first != second
        assert first.parent == workspace.temp_dir
        assert first.suffix == ".png"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_release_missing_file_is_silent(self, workspace):
        await workspace.release(workspace.temp_dir / "never-existed.png")
        await workspace.release(None)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_release_removes_file(self, workspace):
        await workspace.ensure_temp_dir()
        path = workspace.new_temp_path(".jpg")
        path.write_bytes(b"x")

        await workspace.release(path)
        assert not path.exists()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_scratch_removed_on_success_and_failure(self, workspace):
        async with workspace.scratch() as workdir:
            (workdir / "main.mp4").write_bytes(b"x")
            assert workdir.parent == workspace.temp_dir
        assert not workdir.exists()

        with pytest.raises(RuntimeError):
            async with workspace.scratch() as failed_dir:
                (failed_dir / "main.mp4").write_bytes(b"x")
                raise RuntimeError("encode blew up")
        assert not failed_dir.exists()
        assert list_files(workspace.temp_dir) == []


class TestPublish:

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_publish_replaces_previous_artifact(self, workspace):
        await workspace.ensure_output_dir()
        (workspace.output_dir / "reel-old.mp4").write_bytes(b"old")

        async with workspace.scratch() as workdir:
            source = workdir / "main.mp4"
            source.write_bytes(b"new")
            destination = await workspace.publish(source, "reel-new.mp4")

        assert destination == workspace.output_dir / "reel-new.mp4"
        assert destination.read_bytes() == b"new"
        assert list_files(workspace.output_dir) == ["reel-new.mp4"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_publish_rejects_non_artifact_names(self, workspace):
        with pytest.raises(ValueError):
            await workspace.publish(workspace.temp_dir / "x.mp4", "../escape.mp4")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_concurrent_publishes_leave_one_artifact(self, workspace):
        await workspace.ensure_temp_dir()

        async def publish_one(i):
            source = workspace.temp_dir / f"out-{i}.mp4"
            source.write_bytes(str(i).encode())
            return await workspace.publish(source, f"reel-{i}.mp4")

        published = await asyncio.gather(*(publish_one(i) for i in range(5)))

        survivors = list_files(workspace.output_dir)
        assert len(survivors) == 1
        assert survivors[0] in {p.name for p in published}

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_publish_across_filesystems(self, workspace):
        await workspace.ensure_temp_dir()
        source = workspace.temp_dir / "main.mp4"
        source.write_bytes(b"payload")

        real_replace = aiofiles.os.replace
        calls = []

        async def cross_device_once(src, dst, *args, **kwargs):
            calls.append((str(src), str(dst)))
            if len(calls) == 1:
                raise OSError(errno.EXDEV, "Invalid cross-device link")
            return await real_replace(src, dst, *args, **kwargs)

        with patch("storage.workspace.aiofiles.os.replace", side_effect=cross_device_once):
            destination = await workspace.publish(source, "reel-moved.mp4")

        assert destination.read_bytes() == b"payload"
        assert not source.exists()
        assert calls[1][0].endswith(".reel-moved.mp4.part")
        assert list_files(workspace.output_dir) == ["reel-moved.mp4"]
