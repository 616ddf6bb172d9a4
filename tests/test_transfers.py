"""Tests for bulk directory transfers."""

import pytest

from pynetstorage.exceptions import NetStorageValidationError
from pynetstorage.transfers import (
    SkippedTransfer,
    download_directory,
    find_all,
    remove_directory,
    summarize_skips,
    upload_directory,
    upload_missing,
)

from conftest import make_local_tree, read_tree, remote_contents


@pytest.fixture
def local_dir(tmp_path):
    return make_local_tree(
        tmp_path / "local",
        {"index.html": b"<html>", "css/site.css": b"body{}", "tmp/x.swp": b"swap"},
    )


class TestUploadDirectory:
    """Tests for upload_directory."""

    @pytest.mark.asyncio
    async def test_uploads_all_files(self, fake_client, local_dir):
        uploaded = []

        results = await upload_directory(
            fake_client, str(local_dir), "/site", on_upload=uploaded.append
        )

        assert len(results) == 3
        assert uploaded == results
        assert remote_contents(fake_client, "/site") == read_tree(local_dir)

    @pytest.mark.asyncio
    async def test_ignore_and_filter(self, fake_client, local_dir):
        skips = []

        results = await upload_directory(
            fake_client,
            str(local_dir),
            "/site",
            ignore=["tmp"],
            should_upload=lambda entry: entry.relative_path.endswith(".html"),
            on_skip=skips.append,
        )

        assert [r.remote_path for r in results] == ["/site/index.html"]
        assert [(s.remote_path, s.reason) for s in skips] == [
            ("/site/css/site.css", "filtered")
        ]

    @pytest.mark.asyncio
    async def test_no_overwrite(self, fake_client, local_dir):
        fake_client.add_file("/site/index.html", b"old")
        skips = []

        await upload_directory(
            fake_client, str(local_dir), "/site", overwrite=False, on_skip=skips.append
        )

        assert fake_client.files["/site/index.html"][0] == b"old"
        assert [s.reason for s in skips] == ["overwrite_false"]

    @pytest.mark.asyncio
    async def test_dry_run(self, fake_client, local_dir):
        skips = []

        results = await upload_directory(
            fake_client, str(local_dir), "/site", dry_run=True, on_skip=skips.append
        )

        assert results == []
        assert summarize_skips(skips) == {"dry_run": 3}
        assert fake_client.files == {}

    @pytest.mark.asyncio
    async def test_failures_are_reported(self, fake_client, local_dir):
        fake_client.fail_paths.add("/site/css/site.css")
        skips = []

        results = await upload_directory(
            fake_client, str(local_dir), "/site", on_skip=skips.append
        )

        assert len(results) == 2
        assert skips[0].reason == "error"
        assert skips[0].error is not None

    @pytest.mark.asyncio
    async def test_missing_local_directory(self, fake_client, tmp_path):
        with pytest.raises(NetStorageValidationError):
            await upload_directory(fake_client, str(tmp_path / "nope"), "/site")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("max_concurrency", [0, -1])
    async def test_rejects_non_positive_concurrency(
        self, fake_client, local_dir, max_concurrency
    ):
        with pytest.raises(NetStorageValidationError):
            await upload_directory(
                fake_client, str(local_dir), "/site", max_concurrency=max_concurrency
            )
        assert fake_client.files == {}


class TestDownloadDirectory:
    """Tests for download_directory."""

    @pytest.mark.asyncio
    async def test_downloads_tree(self, sample_remote, tmp_path):
        target = tmp_path / "out"

        results = await download_directory(sample_remote, "/data", str(target))

        assert len(results) == 3
        assert read_tree(target) == remote_contents(sample_remote, "/data")

    @pytest.mark.asyncio
    async def test_keeps_existing_files_by_default(self, sample_remote, tmp_path):
        target = make_local_tree(tmp_path / "out", {"a.txt": b"mine"})
        skips = []

        await download_directory(
            sample_remote, "/data", str(target), on_skip=skips.append
        )

        assert (target / "a.txt").read_bytes() == b"mine"
        assert [(s.remote_path, s.reason) for s in skips] == [("/data/a.txt", "exists")]

    @pytest.mark.asyncio
    async def test_overwrite(self, sample_remote, tmp_path):
        target = make_local_tree(tmp_path / "out", {"a.txt": b"mine"})

        await download_directory(sample_remote, "/data", str(target), overwrite=True)

        assert (target / "a.txt").read_bytes() == b"x" * 10

    @pytest.mark.asyncio
    async def test_should_download_and_dry_run(self, sample_remote, tmp_path):
        skips = []

        results = await download_directory(
            sample_remote,
            "/data",
            str(tmp_path / "out"),
            dry_run=True,
            should_download=lambda entry: entry.depth == 0,
            on_skip=skips.append,
        )

        assert results == []
        assert summarize_skips(skips) == {"dry_run": 1, "filtered": 2}
        assert sample_remote.calls_for("download") == []

    @pytest.mark.asyncio
    async def test_rejects_zero_concurrency(self, sample_remote, tmp_path):
        with pytest.raises(NetStorageValidationError):
            await download_directory(
                sample_remote, "/data", str(tmp_path / "out"), max_concurrency=0
            )


class TestRemoveDirectory:
    """Tests for remove_directory."""

    @pytest.mark.asyncio
    async def test_removes_deepest_first(self, sample_remote):
        removed = []

        await remove_directory(sample_remote, "/data", on_remove=removed.append)

        assert sample_remote.files == {}
        assert sample_remote.calls_for("rm") == [
            "/data/nested/inner/c.txt",
            "/data/nested/b.txt",
            "/data/a.txt",
        ]
        # Implicit directories are never rmdir'd
        assert sample_remote.calls_for("rmdir") == ["/data"]
        assert removed.index("/data/nested/inner/c.txt") < removed.index(
            "/data/nested/b.txt"
        )

    @pytest.mark.asyncio
    async def test_explicit_directories_are_removed(self, sample_remote):
        sample_remote.add_dir("/data")
        sample_remote.add_dir("/data/nested")
        removed = []

        await remove_directory(sample_remote, "/data", on_remove=removed.append)

        assert sample_remote.calls_for("rmdir") == ["/data/nested", "/data"]
        assert sample_remote.dirs == set()
        assert removed[-1] == "/data"

    @pytest.mark.asyncio
    async def test_dry_run(self, sample_remote):
        skips = []

        await remove_directory(sample_remote, "/data", dry_run=True, on_skip=skips.append)

        assert len(sample_remote.files) == 3
        assert summarize_skips(skips) == {"dry_run": 5}

    @pytest.mark.asyncio
    async def test_errors_are_reported(self, sample_remote):
        sample_remote.fail_paths.add("/data/a.txt")
        skips = []

        await remove_directory(sample_remote, "/data", on_skip=skips.append)

        assert [s.remote_path for s in skips] == ["/data/a.txt"]
        assert list(sample_remote.files) == ["/data/a.txt"]

    @pytest.mark.asyncio
    async def test_rejects_zero_concurrency(self, sample_remote):
        with pytest.raises(NetStorageValidationError):
            await remove_directory(sample_remote, "/data", max_concurrency=0)
        assert len(sample_remote.files) == 3


class TestHelpers:
    """Tests for find_all, upload_missing and summarize_skips."""

    @pytest.mark.asyncio
    async def test_find_all(self, sample_remote):
        found = await find_all(sample_remote, "/data", lambda e: e.file.name.startswith("b"))

        assert [e.path for e in found] == ["/data/nested/b.txt"]

    @pytest.mark.asyncio
    async def test_upload_missing(self, fake_client, tmp_path):
        local = tmp_path / "f.txt"
        local.write_bytes(b"new")

        first = await upload_missing(fake_client, str(local), "/f.txt")
        local.write_bytes(b"changed")
        second = await upload_missing(fake_client, str(local), "/f.txt")

        assert first.code == 200
        assert second is None
        assert fake_client.files["/f.txt"][0] == b"new"

    def test_summarize_skips(self):
        skips = [
            SkippedTransfer("/a", "error"),
            SkippedTransfer("/b", "exists"),
            SkippedTransfer("/c", "error"),
        ]
        assert summarize_skips(skips) == {"error": 2, "exists": 1}
