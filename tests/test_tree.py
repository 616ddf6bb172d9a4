"""Tests for depth bucketing and size aggregation."""

import pytest

from pynetstorage.models import NetStorageFile, RemoteEntry
from pynetstorage.sync.scanner import remote_walk
from pynetstorage.tree import aggregate, build_tree


def make_entry(parent, name, depth, type="file", size=None, root="/r"):
    path = f"{parent}/{name}"
    return RemoteEntry(
        path=path,
        parent=parent,
        relative_path=path[len(root) + 1 :],
        depth=depth,
        file=NetStorageFile(type=type, name=name, size=size),
    )


class TestAggregate:
    """Tests for aggregate."""

    @pytest.mark.asyncio
    async def test_sample_tree(self, sample_remote):
        entries = [e async for e in remote_walk(sample_remote, "/data")]

        result = aggregate(entries, root="/data")

        assert result.total_size == 35
        assert result.directory_size_map == {
            "/data": 35,
            "/data/nested": 25,
            "/data/nested/inner": 5,
        }
        assert [
            (bucket.depth, [e.relative_path for e in bucket.entries])
            for bucket in result.depth_buckets
        ] == [
            (0, ["a.txt", "nested"]),
            (1, ["nested/b.txt", "nested/inner"]),
            (2, ["nested/inner/c.txt"]),
        ]

    @pytest.mark.asyncio
    async def test_root_inferred_from_depth_zero_entry(self, sample_remote):
        entries = [e async for e in remote_walk(sample_remote, "/data/")]

        result = aggregate(entries)

        assert result.total_size == 35
        assert "/data" in result.directory_size_map

    def test_empty_walk(self):
        result = aggregate([], root="/empty/")

        assert result.depth_buckets == ()
        assert result.directory_size_map == {"/empty": 0}
        assert result.total_size == 0

    def test_empty_directories_are_listed_with_zero(self):
        entries = [
            make_entry("/r", "empty", 0, type="dir"),
            make_entry("/r", "f.bin", 0, size=7),
        ]

        result = aggregate(entries, root="/r")

        assert result.directory_size_map == {"/r": 7, "/r/empty": 0}

    def test_symlinks_and_missing_sizes_count_as_zero(self):
        entries = [
            make_entry("/r", "link", 0, type="symlink"),
            make_entry("/r", "unknown.bin", 0, size=None),
            make_entry("/r", "known.bin", 0, size=3),
        ]

        assert aggregate(entries, root="/r").total_size == 3

    def test_buckets_sorted_even_for_unordered_input(self):
        entries = [
            make_entry("/r/d", "deep.txt", 1, size=1),
            make_entry("/r", "d", 0, type="dir"),
        ]

        result = aggregate(entries, root="/r")

        assert [b.depth for b in result.depth_buckets] == [0, 1]
        assert result.directory_size_map["/r/d"] == 1


class TestBuildTree:
    """Tests for build_tree."""

    @pytest.mark.asyncio
    async def test_walks_and_aggregates(self, sample_remote):
        result = await build_tree(sample_remote, "/data")

        assert result.total_size == 35
        assert len(result.depth_buckets) == 3

    @pytest.mark.asyncio
    async def test_max_depth(self, sample_remote):
        result = await build_tree(sample_remote, "/data", max_depth=0)

        assert result.total_size == 10
        assert result.directory_size_map == {"/data": 10, "/data/nested": 0}
