"""Depth bucketing and directory size aggregation for remote walks."""

from collections.abc import Iterable
from typing import TYPE_CHECKING, Optional

from .models import DepthBucket, RemoteEntry, TreeResult
from .sync.scanner import IncludePredicate, remote_walk
from .utils import join_remote_path, strip_trailing_slashes

if TYPE_CHECKING:
    from .api import NetStorageClient


def _entry_size(entry: RemoteEntry) -> int:
    if entry.file.is_file:
        return entry.file.size or 0
    return 0


def aggregate(entries: Iterable[RemoteEntry], root: Optional[str] = None) -> TreeResult:
    """Group walk entries by depth and total file sizes per directory.

    Every file's size is added to each of its ancestor directories up to and
    including the walk root, so a directory's total covers all descendants.
    Directories and symlinks contribute 0 but still appear in the size map.

    Args:
        entries: A fully materialized remote walk
        root: Walk root (inferred from a depth-0 entry when omitted)

    Returns:
        TreeResult with ascending depth buckets, the size map and root total

    Examples:
        >>> result = aggregate(entries, root="/data")
        >>> result.directory_size_map["/data"] == result.total_size
        True
    """
    entries = list(entries)
    if root is None:
        root = next((e.parent for e in entries if e.depth == 0), "")
    root = strip_trailing_slashes(root)

    buckets: dict[int, list[RemoteEntry]] = {}
    sizes: dict[str, int] = {root: 0}

    for entry in entries:
        buckets.setdefault(entry.depth, []).append(entry)

        if entry.file.is_dir:
            sizes.setdefault(entry.path, 0)

        size = _entry_size(entry)
        ancestor = root
        sizes[ancestor] = sizes.get(ancestor, 0) + size
        # Walk down from the root to the entry's parent
        for segment in entry.relative_path.split("/")[:-1]:
            ancestor = join_remote_path(ancestor, segment)
            sizes[ancestor] = sizes.get(ancestor, 0) + size

    return TreeResult(
        depth_buckets=tuple(
            DepthBucket(depth=depth, entries=tuple(buckets[depth]))
            for depth in sorted(buckets)
        ),
        directory_size_map=sizes,
        total_size=sizes[root],
    )


async def build_tree(
    client: "NetStorageClient",
    path: str,
    max_depth: Optional[int] = None,
    include: Optional[IncludePredicate] = None,
) -> TreeResult:
    """Walk a remote directory and aggregate the result."""
    entries = [
        entry
        async for entry in remote_walk(
            client, path, max_depth=max_depth, include=include
        )
    ]
    return aggregate(entries, root=path)
