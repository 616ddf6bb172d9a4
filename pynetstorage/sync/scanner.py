"""Remote and local directory walkers for sync and tree operations."""

import asyncio
import inspect
import logging
import os
from collections import deque
from collections.abc import AsyncIterator, Awaitable, Iterable
from typing import TYPE_CHECKING, Callable, Optional, Union

from .._glob import matches_any
from ..models import LocalEntry, RemoteEntry
from ..utils import join_remote_path, strip_trailing_slashes

if TYPE_CHECKING:
    from ..api import NetStorageClient

logger = logging.getLogger(__name__)

IncludePredicate = Callable[[RemoteEntry], Union[bool, Awaitable[bool]]]


async def _check(predicate: IncludePredicate, entry: RemoteEntry) -> bool:
    """Evaluate a sync or async entry predicate."""
    result = predicate(entry)
    if inspect.isawaitable(result):
        result = await result
    return bool(result)


async def remote_walk(
    client: "NetStorageClient",
    root_path: str,
    max_depth: Optional[int] = None,
    include: Optional[IncludePredicate] = None,
    should_descend: Optional[IncludePredicate] = None,
) -> AsyncIterator[RemoteEntry]:
    """Walk a remote directory tree breadth-first.

    Every directory in the frontier is listed once. Children are yielded in
    the order the server returns them, all entries of depth ``d`` before any
    of depth ``d + 1``. Symlinks are yielded but never followed.

    Args:
        client: NetStorage client used for ``dir`` calls
        root_path: Remote directory to walk (trailing slashes are ignored)
        max_depth: Deepest depth to yield (root children have depth 0);
            unbounded when None
        include: Predicate filtering the yielded entries. It does not prune:
            excluded directories are still traversed.
        should_descend: Predicate deciding whether a directory is listed

    Yields:
        RemoteEntry for each child found

    Raises:
        NetStorageAPIError: If a listing fails. Entries yielded before the
            failure remain valid.
    """
    root = strip_trailing_slashes(root_path)
    frontier: deque[tuple[str, int]] = deque([(root, 0)])

    while frontier:
        current, depth = frontier.popleft()
        listing = await client.list_directory(current or "/")

        for child in listing.files:
            path = join_remote_path(current, child.name)
            entry = RemoteEntry(
                path=path,
                parent=current,
                relative_path=path[len(root) :].lstrip("/"),
                depth=depth,
                file=child,
            )

            if include is None or await _check(include, entry):
                yield entry

            if not child.is_dir:
                continue
            if max_depth is not None and depth >= max_depth:
                continue
            if should_descend is not None and not await _check(should_descend, entry):
                logger.debug(f"Not descending into {path}")
                continue
            frontier.append((path, depth + 1))


def _list_local_dir(path: str) -> list[os.DirEntry]:
    with os.scandir(path) as it:
        return sorted(it, key=lambda e: e.name)


async def walk_local_dir(
    root: str,
    ignore: Optional[Iterable[str]] = None,
    follow_symlinks: bool = False,
    include_dirs: bool = False,
    on_enter_dir: Optional[Callable[[str, str], None]] = None,
) -> AsyncIterator[LocalEntry]:
    """Recursively walk a local directory.

    Args:
        root: Directory to walk
        ignore: Glob patterns matched against relative paths; matching
            directories are pruned
        follow_symlinks: Follow symlinked files and directories; each
            physical file or directory is visited once
        include_dirs: Yield directory entries as well as files
        on_enter_dir: Called with (absolute path, relative path) for every
            directory entered below the root

    Yields:
        LocalEntry for each file (and directory, if ``include_dirs``),
        children in name order

    Examples:
        >>> async for entry in walk_local_dir("/data", ignore=["**/*.tmp"]):
        ...     print(entry.relative_path)
    """
    root_abs = os.path.abspath(root)
    patterns = list(ignore or [])
    visited = {os.path.realpath(root_abs)}

    async def walk(directory: str, prefix: str) -> AsyncIterator[LocalEntry]:
        children = await asyncio.to_thread(_list_local_dir, directory)
        for child in children:
            relative_path = f"{prefix}{child.name}"
            if patterns and matches_any(relative_path, patterns):
                logger.debug(f"Ignoring: {relative_path}")
                continue

            is_symlink = child.is_symlink()
            if is_symlink and not follow_symlinks:
                continue

            is_dir = child.is_dir(follow_symlinks=follow_symlinks)
            if is_dir:
                real_path = os.path.realpath(child.path)
                if real_path in visited:
                    logger.debug(f"Skipping already visited directory: {child.path}")
                    continue
                visited.add(real_path)

                if on_enter_dir is not None:
                    on_enter_dir(child.path, relative_path)
                if include_dirs:
                    yield LocalEntry(
                        local_path=child.path,
                        relative_path=relative_path,
                        is_directory=True,
                    )
                async for entry in walk(child.path, f"{relative_path}/"):
                    yield entry
            elif child.is_file(follow_symlinks=follow_symlinks):
                if follow_symlinks:
                    real_path = os.path.realpath(child.path)
                    if real_path in visited:
                        logger.debug(f"Skipping already visited file: {child.path}")
                        continue
                    visited.add(real_path)
                yield LocalEntry(
                    local_path=child.path,
                    relative_path=relative_path,
                    is_directory=False,
                )

    async for entry in walk(root_abs, ""):
        yield entry
