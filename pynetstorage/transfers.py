"""Bulk directory transfers built on the tree walkers."""

import asyncio
import inspect
import logging
import os
from collections.abc import Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Optional

from .exceptions import NetStorageNotFoundError, NetStorageValidationError
from .models import LocalEntry, OperationStatus, RemoteEntry
from .sync.operations import SyncOperations
from .sync.scanner import IncludePredicate, remote_walk, walk_local_dir
from .utils import DEFAULT_MAX_CONCURRENCY, join_remote_path

if TYPE_CHECKING:
    from .api import NetStorageClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransferResult:
    """A completed file transfer."""

    local_path: str
    remote_path: str
    status: int


@dataclass(frozen=True)
class SkippedTransfer:
    """A file that was not transferred (or removed).

    ``reason`` is one of "filtered", "dry_run", "exists", "overwrite_false"
    or "error"; ``error`` holds the exception for "error".
    """

    remote_path: str
    reason: str
    local_path: Optional[str] = None
    error: Optional[BaseException] = None


SkipCallback = Callable[[SkippedTransfer], None]
TransferCallback = Callable[[TransferResult], None]


def _check_concurrency(max_concurrency: int) -> None:
    if max_concurrency < 1:
        raise NetStorageValidationError("max_concurrency must be at least 1")


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


async def upload_directory(
    client: "NetStorageClient",
    local_path: str,
    remote_path: str,
    overwrite: bool = True,
    follow_symlinks: bool = False,
    ignore: Optional[Iterable[str]] = None,
    dry_run: bool = False,
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    on_upload: Optional[TransferCallback] = None,
    on_skip: Optional[SkipCallback] = None,
    should_upload: Optional[Callable[[LocalEntry], Any]] = None,
) -> list[TransferResult]:
    """Upload every file below a local directory.

    Args:
        client: NetStorage API client
        local_path: Local directory to upload
        remote_path: Remote destination directory
        overwrite: Replace remote files that already exist
        follow_symlinks: Follow local symlinks
        ignore: Glob patterns of relative paths to leave out
        dry_run: Only log what would be uploaded
        max_concurrency: Maximum number of uploads in flight
        on_upload: Called after each successful upload
        on_skip: Called for each file that is not uploaded
        should_upload: Sync or async filter on local entries

    Returns:
        Results of the successful uploads

    Raises:
        NetStorageValidationError: If the local directory is missing or
            ``max_concurrency`` is not positive
    """
    _check_concurrency(max_concurrency)
    if not await asyncio.to_thread(os.path.isdir, local_path):
        raise NetStorageValidationError(f"Local directory does not exist: {local_path}")

    logger.info(f"Uploading {local_path} -> {remote_path}")
    semaphore = asyncio.Semaphore(max_concurrency)
    results: list[TransferResult] = []

    def skip(entry: LocalEntry, destination: str, reason: str, error=None) -> None:
        if on_skip is not None:
            on_skip(SkippedTransfer(destination, reason, entry.local_path, error))

    async def upload(entry: LocalEntry, destination: str) -> None:
        async with semaphore:
            if dry_run:
                logger.info(f"[dry run] Would upload {entry.local_path} -> {destination}")
                return skip(entry, destination, "dry_run")

            try:
                if not overwrite and await client.is_file(destination):
                    logger.debug(f"Skipping existing file: {destination}")
                    return skip(entry, destination, "overwrite_false")
                status = await client.upload_file(entry.local_path, destination)
            except Exception as e:
                logger.error(f"Failed to upload {entry.local_path} -> {destination}: {e}")
                return skip(entry, destination, "error", e)

            result = TransferResult(entry.local_path, destination, status.code)
            results.append(result)
            if on_upload is not None:
                on_upload(result)

    tasks = []
    async for entry in walk_local_dir(
        local_path, ignore=ignore, follow_symlinks=follow_symlinks
    ):
        destination = join_remote_path(remote_path, entry.relative_path)
        if should_upload is not None and not await _maybe_await(should_upload(entry)):
            logger.debug(f"Skipping via should_upload: {entry.local_path}")
            skip(entry, destination, "filtered")
            continue
        tasks.append(upload(entry, destination))

    await asyncio.gather(*tasks)
    return results


async def download_directory(
    client: "NetStorageClient",
    remote_path: str,
    local_path: str,
    overwrite: bool = False,
    dry_run: bool = False,
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    on_download: Optional[TransferCallback] = None,
    on_skip: Optional[SkipCallback] = None,
    should_download: Optional[IncludePredicate] = None,
) -> list[TransferResult]:
    """Download every file below a remote directory.

    Existing local files are kept unless ``overwrite`` is set.

    Returns:
        Results of the successful downloads
    """
    _check_concurrency(max_concurrency)
    logger.info(f"Downloading {remote_path} -> {os.path.abspath(local_path)}")
    operations = SyncOperations(client)
    semaphore = asyncio.Semaphore(max_concurrency)
    results: list[TransferResult] = []

    def skip(entry: RemoteEntry, destination: str, reason: str, error=None) -> None:
        if on_skip is not None:
            on_skip(SkippedTransfer(entry.path, reason, destination, error))

    async def download(entry: RemoteEntry, destination: str) -> None:
        async with semaphore:
            if should_download is not None and not await _maybe_await(
                should_download(entry)
            ):
                logger.debug(f"Skipping via should_download: {entry.path}")
                return skip(entry, destination, "filtered")

            if not overwrite and await asyncio.to_thread(os.path.isfile, destination):
                logger.debug(f"Skipping existing file: {destination}")
                return skip(entry, destination, "exists")

            if dry_run:
                logger.info(f"[dry run] Would download {entry.path} -> {destination}")
                return skip(entry, destination, "dry_run")

            try:
                status = await operations.download_file(entry.path, destination)
            except Exception as e:
                logger.error(f"Failed to download {entry.path} -> {destination}: {e}")
                return skip(entry, destination, "error", e)

            result = TransferResult(destination, entry.path, status.code)
            results.append(result)
            if on_download is not None:
                on_download(result)

    tasks = []
    async for entry in remote_walk(client, remote_path):
        if entry.file.is_dir:
            continue
        destination = os.path.join(local_path, *entry.relative_path.split("/"))
        tasks.append(download(entry, destination))

    await asyncio.gather(*tasks)
    return results


async def remove_directory(
    client: "NetStorageClient",
    remote_path: str,
    dry_run: bool = False,
    on_remove: Optional[Callable[[str], None]] = None,
    on_skip: Optional[SkipCallback] = None,
    should_remove: Optional[IncludePredicate] = None,
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    remove_root: bool = True,
) -> None:
    """Recursively remove a remote directory.

    Entries are removed deepest level first so directories are empty when
    their ``rmdir`` runs. Implicit directories vanish with their last file
    and are never ``rmdir``'d.

    Args:
        client: NetStorage API client
        remote_path: Remote directory to remove
        dry_run: Only log what would be removed
        on_remove: Called with the path of each removed entry
        on_skip: Called for each entry that is not removed
        should_remove: Sync or async filter on walk entries
        max_concurrency: Maximum number of removals in flight per level
        remove_root: Also remove ``remote_path`` itself
    """
    _check_concurrency(max_concurrency)
    logger.info(f"Removing {remote_path}")
    entries = [entry async for entry in remote_walk(client, remote_path)]
    semaphore = asyncio.Semaphore(max_concurrency)

    def skip(entry: RemoteEntry, reason: str, error=None) -> None:
        if on_skip is not None:
            on_skip(SkippedTransfer(entry.path, reason, error=error))

    async def remove(entry: RemoteEntry) -> None:
        async with semaphore:
            if should_remove is not None and not await _maybe_await(
                should_remove(entry)
            ):
                logger.debug(f"Skipping via should_remove: {entry.path}")
                return skip(entry, "filtered")

            if dry_run:
                logger.info(f"[dry run] Would remove {entry.path}")
                return skip(entry, "dry_run")

            try:
                if entry.file.is_dir:
                    if not entry.file.implicit:
                        await client.delete_directory(entry.path)
                else:
                    await client.delete_file(entry.path)
            except Exception as e:
                logger.error(f"Failed to remove {entry.path}: {e}")
                return skip(entry, "error", e)

            if on_remove is not None:
                on_remove(entry.path)

    depths = sorted({entry.depth for entry in entries}, reverse=True)
    for depth in depths:
        await asyncio.gather(
            *(remove(entry) for entry in entries if entry.depth == depth)
        )

    if remove_root and not dry_run and should_remove is None:
        try:
            await client.delete_directory(remote_path)
        except NetStorageNotFoundError:
            # An implicit root is gone once its last child is removed
            logger.debug(f"{remote_path} already gone")
            return
        if on_remove is not None:
            on_remove(remote_path)


async def find_all(
    client: "NetStorageClient",
    path: str,
    predicate: IncludePredicate,
    max_depth: Optional[int] = None,
) -> list[RemoteEntry]:
    """Collect every remote entry below ``path`` matching ``predicate``."""
    return [
        entry
        async for entry in remote_walk(
            client, path, max_depth=max_depth, include=predicate
        )
    ]


async def upload_missing(
    client: "NetStorageClient", local_path: str, remote_path: str
) -> Optional[OperationStatus]:
    """Upload a file only if nothing exists at the remote path yet.

    Returns:
        The upload status, or None if the remote file already existed
    """
    if await client.file_exists(remote_path):
        logger.debug(f"Remote file exists, not uploading: {remote_path}")
        return None
    return await client.upload_file(local_path, remote_path)


def summarize_skips(skips: Iterable[SkippedTransfer]) -> dict[str, int]:
    """Count skipped transfers per reason."""
    counts: dict[str, int] = {}
    for skipped in skips:
        counts[skipped.reason] = counts.get(skipped.reason, 0) + 1
    return counts
