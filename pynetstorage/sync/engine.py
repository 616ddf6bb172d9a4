"""Core sync engine for executing sync operations."""

import asyncio
import logging
import os
import posixpath
from collections.abc import Iterable
from typing import TYPE_CHECKING, Optional, Union

from .._glob import matches_any
from ..exceptions import (
    NetStorageAmbiguityError,
    NetStorageNotFoundError,
    NetStorageValidationError,
)
from ..models import NetStorageFile, RemoteEntry
from ..utils import DEFAULT_MAX_CONCURRENCY, join_remote_path
from .comparator import (
    ConflictRules,
    is_transfer_allowed,
    needs_transfer,
    resolve_conflict_action,
)
from .events import (
    SyncEventHandler,
    SyncResult,
    SyncResultCollector,
    SyncSkipEvent,
    SyncTransferEvent,
)
from .modes import (
    CompareStrategy,
    ConflictAction,
    ConflictResolution,
    DeleteExtraneous,
    SyncDirection,
)
from .operations import SyncOperations
from .scanner import remote_walk, walk_local_dir

if TYPE_CHECKING:
    from ..api import NetStorageClient

logger = logging.getLogger(__name__)

DIRECTION_ARROWS = {
    SyncDirection.UPLOAD: "->",
    SyncDirection.DOWNLOAD: "<-",
    SyncDirection.BOTH: "<->",
}


def _local_join(root: str, relative_path: str) -> str:
    return os.path.join(root, *relative_path.split("/"))


class SyncEngine:
    """Core sync engine that orchestrates file synchronization.

    Examples:
        >>> engine = SyncEngine(client)
        >>> result = await engine.sync_directory("/local", "/123/remote",
        ...                                      compare_strategy="size")
        >>> print(f"Uploaded {len(result.transferred)} files")
    """

    def __init__(
        self,
        client: "NetStorageClient",
        handler: Optional[SyncEventHandler] = None,
    ):
        """Initialize sync engine.

        Args:
            client: NetStorage API client
            handler: Default event handler for all sync calls
        """
        self.client = client
        self.handler = handler
        self.operations = SyncOperations(client)

    # =========================================================================
    # Single entry
    # =========================================================================

    async def sync_entry(
        self,
        direction: Union[SyncDirection, str],
        local_path: str,
        remote_path: str,
        relative_path: str,
        remote_file: Optional[NetStorageFile],
        dry_run: bool = False,
        compare_strategy: Union[CompareStrategy, str] = CompareStrategy.EXISTS,
        conflict_rules: Optional[ConflictRules] = None,
        conflict_resolution: Union[
            ConflictResolution, str
        ] = ConflictResolution.PREFER_LOCAL,
        handler: Optional[SyncEventHandler] = None,
    ) -> None:
        """Transfer one file in one direction if the settings call for it.

        Emits exactly one transfer or skip event on ``handler``. Transfer
        errors propagate to the caller.
        """
        direction = SyncDirection(direction)
        strategy = CompareStrategy(compare_strategy)
        handler = handler or self.handler or SyncEventHandler()

        action = resolve_conflict_action(relative_path, conflict_rules)
        if action is ConflictAction.SKIP:
            handler.on_skip(
                SyncSkipEvent(
                    direction=direction.value,
                    local_path=local_path,
                    remote_path=remote_path,
                    reason="conflictRules skip",
                )
            )
            return

        should_transfer = await needs_transfer(
            strategy, direction, local_path, remote_file
        )
        allowed = is_transfer_allowed(
            strategy, direction, action, conflict_resolution
        )
        if not should_transfer or not allowed:
            handler.on_skip(
                SyncSkipEvent(
                    direction=direction.value,
                    local_path=local_path,
                    remote_path=remote_path,
                    reason=strategy.value,
                )
            )
            return

        if dry_run:
            if direction is SyncDirection.UPLOAD:
                logger.info(f"[dry run] Would upload {local_path} -> {remote_path}")
            else:
                logger.info(f"[dry run] Would download {remote_path} -> {local_path}")
        elif direction is SyncDirection.UPLOAD:
            await self.operations.upload_file(local_path, remote_path)
        else:
            await self.operations.download_file(remote_path, local_path)

        handler.on_transfer(
            SyncTransferEvent(
                direction=direction.value,
                local_path=local_path,
                remote_path=remote_path,
            )
        )

    # =========================================================================
    # Extraneous entries
    # =========================================================================

    async def delete_extraneous(
        self,
        scope: Union[DeleteExtraneous, str],
        local_path: str,
        remote_path: str,
        local_paths: Iterable[str],
        remote_paths: Iterable[str],
        dry_run: bool = False,
        handler: Optional[SyncEventHandler] = None,
    ) -> tuple[set[str], set[str]]:
        """Delete entries that exist on one side only.

        Args:
            scope: Which side loses its extra entries (none, remote, local, both)
            local_path: Local root directory
            remote_path: Remote root directory
            local_paths: Relative paths present locally
            remote_paths: Relative paths present remotely
            dry_run: Only log what would be deleted
            handler: Receives ``on_delete`` with the absolute path of each
                deleted entry

        Returns:
            Tuple of (deleted local, deleted remote) relative paths. In dry
            run these are the paths that would have been deleted.
        """
        scope = DeleteExtraneous(scope)
        handler = handler or self.handler or SyncEventHandler()
        local_set = set(local_paths)
        remote_set = set(remote_paths)
        deleted_local: set[str] = set()
        deleted_remote: set[str] = set()

        if scope in (DeleteExtraneous.REMOTE, DeleteExtraneous.BOTH):
            logger.debug("Checking for extraneous remote files to delete")
            for relative_path in sorted(remote_set - local_set):
                target = join_remote_path(remote_path, relative_path)
                if dry_run:
                    logger.info(f"[dry run] Would delete remote file at {target}")
                else:
                    await self.operations.delete_remote(target)
                    handler.on_delete(target)
                deleted_remote.add(relative_path)

        if scope in (DeleteExtraneous.LOCAL, DeleteExtraneous.BOTH):
            logger.debug("Checking for extraneous local files to delete")
            for relative_path in sorted(local_set - remote_set):
                target = _local_join(local_path, relative_path)
                if dry_run:
                    logger.info(f"[dry run] Would delete local file at {target}")
                else:
                    await self.operations.delete_local(target)
                    handler.on_delete(target)
                deleted_local.add(relative_path)

        return deleted_local, deleted_remote

    # =========================================================================
    # Files and directories
    # =========================================================================

    async def sync_file(
        self,
        local_path: str,
        remote_path: str,
        direction: Union[SyncDirection, str] = SyncDirection.UPLOAD,
        remote_file: Optional[NetStorageFile] = None,
        dry_run: bool = False,
        compare_strategy: Union[CompareStrategy, str] = CompareStrategy.EXISTS,
        conflict_resolution: Union[
            ConflictResolution, str
        ] = ConflictResolution.PREFER_LOCAL,
        conflict_rules: Optional[ConflictRules] = None,
        delete_extraneous: Union[DeleteExtraneous, str] = DeleteExtraneous.NONE,
        handler: Optional[SyncEventHandler] = None,
    ) -> SyncResult:
        """Sync a single file.

        Conflict rules are matched against the file's basename. With
        ``direction="both"`` the upload is evaluated before the download.

        Args:
            local_path: Local file path
            remote_path: Remote file path
            direction: upload, download or both
            remote_file: Remote metadata (fetched with ``stat`` when omitted)
            dry_run: Only log what would be transferred
            compare_strategy: exists, size, mtime or checksum
            conflict_resolution: prefer_local, prefer_remote or manual
            conflict_rules: Ordered (pattern, action) pairs or a mapping
            delete_extraneous: Remove the file from the side that lacks it
            handler: Event handler for this call

        Returns:
            SyncResult snapshot

        Raises:
            NetStorageValidationError: If extraneous deletion is requested for
                files with different names
        """
        direction = SyncDirection(direction)
        scope = DeleteExtraneous(delete_extraneous)
        name = os.path.basename(local_path)
        if (
            scope is not DeleteExtraneous.NONE
            and posixpath.basename(remote_path.rstrip("/")) != name
        ):
            raise NetStorageValidationError(
                "Deleting extraneous files requires matching local and remote "
                f"file names: {local_path}, {remote_path}"
            )
        collector = SyncResultCollector(handler or self.handler)

        if remote_file is None:
            try:
                remote_file = await self.client.get_metadata(remote_path)
            except NetStorageNotFoundError:
                remote_file = None

        directions = (
            [SyncDirection.UPLOAD, SyncDirection.DOWNLOAD]
            if direction is SyncDirection.BOTH
            else [direction]
        )
        for entry_direction in directions:
            await self.sync_entry(
                entry_direction,
                local_path,
                remote_path,
                name,
                remote_file,
                dry_run=dry_run,
                compare_strategy=compare_strategy,
                conflict_rules=conflict_rules,
                conflict_resolution=conflict_resolution,
                handler=collector,
            )

        local_exists = await asyncio.to_thread(os.path.isfile, local_path)
        remote_exists = remote_file is not None
        for event in collector.transferred:
            if event.direction == SyncDirection.UPLOAD.value:
                remote_exists = True
            else:
                local_exists = True

        await self.delete_extraneous(
            scope,
            os.path.dirname(local_path),
            posixpath.dirname(remote_path.rstrip("/")) or "/",
            {name} if local_exists else set(),
            {name} if remote_exists else set(),
            dry_run=dry_run,
            handler=collector,
        )
        return collector.snapshot()

    async def _scan_remote(
        self, remote_path: str, ignore: list[str]
    ) -> dict[str, NetStorageFile]:
        """Collect remote non-directory entries keyed by relative path.

        A remote root that does not exist is treated as empty.
        """

        def not_ignored(entry: RemoteEntry) -> bool:
            return not (ignore and matches_any(entry.relative_path, ignore))

        files: dict[str, NetStorageFile] = {}
        walked_any = False
        try:
            async for entry in remote_walk(
                self.client,
                remote_path,
                include=not_ignored,
                should_descend=not_ignored,
            ):
                walked_any = True
                if not entry.file.is_dir:
                    files[entry.relative_path] = entry.file
        except NetStorageNotFoundError:
            if walked_any:
                raise
            logger.info(f"Remote directory {remote_path} not found, treating as empty")
        return files

    async def sync_directory(
        self,
        local_path: str,
        remote_path: str,
        direction: Union[SyncDirection, str] = SyncDirection.UPLOAD,
        compare_strategy: Union[CompareStrategy, str] = CompareStrategy.EXISTS,
        conflict_resolution: Union[
            ConflictResolution, str
        ] = ConflictResolution.PREFER_LOCAL,
        conflict_rules: Optional[ConflictRules] = None,
        delete_extraneous: Union[DeleteExtraneous, str] = DeleteExtraneous.NONE,
        dry_run: bool = False,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
        ignore: Optional[Iterable[str]] = None,
        handler: Optional[SyncEventHandler] = None,
    ) -> SyncResult:
        """Sync a local directory with a remote directory.

        Both trees are walked first (files only). Extraneous entries are then
        deleted and dropped from consideration, and one task per relative path
        and direction runs, at most ``max_concurrency`` at a time. A task that
        fails is recorded as a skip with reason "error"; walk failures abort
        the sync.

        Args:
            local_path: Local root directory
            remote_path: Remote root directory
            direction: upload, download or both
            compare_strategy: exists, size, mtime or checksum
            conflict_resolution: prefer_local, prefer_remote or manual
            conflict_rules: Ordered (pattern, action) pairs or a mapping
            delete_extraneous: none, remote, local or both
            dry_run: Only log what would be done
            max_concurrency: Maximum number of entries in flight
            ignore: Glob patterns excluded on both sides
            handler: Event handler for this call

        Returns:
            SyncResult snapshot

        Raises:
            NetStorageValidationError: If the local root is missing for an
                upload, or ``max_concurrency`` is not positive
        """
        direction = SyncDirection(direction)
        if max_concurrency < 1:
            raise NetStorageValidationError("max_concurrency must be at least 1")

        logger.info(
            f"Syncing {local_path} {DIRECTION_ARROWS[direction]} {remote_path} "
            f"[{direction.value}]"
        )
        collector = SyncResultCollector(handler or self.handler)
        patterns = list(ignore or [])

        if direction is SyncDirection.UPLOAD:
            if not await asyncio.to_thread(os.path.isdir, local_path):
                raise NetStorageValidationError(
                    f"Local directory does not exist: {local_path}"
                )
        else:
            await asyncio.to_thread(os.makedirs, local_path, exist_ok=True)

        local_files = {
            entry.relative_path: entry.local_path
            async for entry in walk_local_dir(local_path, ignore=patterns)
        }
        remote_files = await self._scan_remote(remote_path, patterns)
        logger.debug(
            f"Found {len(local_files)} local and {len(remote_files)} remote file(s)"
        )

        deleted_local, deleted_remote = await self.delete_extraneous(
            delete_extraneous,
            local_path,
            remote_path,
            local_files,
            remote_files,
            dry_run=dry_run,
            handler=collector,
        )
        for relative_path in deleted_local:
            local_files.pop(relative_path, None)
        for relative_path in deleted_remote:
            remote_files.pop(relative_path, None)

        semaphore = asyncio.Semaphore(max_concurrency)

        async def run(
            entry_direction: SyncDirection,
            relative_path: str,
            local_abs: str,
            remote_file: Optional[NetStorageFile],
        ) -> None:
            remote_abs = join_remote_path(remote_path, relative_path)
            async with semaphore:
                try:
                    await self.sync_entry(
                        entry_direction,
                        local_abs,
                        remote_abs,
                        relative_path,
                        remote_file,
                        dry_run=dry_run,
                        compare_strategy=compare_strategy,
                        conflict_rules=conflict_rules,
                        conflict_resolution=conflict_resolution,
                        handler=collector,
                    )
                except Exception as e:
                    logger.error(
                        f"Failed to {entry_direction.value} {relative_path}: {e}"
                    )
                    collector.on_skip(
                        SyncSkipEvent(
                            direction=entry_direction.value,
                            local_path=local_abs,
                            remote_path=remote_abs,
                            reason="error",
                            error=e,
                        )
                    )

        tasks = []
        if direction in (SyncDirection.UPLOAD, SyncDirection.BOTH):
            for relative_path, local_abs in local_files.items():
                tasks.append(
                    run(
                        SyncDirection.UPLOAD,
                        relative_path,
                        local_abs,
                        remote_files.get(relative_path),
                    )
                )
        if direction in (SyncDirection.DOWNLOAD, SyncDirection.BOTH):
            for relative_path, remote_file in remote_files.items():
                tasks.append(
                    run(
                        SyncDirection.DOWNLOAD,
                        relative_path,
                        _local_join(local_path, relative_path),
                        remote_file,
                    )
                )

        await asyncio.gather(*tasks)
        return collector.snapshot()

    async def sync(
        self,
        local_path: str,
        remote_path: str,
        direction: Union[SyncDirection, str] = SyncDirection.UPLOAD,
        **kwargs,
    ) -> SyncResult:
        """Sync a file or a directory, whichever the paths point to.

        Keyword arguments are passed to ``sync_file`` or ``sync_directory``.

        Raises:
            NetStorageAmbiguityError: If one side is a file and the other a
                directory, or neither side exists
            NetStorageValidationError: If uploading from a missing local path
        """
        direction = SyncDirection(direction)
        local_is_file = await asyncio.to_thread(os.path.isfile, local_path)
        local_is_dir = await asyncio.to_thread(os.path.isdir, local_path)
        remote = await self.client.inspect_remote_path(remote_path)

        if local_is_file and remote.du is not None:
            raise NetStorageAmbiguityError(
                f"Local path {local_path} is a file but remote path "
                f"{remote_path} is a directory"
            )
        if local_is_dir and remote.file is not None:
            raise NetStorageAmbiguityError(
                f"Local path {local_path} is a directory but remote path "
                f"{remote_path} is a file"
            )
        if not (local_is_file or local_is_dir):
            if remote.file is None and remote.du is None:
                raise NetStorageAmbiguityError(
                    f"Neither {local_path} nor {remote_path} exists"
                )
            if direction is SyncDirection.UPLOAD:
                raise NetStorageValidationError(
                    f"Local path does not exist: {local_path}"
                )

        if local_is_file or remote.file is not None:
            file_kwargs = {
                key: value
                for key, value in kwargs.items()
                if key not in ("max_concurrency", "ignore")
            }
            return await self.sync_file(
                local_path,
                remote_path,
                direction=direction,
                remote_file=remote.file,
                **file_kwargs,
            )
        return await self.sync_directory(
            local_path, remote_path, direction=direction, **kwargs
        )
