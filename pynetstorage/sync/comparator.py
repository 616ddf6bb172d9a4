"""Transfer decisions: compare strategies and conflict rules."""

import asyncio
import hashlib
import logging
import os
from collections.abc import Iterable, Mapping
from typing import Optional, Union

from .._glob import glob_match
from ..models import NetStorageFile
from ..utils import DEFAULT_CHUNK_SIZE
from .modes import CompareStrategy, ConflictAction, ConflictResolution, SyncDirection

logger = logging.getLogger(__name__)

ConflictRules = Union[Mapping[str, str], Iterable[tuple[str, str]]]


def _local_stat(path: str) -> Optional[os.stat_result]:
    try:
        return os.stat(path)
    except FileNotFoundError:
        return None


def calculate_md5(path: str, chunk_size: int = DEFAULT_CHUNK_SIZE) -> str:
    """Calculate the hex MD5 digest of a local file, reading it in chunks."""
    md5 = hashlib.md5()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(chunk_size), b""):
            md5.update(chunk)
    return md5.hexdigest()


async def needs_transfer(
    strategy: Union[CompareStrategy, str],
    direction: Union[SyncDirection, str],
    local_path: str,
    remote_file: Optional[NetStorageFile],
) -> bool:
    """Decide whether a file has to be transferred.

    Missing metadata on either side means "transfer", except that a
    missing local file never needs an upload.

    Args:
        strategy: Compare strategy (exists, size, mtime, checksum)
        direction: Transfer direction being evaluated
        local_path: Local file path
        remote_file: Remote metadata, None if the remote file is absent

    Returns:
        True if the file should be transferred
    """
    strategy = CompareStrategy(strategy)
    direction = SyncDirection(direction)

    if direction is SyncDirection.UPLOAD and not await asyncio.to_thread(
        os.path.isfile, local_path
    ):
        logger.debug(f"Nothing to upload: {local_path}")
        return False

    if strategy is CompareStrategy.EXISTS:
        if direction is SyncDirection.UPLOAD:
            return remote_file is None
        return not await asyncio.to_thread(os.path.isfile, local_path)

    if remote_file is None:
        return True

    local = await asyncio.to_thread(_local_stat, local_path)
    if local is None:
        logger.debug(f"Local file missing: {local_path}")
        return True

    if strategy is CompareStrategy.SIZE:
        if remote_file.size is None:
            logger.debug(f"Remote size missing for {local_path}")
            return True
        return local.st_size != remote_file.size

    if strategy is CompareStrategy.MTIME:
        # Local newer than remote, whatever the direction
        if remote_file.mtime is None:
            logger.debug(f"Remote mtime missing for {local_path}")
            return True
        return int(local.st_mtime * 1000) > remote_file.mtime * 1000

    if not remote_file.md5:
        logger.debug(f"Remote md5 missing for {local_path}")
        return True
    local_md5 = await asyncio.to_thread(calculate_md5, local_path)
    return local_md5 != remote_file.md5


def normalize_conflict_rules(
    conflict_rules: Optional[ConflictRules],
) -> list[tuple[str, ConflictAction]]:
    """Turn a mapping or pair list into an ordered list of (pattern, action)."""
    if not conflict_rules:
        return []
    pairs = (
        conflict_rules.items()
        if isinstance(conflict_rules, Mapping)
        else conflict_rules
    )
    return [(pattern, ConflictAction(action)) for pattern, action in pairs]


def resolve_conflict_action(
    relative_path: str, conflict_rules: Optional[ConflictRules]
) -> Optional[ConflictAction]:
    """Find the action the first matching conflict rule assigns to a path.

    Args:
        relative_path: Path relative to the sync root
        conflict_rules: Ordered (pattern, action) pairs or a mapping

    Returns:
        None without rules, the first match's action, or SKIP when no rule
        matches

    Examples:
        >>> rules = {"*.log": "skip", "**/*.txt": "upload"}
        >>> resolve_conflict_action("notes.txt", rules)
        <ConflictAction.UPLOAD: 'upload'>
        >>> resolve_conflict_action("image.png", rules)
        <ConflictAction.SKIP: 'skip'>
    """
    rules = normalize_conflict_rules(conflict_rules)
    if not rules:
        return None
    for pattern, action in rules:
        if glob_match(relative_path, pattern):
            return action
    return ConflictAction.SKIP


def is_transfer_allowed(
    strategy: Union[CompareStrategy, str],
    direction: Union[SyncDirection, str],
    action: Optional[Union[ConflictAction, str]],
    conflict_resolution: Union[ConflictResolution, str],
) -> bool:
    """Check whether conflict settings allow a transfer in ``direction``."""
    if CompareStrategy(strategy) is CompareStrategy.EXISTS:
        return True

    direction = SyncDirection(direction)
    if action is not None:
        return ConflictAction(action).value == direction.value

    resolution = ConflictResolution(conflict_resolution)
    if resolution is ConflictResolution.PREFER_LOCAL:
        return direction is SyncDirection.UPLOAD
    if resolution is ConflictResolution.PREFER_REMOTE:
        return direction is SyncDirection.DOWNLOAD
    return False
