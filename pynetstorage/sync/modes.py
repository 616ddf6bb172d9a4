"""Sync modes, compare strategies and conflict settings."""

from enum import Enum


class SyncDirection(str, Enum):
    """Which side of a sync is considered."""

    UPLOAD = "upload"
    """Local entries are pushed to remote"""

    DOWNLOAD = "download"
    """Remote entries are pulled to local"""

    BOTH = "both"
    """Both sides are considered; conflict resolution picks the winner"""


class CompareStrategy(str, Enum):
    """How a local file and its remote counterpart are compared."""

    EXISTS = "exists"
    """Transfer only when the destination is missing"""

    SIZE = "size"
    """Transfer when the sizes differ"""

    MTIME = "mtime"
    """Transfer when the local file is newer than the remote one"""

    CHECKSUM = "checksum"
    """Transfer when the MD5 checksums differ"""


class ConflictResolution(str, Enum):
    """Default winner when no conflict rule decides."""

    PREFER_LOCAL = "prefer_local"
    PREFER_REMOTE = "prefer_remote"
    MANUAL = "manual"


class DeleteExtraneous(str, Enum):
    """Which side loses entries that the other side does not have."""

    NONE = "none"
    REMOTE = "remote"
    LOCAL = "local"
    BOTH = "both"


class ConflictAction(str, Enum):
    """Action assigned by a conflict rule."""

    UPLOAD = "upload"
    DOWNLOAD = "download"
    SKIP = "skip"
