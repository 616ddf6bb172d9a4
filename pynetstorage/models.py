"""Typed models for NetStorage API responses and tree walks."""

from dataclasses import dataclass, field
from typing import Literal, Optional

from .utils import parse_int

EntryType = Literal["file", "dir", "symlink"]


@dataclass(frozen=True)
class NetStorageFile:
    """Metadata for a NetStorage entry (file, directory or symlink)."""

    type: str
    """Entry type: "file", "dir" or "symlink\""""

    name: str
    """Entry name (last path segment)"""

    mtime: Optional[int] = None
    """Last modification time (Unix timestamp, seconds)"""

    size: Optional[int] = None
    """Size in bytes (files only)"""

    md5: Optional[str] = None
    """MD5 checksum (files only, when the server computed one)"""

    target: Optional[str] = None
    """Link target (symlinks only)"""

    bytes: Optional[int] = None
    """Aggregate size in bytes (directories only)"""

    files: Optional[int] = None
    """Number of files (directories only)"""

    implicit: bool = False
    """True for directories that exist only because they contain files"""

    @property
    def is_file(self) -> bool:
        return self.type == "file"

    @property
    def is_dir(self) -> bool:
        return self.type == "dir"

    @property
    def is_symlink(self) -> bool:
        return self.type == "symlink"

    @classmethod
    def from_attributes(cls, attrs: dict[str, str]) -> "NetStorageFile":
        """Create a NetStorageFile from the attributes of a ``<file>`` element.

        Numeric attributes that are missing or malformed decode to None.

        Args:
            attrs: XML attribute mapping

        Returns:
            NetStorageFile instance
        """
        return cls(
            type=attrs.get("type", "file"),
            name=attrs.get("name", ""),
            mtime=parse_int(attrs.get("mtime")),
            size=parse_int(attrs.get("size")),
            md5=attrs.get("md5") or None,
            target=attrs.get("target"),
            bytes=parse_int(attrs.get("bytes")),
            files=parse_int(attrs.get("files")),
            implicit=attrs.get("implicit") == "true",
        )

    def to_dict(self) -> dict:
        """Convert to a dictionary, dropping unset fields."""
        data = {
            "type": self.type,
            "name": self.name,
            "mtime": self.mtime,
            "size": self.size,
            "md5": self.md5,
            "target": self.target,
            "bytes": self.bytes,
            "files": self.files,
        }
        if self.implicit:
            data["implicit"] = True
        return {k: v for k, v in data.items() if v is not None}


@dataclass(frozen=True)
class DirectoryListing:
    """Result of a ``dir`` call."""

    directory: str
    files: list[NetStorageFile] = field(default_factory=list)


@dataclass(frozen=True)
class DiskUsage:
    """Result of a ``du`` call."""

    directory: str
    files: int
    bytes: int


@dataclass(frozen=True)
class OperationStatus:
    """Status returned by mutating operations (upload, rm, mkdir, ...)."""

    code: int


@dataclass(frozen=True)
class DirectoryInfo:
    """Existence and emptiness information about a remote directory."""

    exists: bool
    is_empty: bool
    file_count: int
    byte_count: int
    path: str


@dataclass(frozen=True)
class RemoteEntry:
    """An entry produced by a remote tree walk.

    ``path`` always equals ``parent`` joined with ``file.name``; ``depth`` is
    the number of path segments below the walk root (root children have 0).
    """

    path: str
    parent: str
    relative_path: str
    depth: int
    file: NetStorageFile


@dataclass(frozen=True)
class LocalEntry:
    """An entry produced by a local tree walk."""

    local_path: str
    """Absolute path on the local filesystem"""

    relative_path: str
    """Path relative to the walk root (forward slashes on all platforms)"""

    is_directory: bool


@dataclass(frozen=True)
class DepthBucket:
    """Walk entries sharing the same depth."""

    depth: int
    entries: tuple[RemoteEntry, ...]


@dataclass(frozen=True)
class TreeResult:
    """Depth buckets and aggregated sizes of a fully materialized walk."""

    depth_buckets: tuple[DepthBucket, ...]
    directory_size_map: dict[str, int]
    total_size: int
