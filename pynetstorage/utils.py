"""Utility functions for NetStorage."""

import secrets
from datetime import datetime, timezone
from typing import Optional, Union

# =============================================================================
# Constants for file operations
# =============================================================================

# Chunk size for streamed uploads, downloads and local hashing (1 MB)
DEFAULT_CHUNK_SIZE: int = 1024 * 1024

# Request timeout in seconds
DEFAULT_TIMEOUT: float = 10.0

# Retry configuration for transient errors
DEFAULT_MAX_RETRIES: int = 3
DEFAULT_RETRY_DELAY: float = 0.3  # seconds
DEFAULT_MAX_RETRY_DELAY: float = 2.0  # seconds

# Number of per-entry tasks in flight during directory operations
DEFAULT_MAX_CONCURRENCY: int = 5

# HTTP status codes worth retrying
RETRYABLE_STATUS_CODES: frozenset[int] = frozenset({429, 500, 502, 503, 504})


# =============================================================================
# Path utilities
# =============================================================================


def join_remote_path(*parts: str) -> str:
    """Join remote path segments with single forward slashes.

    Examples:
        >>> join_remote_path("/dir", "file.txt")
        '/dir/file.txt'
        >>> join_remote_path("", "file.txt")
        '/file.txt'
        >>> join_remote_path("/dir/", "/sub//file.txt")
        '/dir/sub/file.txt'
    """
    joined = "/".join(parts)
    while "//" in joined:
        joined = joined.replace("//", "/")
    return joined


def strip_trailing_slashes(path: str) -> str:
    """Remove trailing slashes from a remote path ("/" becomes "")."""
    return path.rstrip("/")


# =============================================================================
# Timestamp utilities
# =============================================================================


def format_mtime(unix_seconds: Optional[Union[int, str]]) -> str:
    """Format a Unix timestamp (seconds) as a UTC datetime string.

    Args:
        unix_seconds: Unix timestamp as int or numeric string

    Returns:
        String in 'YYYY-MM-DD HH:MM:SS' format, or "" if the value is missing

    Examples:
        >>> format_mtime(0)
        '1970-01-01 00:00:00'
    """
    if unix_seconds is None or unix_seconds == "":
        return ""
    dt = datetime.fromtimestamp(int(unix_seconds), tz=timezone.utc)
    return dt.strftime("%Y-%m-%d %H:%M:%S")


# =============================================================================
# Size formatting utilities
# =============================================================================


def format_size(size_bytes: int) -> str:
    """Format file size in human-readable format.

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted size string (e.g., "1.5 MB", "256 B")
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    elif size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes / 1024 / 1024:.1f} MB"
    elif size_bytes < 1024 * 1024 * 1024 * 1024:
        return f"{size_bytes / 1024 / 1024 / 1024:.1f} GB"
    else:
        return f"{size_bytes / 1024 / 1024 / 1024 / 1024:.1f} TB"


def parse_int(value: Optional[Union[int, str]]) -> Optional[int]:
    """Parse an integer attribute, returning None when missing or malformed.

    Examples:
        >>> parse_int("42")
        42
        >>> parse_int("n/a") is None
        True
    """
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def generate_unique_id() -> str:
    """Generate the random request identifier used in signed headers."""
    return str(secrets.randbelow(10**10)).zfill(10)
