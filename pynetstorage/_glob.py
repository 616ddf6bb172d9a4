"""Path-segment-aware glob matching for relative paths."""

from fnmatch import fnmatchcase
from typing import Iterable


def _segment_match(pattern: str, name: str) -> bool:
    """Match *name* against a single glob *pattern* segment.

    ``*`` and ``?`` do not match a leading ``.`` unless the pattern itself
    starts with ``.``.
    """
    if not pattern.startswith(".") and name.startswith("."):
        return False
    return fnmatchcase(name, pattern)


def _match_segments(patterns: list[str], names: list[str]) -> bool:
    if not patterns:
        return not names
    seg = patterns[0]
    rest = patterns[1:]

    if seg == "**":
        # Zero segments
        if _match_segments(rest, names):
            return True
        # One or more segments, never descending through dot segments
        for i, name in enumerate(names):
            if name.startswith("."):
                return False
            if _match_segments(rest, names[i + 1 :]):
                return True
        return False

    if not names or not _segment_match(seg, names[0]):
        return False
    return _match_segments(rest, names[1:])


def glob_match(path: str, pattern: str) -> bool:
    """Check whether a relative path matches a glob pattern.

    Supports ``*``, ``?``, ``[...]`` within a segment and ``**`` spanning
    zero or more segments. ``*`` never matches ``/``.

    Args:
        path: Relative path using forward slashes
        pattern: Glob pattern

    Returns:
        True if the path matches

    Examples:
        >>> glob_match("debug.log", "*.log")
        True
        >>> glob_match("logs/debug.log", "*.log")
        False
        >>> glob_match("notes.txt", "**/*.txt")
        True
        >>> glob_match("a/b/notes.txt", "**/*.txt")
        True
    """
    path_segments = [s for s in path.strip("/").split("/") if s]
    pattern_segments = [s for s in pattern.strip("/").split("/") if s]
    return _match_segments(pattern_segments, path_segments)


def matches_any(path: str, patterns: Iterable[str]) -> bool:
    """Check whether a relative path matches any of the glob patterns."""
    return any(glob_match(path, pattern) for pattern in patterns)
