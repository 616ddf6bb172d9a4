"""Unit tests for utility functions."""

import pytest

from pynetstorage.utils import (
    format_mtime,
    format_size,
    generate_unique_id,
    join_remote_path,
    parse_int,
    strip_trailing_slashes,
)


class TestJoinRemotePath:
    """Tests for join_remote_path function."""

    @pytest.mark.parametrize(
        "parts,expected",
        [
            (("/dir", "file.txt"), "/dir/file.txt"),
            (("/dir/", "/sub//file.txt"), "/dir/sub/file.txt"),
            (("", "file.txt"), "/file.txt"),
            (("/a", "b", "c"), "/a/b/c"),
        ],
    )
    def test_join(self, parts, expected):
        assert join_remote_path(*parts) == expected

    def test_strip_trailing_slashes(self):
        assert strip_trailing_slashes("/dir///") == "/dir"
        assert strip_trailing_slashes("/") == ""


class TestFormatting:
    """Tests for size and timestamp formatting."""

    @pytest.mark.parametrize(
        "size,expected",
        [
            (0, "0 B"),
            (1023, "1023 B"),
            (1536, "1.5 KB"),
            (5 * 1024 * 1024, "5.0 MB"),
            (3 * 1024**3, "3.0 GB"),
            (2 * 1024**4, "2.0 TB"),
        ],
    )
    def test_format_size(self, size, expected):
        assert format_size(size) == expected

    def test_format_mtime(self):
        """Test that timestamps are rendered in UTC."""
        assert format_mtime(1700000000) == "2023-11-14 22:13:20"
        assert format_mtime("0") == "1970-01-01 00:00:00"

    def test_format_mtime_missing(self):
        assert format_mtime(None) == ""
        assert format_mtime("") == ""


class TestParseInt:
    """Tests for parse_int function."""

    def test_valid(self):
        assert parse_int("42") == 42
        assert parse_int(7) == 7

    @pytest.mark.parametrize("value", [None, "", "n/a", "1.5"])
    def test_invalid_returns_none(self, value):
        assert parse_int(value) is None


class TestGenerateUniqueId:
    def test_ten_digits(self):
        unique_id = generate_unique_id()
        assert len(unique_id) == 10
        assert unique_id.isdigit()
