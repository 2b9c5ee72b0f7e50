"""Unit tests for utility functions."""

import hashlib
from datetime import datetime, timezone

import pytest

from pygdrive.utils import (
    format_datetime,
    format_size,
    join_path,
    md5sum,
    parent_path,
    parse_iso_timestamp,
    path_depth,
    truncate_string,
)


class TestParseIsoTimestamp:
    """Tests for parse_iso_timestamp function."""

    def test_zulu_suffix(self):
        """Test parsing a Drive API timestamp."""
        result = parse_iso_timestamp("2025-01-15T10:30:00.000Z")
        assert result == datetime(2025, 1, 15, 10, 30, tzinfo=timezone.utc)

    def test_offset(self):
        result = parse_iso_timestamp("2025-01-15T12:30:00+02:00")
        assert result is not None
        assert result.timestamp() == datetime(
            2025, 1, 15, 10, 30, tzinfo=timezone.utc
        ).timestamp()

    @pytest.mark.parametrize("value", [None, "", "not a date"])
    def test_invalid_values(self, value):
        assert parse_iso_timestamp(value) is None

    def test_format_datetime_falls_back_to_input(self):
        assert format_datetime("garbage") == "garbage"
        assert format_datetime(None) == ""


class TestFormatSize:
    """Tests for format_size function."""

    @pytest.mark.parametrize(
        "size,expected",
        [
            (0, "0 B"),
            (1023, "1023 B"),
            (1536, "1.5 KB"),
            (5 * 1024 * 1024, "5.0 MB"),
            (3 * 1024**3, "3.0 GB"),
        ],
    )
    def test_format_size(self, size, expected):
        assert format_size(size) == expected


class TestTruncateString:
    """Tests for truncate_string function."""

    def test_truncates_middle(self):
        assert truncate_string("abcdefghijklmnop", 9) == "abc...nop"

    def test_short_string_unchanged(self):
        assert truncate_string("short", 9) == "short"

    def test_tiny_limit_unchanged(self):
        assert truncate_string("abcdefghijklmnop", 5) == "abcdefghijklmnop"


class TestPathHelpers:
    """Tests for relative path helpers."""

    def test_parent_path(self):
        assert parent_path("a/b/c.txt") == "a/b"
        assert parent_path("c.txt") == ""

    def test_path_depth(self):
        assert path_depth("a.txt") == 0
        assert path_depth("a/b/c.txt") == 2

    def test_join_path(self):
        assert join_path("", "a.txt") == "a.txt"
        assert join_path("sub", "a.txt") == "sub/a.txt"


class TestMd5sum:
    """Tests for md5sum function."""

    def test_matches_hashlib(self, temp_dir):
        path = temp_dir / "data.bin"
        data = b"x" * (3 * 1024 * 1024 + 17)
        path.write_bytes(data)

        assert md5sum(path) == hashlib.md5(data).hexdigest()

    def test_empty_file(self, temp_dir):
        path = temp_dir / "empty"
        path.write_bytes(b"")

        assert md5sum(path) == "d41d8cd98f00b204e9800998ecf8427e"
