"""
Tests for bmo/utils.py

Tests utility functions including:
- iso_timestamp
- generate_category_id
- is_valid_url
"""
import re

import pytest

from bmo.utils import generate_category_id, iso_timestamp, is_valid_url, ms_to_datetime, now_ms


class TestTimestamps:
    """Test millisecond timestamp helpers."""

    def test_iso_timestamp(self):
        """ISO strings should keep millisecond precision."""
        assert iso_timestamp(1753611300123) == "2025-07-27T10:15:00.123Z"
        assert iso_timestamp(0) == "1970-01-01T00:00:00.000Z"

    def test_ms_to_datetime_is_utc(self):
        """Converted datetimes should be timezone-aware."""
        assert ms_to_datetime(0).utcoffset().total_seconds() == 0

    def test_now_ms(self):
        """now_ms should be an integer in milliseconds."""
        value = now_ms()
        assert isinstance(value, int)
        assert value > 1_600_000_000_000


class TestGenerateCategoryId:
    """Test user category ids."""

    def test_format(self):
        """Ids should carry the prefix, timestamp and base36 suffix."""
        assert re.fullmatch(r"user-42-[0-9a-z]{9}", generate_category_id(42))

    def test_unique_within_same_millisecond(self):
        """Ids created at the same time should still differ."""
        ids = {generate_category_id(42) for _ in range(50)}
        assert len(ids) == 50


class TestIsValidUrl:
    """Test URL validation."""

    @pytest.mark.parametrize("url", [
        "https://example.com",
        "http://x",
        "ftp://files.example.com/pub",
        "file:///home/user/doc.html",
    ])
    def test_valid(self, url):
        """Absolute URLs should be accepted."""
        assert is_valid_url(url)

    @pytest.mark.parametrize("url", ["", None, "example.com", "/relative/path", "http://"])
    def test_invalid(self, url):
        """Empty or relative URLs should be rejected."""
        assert not is_valid_url(url)
