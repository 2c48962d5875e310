"""Tests for utils/timezone.py - UTC-everywhere time handling."""

from datetime import date, datetime, timezone

import pytest

from utils.timezone import from_unix, now_utc, today_utc


class TestNowUtc:
    """Tests for now_utc()."""

    def test_returns_timezone_aware(self):
        """Result must have tzinfo set (not naive)."""
        assert now_utc().tzinfo is not None

    def test_is_utc(self):
        assert now_utc().tzinfo == timezone.utc


class TestTodayUtc:

    def test_is_a_date(self):
        result = today_utc()
        assert isinstance(result, date)
        assert not isinstance(result, datetime)


class TestFromUnix:
    """Ledger and explorer timestamps."""

    def test_epoch(self):
        assert from_unix(0) == datetime(1970, 1, 1, tzinfo=timezone.utc)

    def test_accepts_decimal_string(self):
        """Explorers report timeStamp as a string."""
        result = from_unix("1700000000")
        assert result == datetime(2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc)

    def test_result_is_utc(self):
        assert from_unix(1700000000).tzinfo == timezone.utc

    @pytest.mark.parametrize("bad", ["", "soon", None, "1.5"])
    def test_rejects_non_integer(self, bad):
        with pytest.raises(ValueError, match="Unix timestamp"):
            from_unix(bad)
