"""Tests for duration utilities."""
import pytest
from datetime import datetime


class TestSpans:
    """Tests for reading the duration representation of an entry."""

    def test_completed(self):
        """Test start and end make a completed span."""
        from timeledger.models.time_entry import Completed
        from timeledger.utils.duration import elapsed_seconds, to_span

        entry = {"start_time": datetime(2024, 1, 15, 9, 0), "end_time": datetime(2024, 1, 15, 11, 30)}

        assert isinstance(to_span(entry), Completed)
        assert elapsed_seconds(entry) == 9000

    def test_ongoing_counts_zero(self):
        """Test a running timer is not a completed duration."""
        from timeledger.models.time_entry import Ongoing
        from timeledger.utils.duration import elapsed_seconds, is_ongoing, to_span

        entry = {"start_time": datetime(2024, 1, 15, 9, 0), "end_time": None}

        assert isinstance(to_span(entry), Ongoing)
        assert is_ongoing(entry)
        assert elapsed_seconds(entry) == 0

    def test_manual_wins_over_timestamps(self):
        """Test a manual duration is never added to its timestamps."""
        from timeledger.utils.duration import elapsed_seconds

        entry = {
            "start_time": datetime(2024, 1, 15, 9, 0),
            "end_time": datetime(2024, 1, 15, 17, 0),
            "manual_duration_seconds": 3600,
        }

        assert elapsed_seconds(entry) == 3600

    def test_missing_start_is_zero_manual(self):
        """Test an entry with an end but no start counts as zero."""
        from timeledger.models.time_entry import Manual
        from timeledger.utils.duration import to_span

        assert to_span({"start_time": None, "end_time": datetime(2024, 1, 15, 9, 0)}) == Manual(seconds=0)

    def test_never_negative(self):
        """Test an end before the start yields zero."""
        from timeledger.utils.duration import elapsed_seconds, seconds_between

        start = datetime(2024, 1, 15, 10, 0)
        end = datetime(2024, 1, 15, 9, 0)

        assert seconds_between(start, end) == 0
        assert elapsed_seconds({"start_time": start, "end_time": end}) == 0

    def test_fractional_seconds_floor(self):
        """Test partial seconds are dropped."""
        from timeledger.utils.duration import seconds_between

        assert seconds_between(datetime(2024, 1, 15, 9, 0), datetime(2024, 1, 15, 9, 0, 1, 999999)) == 1

    def test_normalized_fields(self):
        """Test only non-canonical entries need rewriting."""
        from timeledger.utils.duration import normalized_fields

        legacy = {
            "start_time": datetime(2024, 1, 15, 9, 0),
            "end_time": datetime(2024, 1, 15, 10, 0),
            "manual_duration_seconds": 600,
        }
        canonical = {"start_time": None, "end_time": None, "manual_duration_seconds": 600}

        assert normalized_fields(legacy) == canonical
        assert normalized_fields(canonical) is None


class TestParseDuration:
    """Tests for parsing human durations."""

    @pytest.mark.parametrize("text,expected", [
        ("2h", 7200),
        ("3.5hr", 12600),
        ("90m", 5400),
        ("45min", 2700),
        ("5400s", 5400),
        ("4:15", 15300),
        ("1:30:45", 5445),
        ("2h 15m", 8100),
        ("2h 15m 30s", 8130),
        ("2.5", 9000),
        ("  2 Hours ", 7200),
    ])
    def test_valid_formats(self, text, expected):
        """Test every supported format."""
        from timeledger.utils.duration import parse_duration

        assert parse_duration(text) == expected

    @pytest.mark.parametrize("text", ["", "   ", "abc", "2x", "-1h", "1:2:3:4"])
    def test_invalid_formats(self, text):
        """Test unparseable input is rejected."""
        from timeledger.errors import ValidationError
        from timeledger.utils.duration import parse_duration

        with pytest.raises(ValidationError):
            parse_duration(text)

    def test_more_than_a_day(self):
        """Test durations beyond 24 hours are rejected."""
        from timeledger.errors import ValidationError
        from timeledger.utils.duration import parse_duration

        assert parse_duration("24h") == 86400
        with pytest.raises(ValidationError, match="between 0 and 24 hours"):
            parse_duration("25h")

    def test_format_duration(self):
        """Test the "Xh Ym" rendering."""
        from timeledger.utils.duration import format_duration

        assert format_duration(9000) == "2h 30m"
        assert format_duration(59) == "0h 0m"
        assert format_duration(0) == "0h 0m"
