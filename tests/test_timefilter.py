"""
Time Filter Tests
=================

Parsing of the start/end request parameters.
"""

from datetime import timedelta

import pytest

from conftest import utc
from heatmap_tiles.errors import InvalidRequest, InvalidTimeRange
from heatmap_tiles.service import parse_instant, parse_time_range


class TestParseInstant:
    """Tests for single bounds."""

    def test_date_start_of_day(self):
        assert parse_instant("2024-03-01") == utc(2024, 3, 1)

    def test_date_end_of_day(self):
        """A bare end date covers the whole day."""
        assert parse_instant("2024-03-01", end_of_day=True) == utc(2024, 3, 1, 23, 59, 59, 999999)

    def test_zulu_timestamp(self):
        assert parse_instant("2024-03-01T12:30:00Z") == utc(2024, 3, 1, 12, 30)

    def test_offset_converted_to_utc(self):
        """Offsets are honoured and normalised to UTC."""
        parsed = parse_instant("2024-03-01T12:00:00+02:00")
        assert parsed == utc(2024, 3, 1, 10, 0)
        assert parsed.utcoffset() == timedelta(0)

    def test_surrounding_whitespace(self):
        assert parse_instant(" 2024-03-01 ") == utc(2024, 3, 1)

    @pytest.mark.parametrize(
        "value",
        ["yesterday", "2024-13-01", "2024-02-30", "2024/03/01", "2024-03-01T25:00:00Z"],
    )
    def test_malformed(self, value):
        with pytest.raises(InvalidTimeRange):
            parse_instant(value)

    @pytest.mark.parametrize(
        "value,end_of_day",
        [("0001-01-01T00:00:00+01:00", False), ("9999-12-31T23:00:00-05:00", True)],
    )
    def test_outside_utc_range(self, value, end_of_day):
        """Offsets that push the instant past the datetime range are client errors."""
        with pytest.raises(InvalidTimeRange, match="outside the supported range"):
            parse_instant(value, end_of_day=end_of_day)

    def test_extreme_but_representable(self):
        assert parse_instant("0001-01-01T00:00:00-01:00") == utc(1, 1, 1, 1, 0)
        assert parse_instant("9999-12-31", end_of_day=True) == utc(9999, 12, 31, 23, 59, 59, 999999)

    def test_naive_timestamp_rejected(self):
        """Timestamps without an offset are not guessed."""
        with pytest.raises(InvalidTimeRange, match="offset"):
            parse_instant("2024-03-01T12:00:00")


class TestParseTimeRange:
    """Tests for the combined range."""

    def test_no_bounds(self):
        assert parse_time_range(None, None) is None

    def test_empty_strings_are_absent(self):
        assert parse_time_range("", "") is None

    def test_open_start(self):
        time_range = parse_time_range(end="2024-01-02")
        assert time_range.start is None
        assert time_range.end == utc(2024, 1, 2, 23, 59, 59, 999999)

    def test_open_end(self):
        time_range = parse_time_range(start="2024-01-02")
        assert time_range.start == utc(2024, 1, 2)
        assert time_range.end is None

    def test_same_day(self):
        """start == end as dates selects that whole day."""
        time_range = parse_time_range("2024-01-02", "2024-01-02")
        assert time_range.contains(utc(2024, 1, 2))
        assert time_range.contains(utc(2024, 1, 2, 23, 59, 59))
        assert not time_range.contains(utc(2024, 1, 3))

    def test_inverted(self):
        """start after end is a client error."""
        with pytest.raises(InvalidTimeRange):
            parse_time_range("2024-02-01", "2024-01-01")

    def test_inverted_is_invalid_request(self):
        with pytest.raises(InvalidRequest):
            parse_time_range("2024-01-01T12:00:00Z", "2024-01-01T11:59:59Z")

    def test_equal_timestamps(self):
        """A zero-length range is valid."""
        time_range = parse_time_range("2024-01-01T12:00:00Z", "2024-01-01T12:00:00Z")
        assert time_range.start == time_range.end
