"""Tests for time range parsing."""

from datetime import datetime, timedelta, timezone

import pytest

from telemetry_bridge.errors import ValidationError
from telemetry_bridge.timerange import (
    default_time_range,
    format_iso,
    parse_time_expression,
    parse_time_range,
    parse_timestamp_ns,
)

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


class TestParseTimestampNs:
    """Tests for parse_timestamp_ns()."""

    def test_iso_with_nanoseconds(self):
        """Test that sub-microsecond precision is kept."""
        assert parse_timestamp_ns("1970-01-01T00:00:01.000000001Z") == 1_000_000_001

    def test_iso_with_offset(self):
        """Test timezone offsets."""
        assert parse_timestamp_ns("1970-01-01T01:00:00+01:00") == 0
        assert parse_timestamp_ns("1970-01-01T01:00:00+0100") == 0

    def test_naive_iso_is_utc(self):
        """Test that missing offsets mean UTC."""
        assert parse_timestamp_ns("1970-01-01T00:00:02") == 2_000_000_000
        assert parse_timestamp_ns("1970-01-02") == 86_400 * 1_000_000_000

    @pytest.mark.parametrize(
        "value",
        [1_700_000_000, 1_700_000_000_000, 1_700_000_000_000_000, 1_700_000_000_000_000_000],
    )
    def test_epoch_units(self, value):
        """Test seconds, millis, micros and nanos are recognised."""
        assert parse_timestamp_ns(value) == 1_700_000_000_000_000_000

    def test_numeric_string(self):
        """Test epoch numbers given as strings."""
        assert parse_timestamp_ns("1700000000000") == 1_700_000_000_000_000_000

    @pytest.mark.parametrize("value", [None, True, "not a date", "2024-13-45T00:00:00Z", {}])
    def test_invalid(self, value):
        """Test that unusable values return None."""
        assert parse_timestamp_ns(value) is None


class TestParseTimeRange:
    """Tests for parse_time_range()."""

    def test_relative(self):
        """Test now-relative expressions."""
        time_range = parse_time_range("now-1h", "now", now=NOW)
        assert time_range.start == NOW - timedelta(hours=1)
        assert time_range.end == NOW

    @pytest.mark.parametrize(
        "expression,delta",
        [
            ("now-30s", timedelta(seconds=30)),
            ("now-15m", timedelta(minutes=15)),
            ("now-2d", timedelta(days=2)),
            ("now-1w", timedelta(weeks=1)),
            ("now-1M", timedelta(days=30)),
            ("now-1y", timedelta(days=365)),
        ],
    )
    def test_units(self, expression, delta):
        """Test every relative unit."""
        assert parse_time_expression(expression, NOW) == NOW - delta

    def test_iso(self):
        """Test absolute timestamps."""
        time_range = parse_time_range("2024-01-01T00:00:00Z", "2024-01-01T00:30:00.5Z")
        assert time_range.start_iso == "2024-01-01T00:00:00.000Z"
        assert time_range.end_iso == "2024-01-01T00:30:00.500Z"

    def test_datetimes(self):
        """Test datetime objects are accepted."""
        time_range = parse_time_range(NOW - timedelta(minutes=5), NOW)
        assert time_range.to_dict()["end"] == format_iso(NOW)

    def test_start_after_end(self):
        """Test ordering validation."""
        with pytest.raises(ValidationError, match="Start time must be before end time"):
            parse_time_range("now", "now-1h", now=NOW)

    def test_equal_bounds(self):
        """Test that an empty window is rejected."""
        with pytest.raises(ValidationError):
            parse_time_range(NOW, NOW)

    def test_missing(self):
        """Test that both bounds are required."""
        with pytest.raises(ValidationError, match="required"):
            parse_time_range(None, "now")

    def test_bad_expressions(self):
        """Test malformed inputs."""
        with pytest.raises(ValidationError, match="Invalid relative time expression"):
            parse_time_expression("now-1x", NOW)
        with pytest.raises(ValidationError, match="Invalid timestamp format"):
            parse_time_expression("last tuesday", NOW)

    def test_out_of_range(self):
        """Test that values past the datetime range are validation errors."""
        with pytest.raises(ValidationError, match="Timestamp out of range"):
            parse_time_expression(10**30, NOW)
        with pytest.raises(ValidationError, match="Time expression out of range"):
            parse_time_expression("now-99999999999y", NOW)

    def test_default_time_range(self):
        """Test the last-hour default."""
        time_range = default_time_range(NOW)
        assert time_range.end - time_range.start == timedelta(hours=1)
