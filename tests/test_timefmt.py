"""Tests for timestamp formatting and parsing."""

from moments.timefmt import (
    DEFAULT_TIMESTAMP_FORMAT,
    extract_timestamp_prefix,
    format_timestamp,
    now_ms,
    parse_timestamp,
    relative_time,
)

FMT = DEFAULT_TIMESTAMP_FORMAT


def test_format_and_parse_round_trip():
    """Test that a parsed timestamp formats back to the same string."""
    timestamp = parse_timestamp("2026-01-02 09:15", FMT)

    assert timestamp is not None
    assert format_timestamp(timestamp, FMT) == "2026-01-02 09:15"


def test_parse_timestamp_orders_instants():
    earlier = parse_timestamp("2026-01-02 09:15", FMT)
    later = parse_timestamp("2026-01-02 09:16", FMT)

    assert later - earlier == 60_000


def test_parse_timestamp_is_strict():
    """Test that partial matches and out-of-range fields are rejected."""
    assert parse_timestamp("2026-01-02 09:15 extra", FMT) is None
    assert parse_timestamp("2026-13-02 09:15", FMT) is None
    assert parse_timestamp("not a date", FMT) is None
    assert parse_timestamp("", FMT) is None


def test_extract_timestamp_prefix():
    """Test that a leading timestamp is split from the content."""
    result = extract_timestamp_prefix("2026-01-02 09:15 Hello world", FMT)

    assert result.timestamp == parse_timestamp("2026-01-02 09:15", FMT)
    assert result.remaining_text == "Hello world"


def test_extract_timestamp_prefix_multiline():
    result = extract_timestamp_prefix("2026-01-02 09:15 First\nSecond", FMT)

    assert result.timestamp is not None
    assert result.remaining_text == "First\nSecond"


def test_extract_timestamp_prefix_without_timestamp():
    """Test that text without prefix is returned unchanged."""
    result = extract_timestamp_prefix("Hello world, no timestamp here", FMT)

    assert result.timestamp is None
    assert result.remaining_text == "Hello world, no timestamp here"


def test_extract_timestamp_prefix_short_text():
    result = extract_timestamp_prefix("Hi", FMT)

    assert result.timestamp is None
    assert result.remaining_text == "Hi"


def test_extract_timestamp_prefix_custom_format():
    """Test a day-first pattern."""
    result = extract_timestamp_prefix("02.01.2026 09:15 Hallo", "DD.MM.YYYY HH:mm")

    assert result.timestamp == parse_timestamp("2026-01-02 09:15", FMT)
    assert result.remaining_text == "Hallo"


def test_relative_time():
    three_hours_ago = now_ms() - 3 * 60 * 60 * 1000

    assert relative_time(three_hours_ago) == "3 hours ago"


def test_parse_timestamp_requires_two_digit_fields():
    """Test that one-digit month, day or hour do not match the pattern."""
    assert parse_timestamp("2026-1-2 9:15", FMT) is None
    assert parse_timestamp("2026-01-02 9:15", FMT) is None
    assert parse_timestamp("2026-01-2 09:15", FMT) is None


def test_extract_timestamp_prefix_keeps_loose_dates_in_content():
    """Test that a hand-typed short date stays part of the content."""
    result = extract_timestamp_prefix("2026-1-2 9:15 standup notes", FMT)

    assert result.timestamp is None
    assert result.remaining_text == "2026-1-2 9:15 standup notes"
