"""Tests for block id helpers."""

from unittest.mock import patch

from moments.ids import (
    extract_block_id,
    generate_block_id,
    is_valid_block_id,
    remove_block_id,
    strip_block_id,
)


def test_generate_block_id_format():
    """Test that generated ids are m- plus six lowercase alphanumerics."""
    block_id = generate_block_id()

    assert block_id.startswith("m-")
    assert len(block_id) == 8
    assert is_valid_block_id(block_id)


def test_generate_block_id_avoids_existing_ids():
    """Test that 10,000 ids generated against a growing set are all distinct."""
    existing: set[str] = set()

    for _ in range(10_000):
        block_id = generate_block_id(existing)
        assert block_id not in existing
        existing.add(block_id)

    assert len(existing) == 10_000


def test_generate_block_id_falls_back_after_collisions():
    """Test the timestamp-based fallback when every random candidate collides."""
    with patch("moments.ids._random_string", return_value="aaaaaa"):
        block_id = generate_block_id({"m-aaaaaa"})

    assert block_id != "m-aaaaaa"
    assert is_valid_block_id(block_id)


def test_is_valid_block_id():
    assert is_valid_block_id("m-abc123")
    assert not is_valid_block_id("m-ABC123")
    assert not is_valid_block_id("x-abc123")
    assert not is_valid_block_id("m-")
    assert not is_valid_block_id("^m-abc123")


def test_extract_block_id():
    """Test marker detection at the end of a line."""
    assert extract_block_id("some text ^m-abc123") == "m-abc123"
    assert extract_block_id("  ^m-abc123  ") == "m-abc123"
    assert extract_block_id("^m-abc123 trailing") is None
    assert extract_block_id("^m-ABC") is None
    assert extract_block_id("no marker") is None


def test_strip_block_id_inline():
    result = strip_block_id("Some content ^m-abc123")

    assert result.content == "Some content"
    assert result.block_id == "m-abc123"


def test_strip_block_id_standalone_with_trailing_blank_lines():
    """Test that a marker line followed by blank lines is still found."""
    result = strip_block_id("First\nSecond\n^m-abc123\n\n")

    assert result.content == "First\nSecond"
    assert result.block_id == "m-abc123"


def test_strip_block_id_without_marker():
    result = strip_block_id("  plain text  ")

    assert result.content == "plain text"
    assert result.block_id is None


def test_remove_block_id_removes_every_marker():
    """Test that display text loses all markers, inline or standalone."""
    result = remove_block_id("a ^m-abc123\n^m-def456\nb")

    assert "^m-" not in result
    assert result == "a\n\nb"
