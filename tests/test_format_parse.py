"""Tests for parsing Moments documents."""

from moments.format import parse_moments_doc
from moments.ids import is_valid_block_id
from moments.timefmt import now_ms, parse_timestamp

FMT = "YYYY-MM-DD HH:mm"

SAMPLE = (
    "---\n"
    "moments-plugin: true\n"
    "version: 2\n"
    "name: My moments\n"
    "---\n"
    "\n"
    "- 2026-01-02 10:21 This is a moment #tag [[Link]]\n"
    "  Second line of content\n"
    "  ^m-abc123\n"
    "\n"
    "- 2026-01-02 09:15 Another moment\n"
    "  ^m-def456\n"
    "\n"
    "***\n"
    "## Archive\n"
    "\n"
    "- 2026-01-01 08:00 Archived one\n"
    "  ^m-xyz789\n"
)


def test_parse_frontmatter_coerces_values():
    """Test that true/false and digit-only values are coerced."""
    parsed = parse_moments_doc(SAMPLE, FMT)

    assert parsed.frontmatter == {"moments-plugin": True, "version": 2, "name": "My moments"}


def test_parse_frontmatter_ignores_lines_without_key():
    """Test that malformed frontmatter lines are skipped."""
    text = "---\nmoments-plugin: true\njust words\n: no key\nflag: false\n---\n"

    parsed = parse_moments_doc(text, FMT)

    assert parsed.frontmatter == {"moments-plugin": True, "flag": False}
    assert parsed.entries == []


def test_parse_without_frontmatter():
    """Test that a document without frontmatter parses its entries."""
    parsed = parse_moments_doc("- 2026-01-02 09:15 Hello\n  ^m-abc123\n", FMT)

    assert parsed.frontmatter == {}
    assert [e.id for e in parsed.entries] == ["m-abc123"]
    assert parsed.errors == []


def test_parse_entries_and_archive():
    """Test that entries before the separator are active and the rest archived."""
    parsed = parse_moments_doc(SAMPLE, FMT)

    assert [e.id for e in parsed.entries] == ["m-abc123", "m-def456"]
    assert [e.id for e in parsed.archive_entries] == ["m-xyz789"]
    assert parsed.archive_start_offset == SAMPLE.index("***")
    assert parsed.errors == []
    assert parsed.original_text == SAMPLE


def test_parse_entry_content_and_timestamp():
    """Test raw, raw_with_prefix and created_at of a multi-line entry."""
    parsed = parse_moments_doc(SAMPLE, FMT)
    entry = parsed.entries[0]

    assert entry.raw == "This is a moment #tag [[Link]]\nSecond line of content"
    assert entry.raw_with_prefix == (
        "2026-01-02 10:21 This is a moment #tag [[Link]]\nSecond line of content"
    )
    assert entry.created_at == parse_timestamp("2026-01-02 10:21", FMT)
    assert not entry.id_missing


def test_parse_spans_cover_exact_blocks():
    """Test that each span slices exactly its block out of the source text."""
    parsed = parse_moments_doc(SAMPLE, FMT)

    def block(span_id):
        span = parsed.spans[span_id]
        return SAMPLE[span.start : span.end + 1]

    assert block("m-abc123") == (
        "- 2026-01-02 10:21 This is a moment #tag [[Link]]\n"
        "  Second line of content\n"
        "  ^m-abc123"
    )
    assert block("m-def456") == "- 2026-01-02 09:15 Another moment\n  ^m-def456"
    assert block("m-xyz789") == "- 2026-01-01 08:00 Archived one\n  ^m-xyz789"


def test_parse_spans_are_ordered_and_disjoint():
    """Test that spans follow file order and never overlap."""
    parsed = parse_moments_doc(SAMPLE, FMT)
    spans = [parsed.spans[e.id] for e in parsed.all_entries]

    for previous, current in zip(spans, spans[1:]):
        assert previous.end < current.start


def test_parse_inline_block_id():
    """Test that a marker at the end of the content line is recognized."""
    parsed = parse_moments_doc("- 2026-01-02 09:15 Inline thing ^m-inl123\n", FMT)

    assert len(parsed.entries) == 1
    assert parsed.entries[0].id == "m-inl123"
    assert parsed.entries[0].raw == "Inline thing"
    assert parsed.errors == []


def test_parse_missing_block_id_reports_issue():
    """Test that a block without marker gets a synthesized id and a diagnostic."""
    parsed = parse_moments_doc("- 2026-01-02 09:15 No id here\n", FMT)

    assert len(parsed.entries) == 1
    entry = parsed.entries[0]
    assert entry.id_missing
    assert is_valid_block_id(entry.id)
    assert entry.id in parsed.spans

    assert len(parsed.errors) == 1
    assert parsed.errors[0].message == f"Entry missing block id, assigned: {entry.id}"
    assert parsed.errors[0].context == "2026-01-02 09:15 No id here"


def test_parse_entry_without_timestamp_uses_parse_time():
    """Test that an entry without timestamp prefix is stamped with the parse instant."""
    before = now_ms()
    parsed = parse_moments_doc("- Just text\n  ^m-aaa111\n", FMT)
    after = now_ms()

    entry = parsed.entries[0]
    assert entry.raw == "Just text"
    assert entry.raw_with_prefix == "Just text"
    assert before <= entry.created_at <= after


def test_parse_blank_lines_inside_block():
    """Test that blank lines inside a block belong to the entry."""
    text = "- 2026-01-02 09:15 First\n\n  after blank\n  ^m-bbb222\n"

    parsed = parse_moments_doc(text, FMT)

    assert parsed.entries[0].raw == "First\n\nafter blank"
    span = parsed.spans["m-bbb222"]
    assert text[span.start : span.end + 1] == text.rstrip("\n")


def test_parse_unindented_line_ends_block():
    """Test that a non-indented, non-list line closes the current block."""
    text = (
        "- 2026-01-02 09:15 One\n"
        "  ^m-one111\n"
        "Paragraph text\n"
        "- 2026-01-02 09:16 Two\n"
        "  ^m-two222\n"
    )

    parsed = parse_moments_doc(text, FMT)

    assert [e.id for e in parsed.entries] == ["m-one111", "m-two222"]
    assert parsed.entries[0].raw == "One"
    assert parsed.spans["m-one111"].end < text.index("Paragraph")


def test_parse_discards_empty_blocks():
    """Test that a list item holding only a marker yields no entry."""
    parsed = parse_moments_doc("- ^m-abc123\n", FMT)

    assert parsed.entries == []
    assert parsed.spans == {}


def test_parse_preserves_continuation_indentation():
    """Test that only the two-space block indent is removed."""
    text = "- 2026-01-02 09:15 Code:\n      indented\n  ^m-cod111\n"

    parsed = parse_moments_doc(text, FMT)

    assert parsed.entries[0].raw == "Code:\n    indented"


def test_parse_duplicate_block_ids_last_span_wins():
    """Test that a repeated marker keeps both entries but maps to the later span."""
    text = (
        "- 2026-01-02 09:15 First\n  ^m-dup111\n\n"
        "- 2026-01-02 09:16 Second\n  ^m-dup111\n"
    )

    parsed = parse_moments_doc(text, FMT)

    assert [e.id for e in parsed.entries] == ["m-dup111", "m-dup111"]
    assert parsed.spans["m-dup111"].start == text.index("- 2026-01-02 09:16")


def test_parse_is_idempotent_for_complete_entries():
    """Test that re-parsing yields the same entries."""
    first = parse_moments_doc(SAMPLE, FMT)
    second = parse_moments_doc(SAMPLE, FMT)

    assert first.entries == second.entries
    assert first.archive_entries == second.archive_entries
    assert first.spans == second.spans


def test_parse_empty_document():
    """Test that an empty document parses to nothing."""
    parsed = parse_moments_doc("", FMT)

    assert parsed.entries == []
    assert parsed.archive_entries == []
    assert parsed.errors == []
    assert parsed.archive_start_offset == -1


def test_get_entry_and_find_by_start():
    """Test lookup helpers on the parsed document."""
    parsed = parse_moments_doc(SAMPLE, FMT)

    assert parsed.get_entry("m-xyz789").raw == "Archived one"
    assert parsed.get_entry("m-xyz789", include_archive=False) is None

    start = parsed.spans["m-def456"].start
    assert parsed.find_entry_by_start(start).id == "m-def456"
    assert parsed.find_entry_by_start(0) is None


def test_parse_span_excludes_trailing_blank_lines():
    """Test that whitespace-only and empty lines after the marker stay outside the span."""
    text = (
        "- 2026-01-02 09:15 A\n"
        "  ^m-aaa111\n"
        "  \n"
        "\n"
        "- 2026-01-02 09:16 B\n"
        "  ^m-bbb222\n"
    )

    parsed = parse_moments_doc(text, FMT)
    span = parsed.spans["m-aaa111"]

    assert text[span.start : span.end + 1] == "- 2026-01-02 09:15 A\n  ^m-aaa111"
    assert parsed.entries[0].raw == "A"
