"""Markdown helpers for entry content (tags, syntax detection)."""

import re
from dataclasses import dataclass

TAG_PATTERN = r"#[a-zA-Z0-9_\-/]+"

_TAG_RE = re.compile(TAG_PATTERN)
_STRIP_TAG_RE = re.compile(r"\s*" + TAG_PATTERN)

_MARKDOWN_PATTERNS = [
    re.compile(r"\[\[.+?\]\]"),  # internal links
    re.compile(r"\[.+?\]\(.+?\)"),  # external links
    _TAG_RE,
    re.compile(r"\*\*.+?\*\*"),
    re.compile(r"\*.+?\*"),
    re.compile(r"_.+?_"),
    re.compile(r"~~.+?~~"),
    re.compile(r"`.+?`"),
    re.compile(r"^>\s", re.MULTILINE),
    re.compile(r"^[-*]\s", re.MULTILINE),
    re.compile(r"^\d+\.\s", re.MULTILINE),
    re.compile(r"^#{1,6}\s", re.MULTILINE),
    re.compile(r"!\[\[.+?\]\]"),  # embeds
    re.compile(r"!\[.+?\]\(.+?\)"),  # images
]


@dataclass(frozen=True)
class TagExtraction:
    tags: list[str]
    content_without_tags: str


def extract_tags(content: str) -> TagExtraction:
    """Collect ``#tags`` in first-seen order and return the content without them."""
    tags = list(dict.fromkeys(_TAG_RE.findall(content)))

    stripped = _STRIP_TAG_RE.sub("", content).strip()
    stripped = re.sub(r"\n\s*\n\s*\n", "\n\n", stripped)
    stripped = re.sub(r"  +", " ", stripped).strip()

    return TagExtraction(tags=tags, content_without_tags=stripped)


def has_tags(content: str) -> bool:
    return bool(_TAG_RE.search(content))


def contains_markdown_syntax(content: str) -> bool:
    """Quick check whether ``content`` needs markdown rendering."""
    return any(pattern.search(content) for pattern in _MARKDOWN_PATTERNS)
