"""Filesystem operations for the Moments file.

Failures are returned as ``FileOperationResult`` values, never raised.
"""

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Generic, Optional, TypeVar

from .format import FRONTMATTER_KEY, create_basic_frontmatter

logger = logging.getLogger(__name__)

T = TypeVar("T")

_FRONTMATTER_BLOCK_RE = re.compile(r"^---\n([\s\S]*?)\n---")


@dataclass(frozen=True)
class FileOperationResult(Generic[T]):
    success: bool
    data: Optional[T] = None
    error: Optional[str] = None


def ensure_moments_file(path: Path, auto_create: bool) -> FileOperationResult[Path]:
    """Ensure the Moments file exists, creating it with frontmatter if allowed.

    Args:
        path: Path to the Moments file
        auto_create: Whether to create the file when it is missing

    Returns:
        FileOperationResult carrying the file path on success
    """
    if path.is_file():
        return FileOperationResult(success=True, data=path)

    if not auto_create:
        return FileOperationResult(success=False, error=f"File not found: {path}")

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(create_basic_frontmatter(), encoding="utf-8")
    except OSError as e:
        logger.error(f"Failed to create {path}: {e}")
        return FileOperationResult(success=False, error=f"Failed to create file: {e}")

    logger.info(f"Created Moments file at {path}")
    return FileOperationResult(success=True, data=path)


def read_moments_file(path: Path) -> FileOperationResult[str]:
    try:
        with open(path, "r", encoding="utf-8", newline="") as f:
            content = f.read()
    except (OSError, UnicodeDecodeError) as e:
        return FileOperationResult(success=False, error=f"Failed to read file: {e}")
    return FileOperationResult(success=True, data=content)


def write_moments_file(path: Path, content: str) -> FileOperationResult[None]:
    """Write ``content`` atomically via a temporary sibling file."""
    temp_file = path.with_suffix(path.suffix + ".tmp")
    try:
        with open(temp_file, "w", encoding="utf-8", newline="") as f:
            f.write(content)
        temp_file.replace(path)
    except OSError as e:
        temp_file.unlink(missing_ok=True)
        return FileOperationResult(success=False, error=f"Failed to write file: {e}")

    logger.debug(f"Wrote {len(content)} chars to {path}")
    return FileOperationResult(success=True)


def is_moments_file(path: Path) -> bool:
    """Check whether ``path`` carries ``moments-plugin: true`` in its frontmatter."""
    result = read_moments_file(path)
    if not result.success or result.data is None:
        return False

    content = result.data
    if FRONTMATTER_KEY not in content:
        return False

    match = _FRONTMATTER_BLOCK_RE.match(content)
    if not match:
        return False

    frontmatter = match.group(1)
    return f"{FRONTMATTER_KEY}: true" in frontmatter or f"{FRONTMATTER_KEY}:true" in frontmatter
