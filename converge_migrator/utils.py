"""
Utility functions for converge_migrator.
"""

from __future__ import annotations

import fnmatch
import hashlib
import logging
from pathlib import PurePosixPath

from converge_migrator.config import ALWAYS_EXCLUDED_DIRS, ALWAYS_EXCLUDED_FILES

logger = logging.getLogger(__name__)


def content_digest(data: bytes) -> str:
    """
    Generate a SHA-256 digest of raw file contents.

    Args:
        data: File bytes.

    Returns:
        Digest string in format "sha256:<hex>".
    """
    return f"sha256:{hashlib.sha256(data).hexdigest()}"


def split_lines(content: str) -> list[str]:
    """Split text into lines on LF, dropping a trailing CR from each."""
    return [line[:-1] if line.endswith("\r") else line for line in content.split("\n")]


def extract_code_block(lines: list[str], center_index: int, context: int = 5) -> str:
    """
    Extract a window of lines around a 0-based line index, clipped to bounds.

    Args:
        lines: File lines.
        center_index: 0-based index of the anchor line.
        context: Lines to include on either side.

    Returns:
        The joined window.
    """
    if not lines:
        return ""
    start = max(0, center_index - context)
    end = min(len(lines) - 1, center_index + context)
    return "\n".join(lines[start:end + 1])


def matches_glob(rel_path: str, pattern: str) -> bool:
    """
    Match a POSIX relative path against a glob.

    ``*`` may cross directory separators (fnmatch semantics), and a leading
    ``**/`` also matches files at the root.
    """
    if fnmatch.fnmatch(rel_path, pattern):
        return True
    if pattern.startswith("**/") and fnmatch.fnmatch(rel_path, pattern[3:]):
        return True
    return False


def is_always_excluded(rel_path: str) -> bool:
    """
    Check a relative path against the fixed dependency/build/VCS exclusions.

    Args:
        rel_path: Path relative to the workspace root.

    Returns:
        True if any directory component or the file name is always excluded.
    """
    parts = PurePosixPath(rel_path.replace("\\", "/")).parts
    if any(part in ALWAYS_EXCLUDED_DIRS for part in parts[:-1]):
        return True
    name = parts[-1] if parts else ""
    return any(fnmatch.fnmatch(name, pattern) for pattern in ALWAYS_EXCLUDED_FILES)


def should_exclude(rel_path: str, exclude_patterns: list[str]) -> bool:
    """
    Check if a path should be excluded.

    Args:
        rel_path: POSIX path relative to the workspace root.
        exclude_patterns: User globs. Globs without a slash or wildcard are
            treated as directory names.

    Returns:
        True if the path should be excluded.
    """
    if is_always_excluded(rel_path):
        return True

    parts = rel_path.split("/")
    for pattern in exclude_patterns:
        if "/" not in pattern and not any(ch in pattern for ch in "*?["):
            # Bare directory name (e.g., "fixtures")
            if pattern in parts[:-1]:
                return True
        elif matches_glob(rel_path, pattern):
            return True
    return False

