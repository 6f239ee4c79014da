"""
Utility functions for contract_audit.
"""

from __future__ import annotations

import fnmatch
import hashlib
import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)


def get_content_hash(content: bytes) -> str:
    """
    Hash file contents for in-process memoization.

    Args:
        content: Raw file bytes.

    Returns:
        Hex MD5 digest.
    """
    return hashlib.md5(content).hexdigest()


def to_posix(path: str | Path) -> str:
    """Render a path with forward slashes regardless of platform."""
    return str(path).replace(os.sep, "/")


def glob_match(rel_path: str, pattern: str) -> bool:
    """
    Match a root-relative POSIX path against a glob pattern.

    ``**/`` prefixes also match at the root, so ``**/dist/**`` excludes
    both ``dist/a.js`` and ``pkg/dist/a.js``.
    """
    candidates = (rel_path, "/" + rel_path)
    for candidate in candidates:
        if fnmatch.fnmatch(candidate, pattern):
            return True
    if pattern.startswith("**/"):
        return glob_match(rel_path, pattern[3:])
    return False


def should_exclude(rel_path: str, ignore_patterns: list[str]) -> bool:
    """
    Check if a root-relative path should be excluded.

    Args:
        rel_path: POSIX path relative to the scanned root.
        ignore_patterns: Glob patterns (``**/node_modules/**``, ``*.min.js``).

    Returns:
        True if any pattern matches.
    """
    return any(glob_match(rel_path, pattern) for pattern in ignore_patterns)


def read_source(filepath: Path) -> tuple[bytes, str]:
    """
    Read a source file.

    Returns:
        Tuple of (raw bytes, decoded text). Undecodable bytes are replaced.

    Raises:
        OSError: If the file can't be read.
    """
    raw = filepath.read_bytes()
    return raw, raw.decode("utf-8", errors="replace")


def truncate_string(text: str | None, max_length: int = 200) -> str | None:
    """Truncate a string to max_length, adding ellipsis if needed."""
    if text is None:
        return None
    if len(text) <= max_length:
        return text
    return text[: max_length - 3] + "..."
