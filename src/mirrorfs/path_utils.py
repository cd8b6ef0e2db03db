#!/usr/bin/env python3
"""Path utilities for logical paths and the local mirror."""

import logging
import re
from pathlib import Path
from typing import List

logger = logging.getLogger(__name__)

# Characters Google Drive refuses in item names
_INVALID_CHARS = re.compile(r'[<>:"|?*]')
_DRIVE_LETTER = re.compile(r'^[A-Za-z]:')


class SecurityError(Exception):
    """Raised when a security violation is detected."""
    pass


def normalize_path(logical_path: str) -> str:
    """Canonicalize a caller-supplied logical path for Google Drive.

    Converts backslashes to forward slashes, strips a leading drive letter,
    strips leading and trailing slashes and replaces characters Drive does
    not accept with an underscore. Applying it twice gives the same result
    as applying it once.

    Args:
        logical_path: Arbitrary path string (may be empty or None)

    Returns:
        Normalized path, e.g. "C:\\Users\\x\\file.txt" -> "Users/x/file.txt"
    """
    if not logical_path:
        return ''

    path = logical_path.replace('\\', '/')
    path = _DRIVE_LETTER.sub('', path)
    path = path.lstrip('/')
    path = path.rstrip('/')
    return _INVALID_CHARS.sub('_', path)


def split_segments(path: str) -> List[str]:
    """Split a slash-separated path into its non-empty segments.

    "." segments are dropped, so "", "." and "/" all yield an empty list.
    """
    return [part for part in path.split('/') if part and part != '.']


def validate_local_path(logical_path: str, root: Path) -> Path:
    """Map a logical path onto the local mirror and check it stays inside it.

    The logical path is used as given (not normalized), only leading
    separators are removed so it cannot replace the root.

    Args:
        logical_path: Caller-supplied path
        root: Local mirror root directory

    Returns:
        Absolute local path

    Raises:
        SecurityError: If the path escapes the root
    """
    rel_path = (logical_path or '').lstrip('/\\')
    root_resolved = root.resolve()
    full_path = (root_resolved / rel_path).resolve()

    try:
        full_path.relative_to(root_resolved)
    except ValueError:
        logger.warning(f"Blocked path outside local mirror: {logical_path}")
        raise SecurityError(f"Path traversal detected: {logical_path}")

    return full_path
