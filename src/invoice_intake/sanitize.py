"""Storage-safe filenames."""

from __future__ import annotations

import re

MAX_FILENAME_LENGTH = 100

_RESERVED_CHARS = re.compile(r'[/\\:*?"<>|#%]')
_WHITESPACE = re.compile(r"\s+")


def sanitize_filename(filename: str) -> str:
    """Make ``filename`` safe to use as a storage object name.

    Reserved characters become ``-``, whitespace runs become ``_`` and the
    result is cut to 100 characters. An empty name stays empty.
    """
    cleaned = _RESERVED_CHARS.sub("-", filename or "")
    cleaned = _WHITESPACE.sub("_", cleaned)
    return cleaned[:MAX_FILENAME_LENGTH]
