# utils/text_matching.py
import re
from functools import lru_cache
from typing import Optional, Pattern

WHITESPACE_RE = re.compile(r"\s+")


def normalize_name(name: Optional[str]) -> str:
    """Lowercases and collapses whitespace; used for author matching."""
    if not name:
        return ""
    return WHITESPACE_RE.sub(" ", name.lower()).strip()


@lru_cache(maxsize=4096)
def _token_pattern(needle: str, ascii_only: bool) -> Pattern[str]:
    flags = re.IGNORECASE
    if ascii_only:
        flags |= re.ASCII
    # \w covers Unicode letters, digits and underscore unless re.ASCII is set
    return re.compile(r"(?<!\w)" + re.escape(needle) + r"(?!\w)", flags)


def includes_token(haystack: Optional[str], needle: Optional[str], ascii_only: bool = False) -> bool:
    """
    True when `needle` occurs in `haystack` as a whole token, i.e. not glued to
    a letter, digit or underscore on either side. Case-insensitive.

    >>> includes_token("I study RL agents", "RL")
    True
    >>> includes_token("I study GIRL power", "RL")
    False
    """
    if not haystack or not needle:
        return False
    term = needle.strip()
    if not term:
        return False
    return _token_pattern(term, ascii_only).search(haystack) is not None
