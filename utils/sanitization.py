# utils/sanitization.py
from typing import Any, Iterable, List, Optional
import re

CONTROL_CHARS = r"[\x00-\x08\x0b-\x0c\x0e-\x1f\x7f-\x9f]"


def clean_text(value: Optional[str]) -> str:
    if value is None:
        return ""

    text = re.sub(CONTROL_CHARS, "", value)
    text = re.sub(r"\s+", " ", text)

    return text.strip()


def is_nonempty_text(value: Optional[str]) -> bool:
    return bool(clean_text(value))


def dedupe(values: Iterable[Any]) -> List[Any]:
    """Order-preserving de-duplication."""
    seen = set()
    out = []
    for value in values:
        if value in seen:
            continue
        seen.add(value)
        out.append(value)
    return out


def clean_string_list(values: Any, max_items: Optional[int] = None) -> List[str]:
    """
    Keeps the non-empty string entries of `values`, cleaned and de-duplicated.
    Anything that is not a list yields an empty list.
    """
    if not isinstance(values, (list, tuple)):
        return []
    cleaned = dedupe(clean_text(v) for v in values if isinstance(v, str) and is_nonempty_text(v))
    if max_items is not None:
        cleaned = cleaned[:max_items]
    return cleaned


def clamp_int(value: Any, default: int, minimum: int, maximum: int) -> int:
    """Parses `value` as an int clamped to [minimum, maximum]; falls back to default."""
    if value is None or value == "":
        return default
    try:
        number = int(float(value))
    except (TypeError, ValueError, OverflowError):
        return default
    return max(minimum, min(maximum, number))


def as_bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes")
