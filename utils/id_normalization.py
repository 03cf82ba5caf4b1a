# utils/id_normalization.py
import re
from typing import Iterable, List, Optional, Tuple, Union

ARXIV_URL_RE = re.compile(r"arxiv\.org/(?:abs|pdf)/(\d{4}\.\d{5})(?:v\d+)?", re.IGNORECASE)
ARXIV_RAW_RE = re.compile(r"^(\d{4}\.\d{5})(?:v\d+)?$", re.IGNORECASE)
ARXIV_SPLIT_RE = re.compile(r"^(\d{4}\.\d{5})(?:v(\d+))?$", re.IGNORECASE)
ARXIV_BASE_RE = re.compile(r"^\d{4}\.\d{5}$")
VERSION_SUFFIX_RE = re.compile(r"v\d+$", re.IGNORECASE)


def normalize_arxiv_id(value: Optional[str]) -> Optional[str]:
    """
    Accepts a raw id (2501.12345), a versioned id (2501.12345v2) or an
    arxiv.org abs/pdf URL and returns the base id. Returns None when the
    input does not contain a recognizable identifier.
    """
    if not value:
        return None
    text = str(value).strip()
    if not text:
        return None

    match = ARXIV_URL_RE.search(text) or ARXIV_RAW_RE.match(text)
    if not match:
        return None
    return match.group(1)


def strip_version(arxiv_id: str) -> str:
    return VERSION_SUFFIX_RE.sub("", str(arxiv_id).strip())


def is_base_id(value: Optional[str]) -> bool:
    return bool(value) and bool(ARXIV_BASE_RE.match(value))


def split_arxiv_id(raw_id: str) -> Tuple[str, int]:
    """Splits 2501.12345v3 into ("2501.12345", 3). Missing versions count as 1."""
    text = str(raw_id or "").strip()
    match = ARXIV_SPLIT_RE.match(text)
    if not match:
        return strip_version(text), 1
    version = int(match.group(2)) if match.group(2) else 1
    return match.group(1), version


def parse_arxiv_id_list(values: Union[str, Iterable[str], None], cap: Optional[int] = None) -> List[str]:
    """
    Normalizes a CSV string or list of identifiers, dropping invalid entries
    and duplicates (first occurrence wins), truncated to `cap`.
    """
    if values is None:
        return []
    if isinstance(values, str):
        values = values.split(",")

    ids: List[str] = []
    seen = set()
    for value in values:
        base_id = normalize_arxiv_id(value)
        if not base_id or base_id in seen:
            continue
        seen.add(base_id)
        ids.append(base_id)
        if cap is not None and len(ids) >= cap:
            break
    return ids
