# services/llm_schemas.py
import math
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from utils.sanitization import clean_string_list, clean_text

MAX_LIST_ITEMS = 50


class ClaimedSota(BaseModel):
    benchmark: str
    metric: Optional[str] = None
    value: Optional[str] = None
    split: Optional[str] = None


class ExtractedPaper(BaseModel):
    method: Optional[str] = None
    tasks: List[str] = Field(default_factory=list)
    datasets: List[str] = Field(default_factory=list)
    benchmarks: List[str] = Field(default_factory=list)
    claimed_sota: List[ClaimedSota] = Field(default_factory=list)
    params: Optional[float] = None  # billions
    tokens: Optional[float] = None  # billions
    compute: Optional[str] = None
    code_urls: List[str] = Field(default_factory=list)


class PaperReview(BaseModel):
    strengths: List[str] = Field(default_factory=list)
    weaknesses: List[str] = Field(default_factory=list)
    risks: List[str] = Field(default_factory=list)
    next_experiments: List[str] = Field(default_factory=list)
    reproducibility_notes: Optional[str] = None
    novelty_score: Optional[int] = Field(default=None, ge=0, le=3)
    clarity_score: Optional[int] = Field(default=None, ge=0, le=3)
    caveats: Optional[str] = None


# Field-level coercion: anything that does not fit its field becomes null or empty.

def _optional_text(value: Any) -> Optional[str]:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        value = str(value)
    if not isinstance(value, str):
        return None
    text = clean_text(value)
    return text or None


def _optional_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        try:
            value = float(value.strip().replace(",", ""))
        except ValueError:
            return None
    if isinstance(value, (int, float)) and math.isfinite(value):
        return float(value)
    return None


def _score_0_3(value: Any) -> Optional[int]:
    number = _optional_number(value)
    if number is None or not number.is_integer():
        return None
    score = int(number)
    return score if 0 <= score <= 3 else None


def _urls(value: Any) -> List[str]:
    return [u for u in clean_string_list(value, MAX_LIST_ITEMS) if u.startswith(("http://", "https://"))]


def _claims(value: Any) -> List[Dict[str, Optional[str]]]:
    if not isinstance(value, list):
        return []
    claims = []
    for entry in value[:MAX_LIST_ITEMS]:
        if not isinstance(entry, dict):
            continue
        benchmark = _optional_text(entry.get("benchmark"))
        if not benchmark:
            continue
        claims.append({
            "benchmark": benchmark,
            "metric": _optional_text(entry.get("metric")),
            "value": _optional_text(entry.get("value")),
            "split": _optional_text(entry.get("split")),
        })
    return claims


def normalize_extraction(raw: Any) -> ExtractedPaper:
    """Validates a raw provider payload into an ExtractedPaper without inventing values."""
    data = raw if isinstance(raw, dict) else {}
    return ExtractedPaper(
        method=_optional_text(data.get("method")),
        tasks=clean_string_list(data.get("tasks"), MAX_LIST_ITEMS),
        datasets=clean_string_list(data.get("datasets"), MAX_LIST_ITEMS),
        benchmarks=clean_string_list(data.get("benchmarks"), MAX_LIST_ITEMS),
        claimed_sota=[ClaimedSota(**c) for c in _claims(data.get("claimed_sota"))],
        params=_optional_number(data.get("params")),
        tokens=_optional_number(data.get("tokens")),
        compute=_optional_text(data.get("compute")),
        code_urls=_urls(data.get("code_urls")),
    )


def normalize_review(raw: Any) -> PaperReview:
    data = raw if isinstance(raw, dict) else {}
    return PaperReview(
        strengths=clean_string_list(data.get("strengths"), MAX_LIST_ITEMS),
        weaknesses=clean_string_list(data.get("weaknesses"), MAX_LIST_ITEMS),
        risks=clean_string_list(data.get("risks"), MAX_LIST_ITEMS),
        next_experiments=clean_string_list(data.get("next_experiments"), MAX_LIST_ITEMS),
        reproducibility_notes=_optional_text(data.get("reproducibility_notes")),
        novelty_score=_score_0_3(data.get("novelty_score")),
        clarity_score=_score_0_3(data.get("clarity_score")),
        caveats=_optional_text(data.get("caveats")),
    )
