# services/watchlist_matching.py
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Optional, Sequence

from utils.text_matching import includes_token, normalize_name

MAX_TERMS_PER_WATCHLIST = 20

REASON_LABELS = {
    "author": "Author",
    "benchmark": "Benchmark",
    "keyword": "Keyword",
    "institution": "Institution",
}


@dataclass(frozen=True)
class MatchWeights:
    author: float = 1.2
    benchmark: float = 1.1
    keyword: float = 1.0


@dataclass
class WatchlistMatch:
    points: float = 0.0
    hits: List[str] = field(default_factory=list)


def watchlist_type(watchlist: Any) -> str:
    value = getattr(watchlist, "type", None) or "keyword"
    return str(getattr(value, "value", value)).lower()


def watchlist_terms(watchlist: Any) -> List[str]:
    terms = getattr(watchlist, "terms", None)
    if not isinstance(terms, (list, tuple)):
        return []
    cleaned = [str(t).strip() for t in terms if isinstance(t, str)]
    return [t for t in cleaned if t][:MAX_TERMS_PER_WATCHLIST]


def applicable_watchlists(paper_categories: Optional[Sequence[str]], watchlists: Iterable[Any]) -> List[Any]:
    """Watchlists without a category restriction accept any paper."""
    categories = set(paper_categories or [])
    kept = []
    for wl in watchlists:
        restricted = getattr(wl, "categories", None) or []
        if not restricted or categories.intersection(restricted):
            kept.append(wl)
    return kept


def match_watchlists(
    title: Optional[str],
    abstract: Optional[str],
    authors: Optional[Sequence[str]],
    benchmarks: Optional[Sequence[str]],
    watchlists: Iterable[Any],
    weights: MatchWeights = MatchWeights(),
) -> WatchlistMatch:
    """
    Scores a paper against already category-filtered watchlists.
    Authors match on normalized name equality, benchmarks on list membership
    or a whole-token hit in the text, keywords and institutions on a
    whole-token hit in title + abstract.
    """
    text = f"{(title or '').lower()} {(abstract or '').lower()}"
    author_names = {normalize_name(a) for a in (authors or []) if a}
    benchmark_names = {str(b).strip().lower() for b in (benchmarks or []) if b}

    match = WatchlistMatch()
    for wl in watchlists:
        kind = watchlist_type(wl)
        for term in watchlist_terms(wl):
            lowered = term.lower()
            if kind == "author":
                hit = normalize_name(term) in author_names
                points = weights.author
            elif kind == "benchmark":
                hit = lowered in benchmark_names or includes_token(text, lowered)
                points = weights.benchmark
            else:
                hit = includes_token(text, lowered)
                points = weights.keyword

            if hit:
                match.points += points
                match.hits.append(f"{REASON_LABELS.get(kind, 'Keyword')}: {term}")
    return match
