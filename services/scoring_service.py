# services/scoring_service.py
"""
Momentum scoring for papers.

Each component lies in [0, 1]:
  recency   - exponential decay with a half-life in days
  code      - base value when code exists, bonus when weights are published
  stars     - sqrt scaling of repository stars against a cap
  watchlist - squashed sum of watchlist match points

The global score is a weighted sum of the components, clamped to [0, 1].
"""
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence

from services.watchlist_matching import MatchWeights, applicable_watchlists, match_watchlists
from utils.timestamps import to_naive_utc, utc_now


@dataclass(frozen=True)
class ScoreWeights:
    recency: float = 0.5
    code: float = 0.15
    stars: float = 0.15
    watchlist: float = 0.2


@dataclass(frozen=True)
class ScoringConfig:
    half_life_days: float = 5.0
    stars_cap: int = 1500
    weights: ScoreWeights = ScoreWeights()
    code_base: float = 0.7
    has_weights_bonus: float = 0.3
    match_weights: MatchWeights = MatchWeights()
    max_watch_boost: float = 5.0


DEFAULT_SCORING = ScoringConfig()


@dataclass
class PaperForScoring:
    title: str = ""
    abstract: str = ""
    authors: List[str] = field(default_factory=list)
    categories: List[str] = field(default_factory=list)
    published_at: Optional[Any] = None
    code_urls: List[str] = field(default_factory=list)
    has_weights: Optional[bool] = None
    repo_stars: Optional[float] = None
    benchmarks: List[str] = field(default_factory=list)


@dataclass
class ScoreResult:
    global_score: float
    components: Dict[str, float]


def clamp01(value: float) -> float:
    if value is None or math.isnan(value):
        return 0.0
    return max(0.0, min(1.0, value))


def recency_score(published_at: Any, half_life_days: float = DEFAULT_SCORING.half_life_days,
                  now: Optional[datetime] = None) -> float:
    published = to_naive_utc(published_at)
    if published is None:
        return 0.0
    now = to_naive_utc(now) or utc_now()

    # Future timestamps count as brand new
    age_days = max(0.0, (now - published).total_seconds() / 86400.0)
    if age_days <= 0:
        return 1.0
    return clamp01(math.pow(2.0, -age_days / max(1e-6, half_life_days)))


def code_score(code_urls: Optional[Sequence[str]], has_weights: Optional[bool],
               base: float = DEFAULT_SCORING.code_base,
               weights_bonus: float = DEFAULT_SCORING.has_weights_bonus) -> float:
    if not code_urls:
        return 0.0
    score = base
    if has_weights:
        score += weights_bonus
    return clamp01(score)


def stars_score(stars: Any, cap: int = DEFAULT_SCORING.stars_cap) -> float:
    try:
        count = float(stars)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(count) or count <= 0:
        return 0.0
    capped = min(count, cap)
    return clamp01(math.sqrt(capped / max(1, cap)))


def watchlist_score(paper: PaperForScoring, watchlists: Iterable[Any],
                    config: ScoringConfig = DEFAULT_SCORING) -> float:
    applicable = applicable_watchlists(paper.categories, watchlists or [])
    if not applicable:
        return 0.0

    match = match_watchlists(
        paper.title, paper.abstract, paper.authors, paper.benchmarks, applicable, config.match_weights
    )
    if match.points <= 0:
        return 0.0
    return clamp01(1.0 - math.exp(-match.points / max(1e-6, config.max_watch_boost)))


def _weighted_global(components: Dict[str, float], weights: ScoreWeights) -> float:
    total = (
        weights.recency * components["recency"]
        + weights.code * components["code"]
        + weights.stars * components["stars"]
        + weights.watchlist * components["watchlist"]
    )
    return clamp01(total)


def compute_paper_score(paper: PaperForScoring, watchlists: Optional[Iterable[Any]] = None,
                        config: ScoringConfig = DEFAULT_SCORING,
                        now: Optional[datetime] = None) -> ScoreResult:
    components = {
        "recency": recency_score(paper.published_at, config.half_life_days, now),
        "code": code_score(paper.code_urls, paper.has_weights, config.code_base, config.has_weights_bonus),
        "stars": stars_score(paper.repo_stars, config.stars_cap),
        "watchlist": watchlist_score(paper, watchlists or [], config),
    }
    return ScoreResult(global_score=_weighted_global(components, config.weights), components=components)
