# tests/test_scoring_service.py
from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest

from services.scoring_service import (
    PaperForScoring,
    code_score,
    compute_paper_score,
    recency_score,
    stars_score,
)

NOW = datetime(2025, 3, 1, 12, 0, 0)


def watchlist(type_, terms, categories=None):
    return SimpleNamespace(type=type_, terms=terms, categories=categories or [])


@pytest.mark.parametrize("published", [
    NOW - timedelta(days=365 * 40),
    NOW + timedelta(days=365 * 40),
    NOW,
    None,
    "not a date",
])
@pytest.mark.parametrize("stars", [0, 10_000_000, -5, float("nan"), None])
def test_global_score_stays_in_unit_range(published, stars):
    paper = PaperForScoring(
        title="Knowledge distillation for RL",
        abstract="We distill policies.",
        authors=["Ada Lovelace"],
        published_at=published,
        code_urls=["https://github.com/a/b"],
        has_weights=True,
        repo_stars=stars,
        benchmarks=["MMLU"],
    )
    wls = [watchlist("keyword", ["distillation", "RL"]), watchlist("author", ["ada lovelace"]),
           watchlist("benchmark", ["MMLU"])] * 10
    result = compute_paper_score(paper, wls, now=NOW)
    assert 0.0 <= result.global_score <= 1.0
    for value in result.components.values():
        assert 0.0 <= value <= 1.0


def test_recency_halves_every_half_life():
    assert recency_score(NOW, now=NOW) == 1.0
    assert recency_score(NOW - timedelta(days=5), now=NOW) == pytest.approx(0.5)
    assert recency_score(NOW + timedelta(days=3), now=NOW) == 1.0
    assert recency_score(None, now=NOW) == 0.0


def test_code_score_steps():
    assert code_score([], True) == 0.0
    assert code_score(["https://github.com/a/b"], False) == pytest.approx(0.7)
    assert code_score(["https://github.com/a/b"], True) == 1.0


def test_stars_score_saturates_at_cap():
    assert stars_score(0) == 0.0
    assert stars_score(375) == pytest.approx(0.5)
    assert stars_score(1500) == 1.0
    assert stars_score(10_000_000) == 1.0


def test_watchlist_component_needs_matching_category():
    paper = PaperForScoring(title="Diffusion models", abstract="", categories=["cs.CV"], published_at=NOW)
    restricted = [watchlist("keyword", ["diffusion"], categories=["cs.CL"])]
    open_list = [watchlist("keyword", ["diffusion"])]

    assert compute_paper_score(paper, restricted, now=NOW).components["watchlist"] == 0.0
    assert compute_paper_score(paper, open_list, now=NOW).components["watchlist"] > 0.0


def test_weighted_sum_without_watchlists():
    paper = PaperForScoring(published_at=NOW, code_urls=["x"], has_weights=False, repo_stars=1500)
    result = compute_paper_score(paper, now=NOW)
    assert result.global_score == pytest.approx(0.5 * 1.0 + 0.15 * 0.7 + 0.15 * 1.0)
