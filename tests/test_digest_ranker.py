# tests/test_digest_ranker.py
from datetime import datetime, timedelta
from types import SimpleNamespace

from services.digest_service import CandidatePaper, rank_for_user
from services.watchlist_matching import watchlist_terms

NOW = datetime(2025, 3, 1)


def candidate(pid, title="", abstract="", categories=None, days_ago=0):
    return CandidatePaper(
        id=pid,
        arxiv_id=f"2503.{pid.zfill(5)}",
        title=title,
        abstract=abstract,
        categories=categories or ["cs.LG"],
        published_at=NOW - timedelta(days=days_ago),
    )


def watchlist(type_, terms, categories=None):
    return SimpleNamespace(type=type_, terms=terms, categories=categories or [])


def score(value):
    return SimpleNamespace(global_score=value)


def test_distillation_keyword_end_to_end():
    papers = [
        candidate("1", title="Compact students", abstract="We study knowledge distillation for LLMs."),
        candidate("2", title="Vision transformers", abstract="A new backbone."),
    ]
    ranked = rank_for_user(papers, {}, {}, {}, [watchlist("keyword", ["distillation"])])

    assert [r.paper.id for r in ranked] == ["1"]
    assert "Keyword: distillation" in ranked[0].reason


def test_zero_match_papers_are_excluded_even_with_high_momentum():
    papers = [candidate("1", title="Unrelated"), candidate("2", title="Graph distillation")]
    scores = {"1": score(1.0), "2": score(0.0)}
    ranked = rank_for_user(papers, {}, scores, {}, [watchlist("keyword", ["distillation"])])
    assert [r.paper.id for r in ranked] == ["2"]


def test_equal_points_newer_paper_first():
    older = candidate("1", title="Sparse attention", days_ago=3)
    newer = candidate("2", title="Sparse attention again", days_ago=1)
    ranked = rank_for_user([older, newer], {}, {}, {}, [watchlist("keyword", ["sparse attention"])])
    assert [r.paper.id for r in ranked] == ["2", "1"]


def test_momentum_breaks_ties_between_equal_matches():
    a = candidate("1", title="Mixture of experts", days_ago=1)
    b = candidate("2", title="Mixture of experts", days_ago=3)
    ranked = rank_for_user([a, b], {}, {"2": score(0.9)}, {}, [watchlist("keyword", ["mixture of experts"])])
    assert [r.paper.id for r in ranked] == ["2", "1"]
    assert ranked[0].score == 1.0 + 0.3 * 0.9


def test_author_outweighs_benchmark_outweighs_keyword():
    by_author = candidate("1", title="x")
    by_benchmark = candidate("2", title="y")
    by_keyword = candidate("3", title="Retrieval augmentation")
    structured = {"2": SimpleNamespace(benchmarks=["GSM8K"])}
    authors = {"1": ["Ada  Lovelace"]}
    wls = [
        watchlist("author", ["ada lovelace"]),
        watchlist("benchmark", ["gsm8k"]),
        watchlist("keyword", ["retrieval"]),
    ]
    ranked = rank_for_user([by_keyword, by_benchmark, by_author], structured, {}, authors, wls)
    assert [r.paper.id for r in ranked] == ["1", "2", "3"]
    assert ranked[0].reason == "Author: ada lovelace"
    assert ranked[1].reason == "Benchmark: gsm8k"


def test_category_restricted_watchlists_exclude_other_categories():
    cv = candidate("1", title="Diffusion for images", categories=["cs.CV"])
    cl = candidate("2", title="Diffusion for text", categories=["cs.CL"])
    ranked = rank_for_user([cv, cl], {}, {}, {}, [watchlist("keyword", ["diffusion"], categories=["cs.CL"])])
    assert [r.paper.id for r in ranked] == ["2"]


def test_reason_keeps_first_four_hits_and_limit_applies():
    paper = candidate("1", title="alpha beta gamma delta epsilon")
    other = candidate("2", title="alpha")
    wls = [watchlist("keyword", ["alpha", "beta", "gamma", "delta", "epsilon"])]
    ranked = rank_for_user([paper, other], {}, {}, {}, wls, limit=1)
    assert len(ranked) == 1
    assert ranked[0].reason == "Keyword: alpha, Keyword: beta, Keyword: gamma, Keyword: delta"


def test_no_watchlists_or_empty_terms_yield_nothing():
    papers = [candidate("1", title="anything")]
    assert rank_for_user(papers, {}, {}, {}, []) == []
    assert rank_for_user(papers, {}, {}, {}, [watchlist("keyword", [])]) == []


def test_output_is_deterministic():
    papers = [candidate(str(i), title="agents", days_ago=i % 3) for i in range(1, 10)]
    wls = [watchlist("keyword", ["agents"])]
    first = [r.paper.id for r in rank_for_user(papers, {}, {}, {}, wls)]
    second = [r.paper.id for r in rank_for_user(list(reversed(papers)), {}, {}, {}, wls)]
    assert first == second


def test_string_terms_are_ignored_not_split_into_letters():
    wl = watchlist("keyword", "distillation")
    assert watchlist_terms(wl) == []
    assert rank_for_user([candidate("1", title="a distillation study")], {}, {}, {}, [wl]) == []
