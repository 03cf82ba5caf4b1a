# services/enrichment_service.py
import asyncio
import logging
import re
import time
from datetime import timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from clients.ar5iv_client import fetch_ar5iv_github_urls
from clients.github_client import fetch_repo_meta, fetch_repo_readme, parse_github_repo
from clients.pwc_client import lookup_pwc_by_arxiv
from database.models.paper_model import Paper
from database.models.enrichment_model import PaperEnrichment, PaperStructured, PaperScore, PwcLink
from database.upsert import dialect_insert
from services.ingestion_service import JOB_MAX_SECONDS
from services.paper_llm_service import extract_paper_fields
from services.paper_query_service import get_authors_by_paper
from services.scoring_service import PaperForScoring, compute_paper_score
from utils.sanitization import dedupe
from utils.timestamps import utc_now

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 30
DEFAULT_DAYS = 7
MIN_CANDIDATE_FETCH = 10
README_EXCERPT_CHARS = 1200

WEIGHTS_HINT_RE = re.compile(r"(?:checkpoint|weights|\.safetensors|\.pt\b|\.bin\b)", re.IGNORECASE)


def select_candidates(db: Session, ids: Optional[List[str]], limit: int, days: int) -> List[Paper]:
    """Explicit ids win; otherwise the newest papers of the window not enriched since its start."""
    if ids:
        rows = db.execute(select(Paper).where(Paper.arxiv_id_base.in_(ids))).scalars().all()
        by_id = {p.arxiv_id_base: p for p in rows}
        return [by_id[i] for i in ids if i in by_id]

    query = select(Paper).order_by(Paper.published_at.desc(), Paper.id.desc())
    cutoff = utc_now() - timedelta(days=days) if days > 0 else None
    if cutoff is not None:
        query = query.where(Paper.published_at >= cutoff)
    papers = db.execute(query.limit(max(limit, MIN_CANDIDATE_FETCH))).scalars().all()

    if cutoff is not None and papers:
        recently_enriched = set(db.execute(
            select(PaperEnrichment.paper_id).where(
                PaperEnrichment.paper_id.in_([p.id for p in papers]),
                PaperEnrichment.updated_at >= cutoff,
            )
        ).scalars().all())
        papers = [p for p in papers if p.id not in recently_enriched]

    return list(papers)[:limit]


def _github_enrichment(code_urls: List[str], include_readme: bool) -> Dict[str, Any]:
    """Metadata of the first parsable repository; lookups are best-effort."""
    result: Dict[str, Any] = {"primary_repo": None, "repo_license": None, "repo_stars": None,
                              "has_weights": None, "readme_excerpt": None, "readme_sha": None}
    for url in code_urls:
        parsed = parse_github_repo(url)
        if not parsed:
            continue
        owner, repo = parsed
        result["primary_repo"] = f"{owner}/{repo}"
        try:
            meta = fetch_repo_meta(owner, repo)
            result["repo_license"] = meta.get("license")
            result["repo_stars"] = meta.get("stars")
        except Exception as e:
            logger.warning(f"GitHub metadata failed for {owner}/{repo}: {e}")

        if include_readme:
            try:
                readme = fetch_repo_readme(owner, repo)
            except Exception as e:
                logger.warning(f"README fetch failed for {owner}/{repo}: {e}")
                readme = None
            if readme:
                text = readme.get("text") or ""
                result["readme_excerpt"] = text[:README_EXCERPT_CHARS] or None
                result["readme_sha"] = readme.get("sha") or None
                result["has_weights"] = bool(WEIGHTS_HINT_RE.search(text))
        break
    return result


def _upsert_score(db: Session, paper_id: str, global_score: float, components: Dict[str, float]) -> None:
    now = utc_now()
    stmt = dialect_insert(db, PaperScore).values(
        paper_id=paper_id, global_score=global_score, components=components, updated_at=now,
    ).on_conflict_do_update(
        index_elements=["paper_id"],
        set_={"global_score": global_score, "components": components, "updated_at": now},
    )
    db.execute(stmt)


async def enrich_paper(db: Session, paper: Paper, include_readme: bool = False,
                       extract: bool = True, pwc: bool = True) -> str:
    """Runs every enrichment source for one paper, writes its rows and score. Returns a short info line."""
    base_id = paper.arxiv_id_base

    try:
        ar5iv_urls = await fetch_ar5iv_github_urls(base_id)
    except Exception as e:
        logger.warning(f"ar5iv lookup failed for {base_id}: {e}")
        ar5iv_urls = []

    extracted = None
    if extract:
        try:
            extracted = await asyncio.to_thread(extract_paper_fields, paper.title, paper.abstract or "")
        except Exception as e:
            logger.warning(f"Extraction failed for {base_id}: {e}")

    code_urls = dedupe(ar5iv_urls + (extracted.code_urls if extracted else []))
    github = await asyncio.to_thread(_github_enrichment, code_urls, include_readme)

    pwc_data = None
    if pwc:
        try:
            pwc_data = await asyncio.to_thread(lookup_pwc_by_arxiv, base_id)
        except Exception as e:
            logger.warning(f"PwC lookup failed for {base_id}: {e}")

    now = utc_now()
    db.add(PaperEnrichment(paper_id=paper.id, code_urls=code_urls, updated_at=now, **github))
    if extracted is not None:
        db.add(PaperStructured(
            paper_id=paper.id,
            method=extracted.method,
            tasks=extracted.tasks,
            datasets=extracted.datasets,
            benchmarks=extracted.benchmarks,
            claimed_sota=[c.model_dump() for c in extracted.claimed_sota],
            params=extracted.params,
            tokens=extracted.tokens,
            compute=extracted.compute,
            code_urls=extracted.code_urls,
            created_at=now,
        ))
    if pwc_data is not None:
        db.add(PwcLink(
            paper_id=paper.id,
            found=bool(pwc_data.get("found")),
            paper_url=pwc_data.get("paper_url"),
            repo_url=pwc_data.get("repo_url"),
            repo_stars=pwc_data.get("repo_stars"),
            search_url=pwc_data.get("search_url") or "",
            sota_links=pwc_data.get("sota_links") or [],
            updated_at=now,
        ))

    stars = github["repo_stars"]
    if stars is None and pwc_data:
        stars = pwc_data.get("repo_stars")

    score = compute_paper_score(PaperForScoring(
        title=paper.title,
        abstract=paper.abstract or "",
        authors=get_authors_by_paper(db, [paper.id]).get(paper.id, []),
        categories=list(paper.categories or []),
        published_at=paper.published_at,
        code_urls=code_urls,
        has_weights=github["has_weights"],
        repo_stars=stars,
        benchmarks=extracted.benchmarks if extracted else [],
    ), now=now)
    _upsert_score(db, paper.id, score.global_score, score.components)
    db.commit()

    return f"code={len(code_urls)} stars={stars if stars is not None else '-'} score={score.global_score:.3f}"


async def run_enrich_job(db: Session, ids: Optional[List[str]] = None, limit: int = DEFAULT_LIMIT,
                         days: int = DEFAULT_DAYS, readme: bool = False, extract: bool = True,
                         pwc: bool = True, max_seconds: Optional[int] = None) -> Dict[str, Any]:
    deadline = time.monotonic() + (max_seconds or JOB_MAX_SECONDS)
    candidates = select_candidates(db, ids, limit, days)
    logger.info(f"🔎 Enrich started: {len(candidates)} candidate(s)")

    details: List[Dict[str, Any]] = []
    timed_out = False
    for paper in candidates:
        if time.monotonic() > deadline:
            timed_out = True
            break
        try:
            info = await enrich_paper(db, paper, include_readme=readme, extract=extract, pwc=pwc)
            details.append({"arxivId": paper.arxiv_id_base, "ok": True, "info": info})
        except Exception as e:
            db.rollback()
            logger.warning(f"Enrichment failed for {paper.arxiv_id_base}: {e}", exc_info=True)
            details.append({"arxivId": paper.arxiv_id_base, "ok": False, "error": str(e)[:200]})

    processed = sum(1 for d in details if d["ok"])
    logger.info(f"✅ Enrich finished: processed={processed} failed={len(details) - processed}")
    return {
        "ids": ids or [],
        "limit": limit,
        "days": days,
        "readme": readme,
        "extract": extract,
        "pwc": pwc,
        "processed": processed,
        "timedOut": timed_out,
        "details": details,
    }
