# services/paper_query_service.py
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import select, and_, or_
from sqlalchemy.orm import Session

from database.models.paper_model import Paper, PaperVersion, PaperAuthor, Author
from database.models.enrichment_model import PaperEnrichment, PaperStructured, PaperScore, PwcLink
from services.scoring_service import PaperForScoring, compute_paper_score
from utils.sanitization import dedupe
from utils.timestamps import to_iso, to_naive_utc, utc_now

logger = logging.getLogger(__name__)

FEED_VIEWS = ("today", "week", "for-you")
MAX_COMPARE_IDS = 2


# ------------------------------------------------------------
# LATEST-WINS LOOKUPS
# ------------------------------------------------------------

def pick_latest_by(rows: Iterable[Any], key: str = "paper_id", ts: str = "updated_at") -> Dict[Any, Any]:
    """Reduces historical rows to the most recent one per key."""
    latest: Dict[Any, Any] = {}
    for row in rows:
        k = getattr(row, key)
        current = latest.get(k)
        row_ts = getattr(row, ts)
        if current is None:
            latest[k] = row
            continue
        current_ts = getattr(current, ts)
        if row_ts is not None and (current_ts is None or row_ts > current_ts):
            latest[k] = row
    return latest


def get_authors_by_paper(db: Session, paper_ids: Sequence[str]) -> Dict[str, List[str]]:
    if not paper_ids:
        return {}
    rows = db.execute(
        select(PaperAuthor.paper_id, Author.name)
        .join(Author, PaperAuthor.author_id == Author.id)
        .where(PaperAuthor.paper_id.in_(paper_ids))
        .order_by(PaperAuthor.paper_id, PaperAuthor.position)
    ).all()
    authors: Dict[str, List[str]] = {}
    for paper_id, name in rows:
        authors.setdefault(paper_id, []).append(name)
    return authors


def get_latest_enrichment_by_paper(db: Session, paper_ids: Sequence[str]) -> Dict[str, PaperEnrichment]:
    if not paper_ids:
        return {}
    rows = db.execute(select(PaperEnrichment).where(PaperEnrichment.paper_id.in_(paper_ids))).scalars().all()
    return pick_latest_by(rows, "paper_id", "updated_at")


def get_latest_structured_by_paper(db: Session, paper_ids: Sequence[str]) -> Dict[str, PaperStructured]:
    if not paper_ids:
        return {}
    rows = db.execute(select(PaperStructured).where(PaperStructured.paper_id.in_(paper_ids))).scalars().all()
    return pick_latest_by(rows, "paper_id", "created_at")


def get_latest_pwc_by_paper(db: Session, paper_ids: Sequence[str]) -> Dict[str, PwcLink]:
    if not paper_ids:
        return {}
    rows = db.execute(select(PwcLink).where(PwcLink.paper_id.in_(paper_ids))).scalars().all()
    return pick_latest_by(rows, "paper_id", "updated_at")


def get_scores_by_paper(db: Session, paper_ids: Sequence[str]) -> Dict[str, PaperScore]:
    if not paper_ids:
        return {}
    rows = db.execute(select(PaperScore).where(PaperScore.paper_id.in_(paper_ids))).scalars().all()
    return {row.paper_id: row for row in rows}


def get_paper_by_arxiv_id(db: Session, base_id: str) -> Optional[Paper]:
    return db.execute(select(Paper).where(Paper.arxiv_id_base == base_id)).scalar_one_or_none()


# ------------------------------------------------------------
# SERIALIZATION
# ------------------------------------------------------------

def merged_code_urls(enrich: Optional[PaperEnrichment], structured: Optional[PaperStructured]) -> List[str]:
    return dedupe(list((enrich.code_urls if enrich else None) or []) + list((structured.code_urls if structured else None) or []))


def serialize_paper(paper: Paper, authors: List[str], enrich: Optional[PaperEnrichment],
                    structured: Optional[PaperStructured], score: Optional[PaperScore],
                    pwc: Optional[PwcLink]) -> Dict[str, Any]:
    base_id = paper.arxiv_id_base
    return {
        "id": paper.id,
        "arxivId": base_id,
        "latestVersion": paper.latest_version,
        "title": paper.title,
        "abstract": paper.abstract,
        "authors": authors,
        "categories": list(paper.categories or []),
        "primaryCategory": paper.primary_category,
        "published": to_iso(paper.published_at),
        "updated": to_iso(paper.updated_at or paper.published_at),
        "pdfUrl": paper.pdf_url or f"https://arxiv.org/pdf/{base_id}.pdf",

        "codeUrls": merged_code_urls(enrich, structured),
        "repoStars": enrich.repo_stars if enrich else None,
        "repoLicense": enrich.repo_license if enrich else None,
        "hasWeights": bool(enrich.has_weights) if enrich else False,

        "method": structured.method if structured else None,
        "tasks": list(structured.tasks or []) if structured else [],
        "datasets": list(structured.datasets or []) if structured else [],
        "benchmarks": list(structured.benchmarks or []) if structured else [],
        "claimedSotaCount": len(structured.claimed_sota or []) if structured else 0,

        "score": {"global": score.global_score, "components": score.components} if score else None,
        "links": {
            "abs": paper.abs_url or f"https://arxiv.org/abs/{base_id}",
            "pdf": paper.pdf_url or f"https://arxiv.org/pdf/{base_id}.pdf",
            "repo": enrich.primary_repo if enrich else None,
            "pwc": pwc.paper_url if pwc else None,
        },
    }


def _load_related(db: Session, paper_ids: List[str]) -> Tuple[dict, dict, dict, dict, dict]:
    return (
        get_authors_by_paper(db, paper_ids),
        get_latest_enrichment_by_paper(db, paper_ids),
        get_latest_structured_by_paper(db, paper_ids),
        get_scores_by_paper(db, paper_ids),
        get_latest_pwc_by_paper(db, paper_ids),
    )


# ------------------------------------------------------------
# FEED
# ------------------------------------------------------------

def build_cursor(paper: Paper) -> Optional[str]:
    if paper.published_at is None:
        return None
    return f"{to_iso(paper.published_at)}_{paper.id}"


def parse_cursor(cursor: Optional[str]) -> Optional[Tuple[datetime, str]]:
    if not cursor or "_" not in cursor:
        return None
    iso, _, paper_id = cursor.partition("_")
    ts = to_naive_utc(iso)
    if ts is None or not paper_id:
        return None
    return ts, paper_id


def _view_since(view: Optional[str], now: datetime) -> Optional[datetime]:
    if view == "week":
        return now - timedelta(days=7)
    if view == "today":
        return now.replace(hour=0, minute=0, second=0, microsecond=0)
    return None


def list_papers(db: Session, view: Optional[str] = None, categories: Optional[List[str]] = None,
                code_only: bool = False, has_weights: bool = False, with_benchmarks: bool = False,
                limit: int = 25, cursor: Optional[str] = None, watchlists: Optional[List[Any]] = None,
                now: Optional[datetime] = None) -> Dict[str, Any]:
    now = now or utc_now()
    view = view if view in FEED_VIEWS else None

    query = select(Paper)
    since = _view_since(view, now)
    if since is not None:
        query = query.where(Paper.published_at >= since)
    if categories:
        query = query.where(Paper.primary_category.in_(categories))
    parsed_cursor = parse_cursor(cursor)
    if parsed_cursor:
        ts, last_id = parsed_cursor
        query = query.where(or_(Paper.published_at < ts, and_(Paper.published_at == ts, Paper.id < last_id)))

    rows = db.execute(
        query.order_by(Paper.published_at.desc(), Paper.id.desc()).limit(limit + 1)
    ).scalars().all()
    has_more = len(rows) > limit
    page = rows[:limit]
    if not page:
        return {"items": [], "nextCursor": None}

    paper_ids = [p.id for p in page]
    authors, enrich, structured, scores, pwc = _load_related(db, paper_ids)

    def keep(paper: Paper) -> bool:
        e, s = enrich.get(paper.id), structured.get(paper.id)
        if code_only and not merged_code_urls(e, s):
            return False
        if has_weights and not (e and e.has_weights):
            return False
        if with_benchmarks and not (s and s.benchmarks):
            return False
        return True

    papers = [p for p in page if keep(p)]
    items = [
        serialize_paper(p, authors.get(p.id, []), enrich.get(p.id), structured.get(p.id), scores.get(p.id), pwc.get(p.id))
        for p in papers
    ]

    if view == "for-you":
        if watchlists:
            for item, paper in zip(items, papers):
                e, s = enrich.get(paper.id), structured.get(paper.id)
                result = compute_paper_score(
                    PaperForScoring(
                        title=paper.title,
                        abstract=paper.abstract,
                        authors=authors.get(paper.id, []),
                        categories=list(paper.categories or []),
                        published_at=paper.published_at,
                        code_urls=item["codeUrls"],
                        has_weights=bool(e and e.has_weights),
                        repo_stars=e.repo_stars if e else None,
                        benchmarks=list(s.benchmarks or []) if s else [],
                    ),
                    watchlists,
                    now=now,
                )
                item["score"] = {"global": result.global_score, "components": result.components}
        items.sort(key=lambda it: (it["score"] or {}).get("global", 0.0), reverse=True)

    return {"items": items, "nextCursor": build_cursor(page[-1]) if has_more else None}


# ------------------------------------------------------------
# DETAIL & COMPARE
# ------------------------------------------------------------

def get_paper_detail(db: Session, base_id: str) -> Optional[Dict[str, Any]]:
    paper = get_paper_by_arxiv_id(db, base_id)
    if paper is None:
        return None

    authors, enrich, structured, scores, pwc = _load_related(db, [paper.id])
    detail = serialize_paper(
        paper, authors.get(paper.id, []), enrich.get(paper.id), structured.get(paper.id),
        scores.get(paper.id), pwc.get(paper.id),
    )

    versions = db.execute(
        select(PaperVersion).where(PaperVersion.paper_id == paper.id).order_by(PaperVersion.version)
    ).scalars().all()
    detail["versions"] = [
        {"version": v.version, "title": v.title, "updated": to_iso(v.updated_at)} for v in versions
    ]

    s = structured.get(paper.id)
    detail["claimedSota"] = list(s.claimed_sota or []) if s else []
    detail["params"] = s.params if s else None
    detail["tokens"] = s.tokens if s else None
    detail["compute"] = s.compute if s else None

    e = enrich.get(paper.id)
    detail["readmeExcerpt"] = e.readme_excerpt if e else None

    link = pwc.get(paper.id)
    detail["pwc"] = {
        "found": link.found,
        "paperUrl": link.paper_url,
        "repoUrl": link.repo_url,
        "repoStars": link.repo_stars,
        "searchUrl": link.search_url,
        "sotaLinks": list(link.sota_links or []),
    } if link else None
    return detail


def quick_summary(detail: Dict[str, Any]) -> Dict[str, Any]:
    method = detail.get("method") or "the proposed approach"
    tasks = ", ".join(detail.get("tasks") or []) or "Not stated"
    benchmarks = ", ".join(detail.get("benchmarks") or []) or "Not stated"
    datasets = ", ".join(detail.get("datasets") or [])
    return {
        "oneLiner": f"Introduces {method} for {tasks} and reports results on {benchmarks}.",
        "bullets": [
            f"Method: {method}",
            f"Tasks/datasets: {tasks}{f' ({datasets})' if datasets else ''}",
            f"Benchmarks: {benchmarks}",
            f"Code: {'Link provided' if detail.get('codeUrls') else 'Not stated'}",
            f"SOTA claim: {'Claimed' if detail.get('claimedSotaCount') else 'Not stated'}",
        ],
    }


def compare_papers(db: Session, base_ids: List[str]) -> List[Dict[str, Any]]:
    """Side-by-side view of up to two papers; unknown ids come back as not-found stubs."""
    items = []
    for base_id in base_ids[:MAX_COMPARE_IDS]:
        detail = get_paper_detail(db, base_id)
        if detail is None:
            items.append({"arxivId": base_id, "found": False})
            continue
        detail["found"] = True
        detail["quickSummary"] = quick_summary(detail)
        items.append(detail)
    return items
