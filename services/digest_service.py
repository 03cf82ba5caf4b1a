# services/digest_service.py
import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Mapping, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from database.models.paper_model import Paper
from database.models.user_model import Digest, DigestStatus, Profile, Watchlist
from services.email_service import DigestEmailItem, send_digest_email
from services.paper_query_service import (
    get_authors_by_paper,
    get_latest_structured_by_paper,
    get_scores_by_paper,
)
from services.watchlist_matching import MatchWeights, applicable_watchlists, match_watchlists
from utils.timestamps import to_iso, utc_now

logger = logging.getLogger(__name__)

MAX_CANDIDATES = 400
MAX_REASONS = 4
MOMENTUM_WEIGHT = 0.3

DEFAULT_DAYS = 7
DEFAULT_PER_USER = 8
DEFAULT_USER_LIMIT = 200


@dataclass
class CandidatePaper:
    id: str
    arxiv_id: str
    title: str
    abstract: str = ""
    categories: List[str] = field(default_factory=list)
    published_at: Optional[datetime] = None
    pdf_url: Optional[str] = None
    abs_url: Optional[str] = None


@dataclass
class RankedPaper:
    paper: CandidatePaper
    reason: str
    score: float


def _published_key(paper: CandidatePaper) -> float:
    return paper.published_at.timestamp() if paper.published_at else float("-inf")


def rank_for_user(candidates: Sequence[CandidatePaper],
                  structured_by_paper: Mapping[str, Any],
                  scores_by_paper: Mapping[str, Any],
                  authors_by_paper: Mapping[str, List[str]],
                  watchlists: Sequence[Any],
                  limit: Optional[int] = None,
                  weights: MatchWeights = MatchWeights()) -> List[RankedPaper]:
    """
    Ranks candidates for one user's watchlists.

    Only papers with at least one watchlist hit are kept. Composite score is
    the match points plus a fraction of the stored global score; ties go to
    the newer paper, then the lower arXiv id.
    """
    if not watchlists:
        return []

    ranked: List[RankedPaper] = []
    for paper in list(candidates)[:MAX_CANDIDATES]:
        applicable = applicable_watchlists(paper.categories, watchlists)
        if not applicable:
            continue

        structured = structured_by_paper.get(paper.id)
        benchmarks = list(getattr(structured, "benchmarks", None) or [])
        match = match_watchlists(
            paper.title, paper.abstract, authors_by_paper.get(paper.id, []), benchmarks, applicable, weights
        )
        if match.points <= 0:
            continue

        score_row = scores_by_paper.get(paper.id)
        global_score = float(getattr(score_row, "global_score", 0.0) or 0.0)
        ranked.append(RankedPaper(
            paper=paper,
            reason=", ".join(match.hits[:MAX_REASONS]),
            score=match.points + MOMENTUM_WEIGHT * global_score,
        ))

    ranked.sort(key=lambda r: (-r.score, -_published_key(r.paper), r.paper.arxiv_id))
    return ranked[:limit] if limit is not None else ranked


# ------------------------------------------------------------
# DATA LOADING
# ------------------------------------------------------------

def load_candidates(db: Session, since: datetime, until: Optional[datetime] = None) -> List[CandidatePaper]:
    query = select(Paper).where(Paper.published_at >= since)
    if until is not None:
        query = query.where(Paper.published_at <= until)
    rows = db.execute(
        query.order_by(Paper.published_at.desc(), Paper.id.desc()).limit(MAX_CANDIDATES)
    ).scalars().all()
    return [
        CandidatePaper(
            id=p.id,
            arxiv_id=p.arxiv_id_base,
            title=p.title,
            abstract=p.abstract or "",
            categories=list(p.categories or []),
            published_at=p.published_at,
            pdf_url=p.pdf_url,
            abs_url=p.abs_url,
        )
        for p in rows
    ]


def load_digest_users(db: Session, user_ids: Optional[List[str]], limit_users: int) -> List[str]:
    if user_ids:
        return list(dict.fromkeys(user_ids))[:limit_users]
    rows = db.execute(
        select(Watchlist.user_id).distinct().order_by(Watchlist.user_id).limit(limit_users)
    ).scalars().all()
    return list(rows)


def load_watchlists(db: Session, user_id: str) -> List[Watchlist]:
    return list(db.execute(
        select(Watchlist).where(Watchlist.user_id == user_id).order_by(Watchlist.created_at)
    ).scalars().all())


def _email_items(ranked: List[RankedPaper], authors_by_paper: Mapping[str, List[str]],
                 structured_by_paper: Mapping[str, Any], app_url: Optional[str]) -> List[DigestEmailItem]:
    base = (app_url or "").rstrip("/")
    items = []
    for r in ranked:
        p = r.paper
        structured = structured_by_paper.get(p.id)
        items.append(DigestEmailItem(
            title=p.title,
            arxiv_id=p.arxiv_id,
            paper_url=f"{base}/paper/{p.arxiv_id}" if base else (p.abs_url or f"https://arxiv.org/abs/{p.arxiv_id}"),
            abs_url=p.abs_url or f"https://arxiv.org/abs/{p.arxiv_id}",
            pdf_url=p.pdf_url,
            authors=authors_by_paper.get(p.id, []),
            categories=p.categories,
            published=to_iso(p.published_at),
            reason=r.reason,
            benchmarks=list(getattr(structured, "benchmarks", None) or []),
        ))
    return items


# ------------------------------------------------------------
# JOB
# ------------------------------------------------------------

async def run_digest_job(db: Session, days: int = DEFAULT_DAYS, per: int = DEFAULT_PER_USER,
                         user_ids: Optional[List[str]] = None, limit_users: int = DEFAULT_USER_LIMIT,
                         at: Optional[datetime] = None, dry: bool = False, schedule: bool = False,
                         send: bool = False, app_url: Optional[str] = None) -> Dict[str, Any]:
    at = at or utc_now()
    since = at - timedelta(days=days)

    candidates = load_candidates(db, since, at)
    paper_ids = [c.id for c in candidates]
    structured = get_latest_structured_by_paper(db, paper_ids)
    scores = get_scores_by_paper(db, paper_ids)
    authors = get_authors_by_paper(db, paper_ids)

    users = load_digest_users(db, user_ids, limit_users)
    logger.info(f"📬 Digest started: {len(users)} user(s), {len(candidates)} candidate(s)")

    results: List[Dict[str, Any]] = []
    for user_id in users:
        try:
            watchlists = load_watchlists(db, user_id)
            ranked = rank_for_user(candidates, structured, scores, authors, watchlists, limit=per)
            result: Dict[str, Any] = {
                "userId": user_id,
                "ok": True,
                "count": len(ranked),
                "items": [{"arxivId": r.paper.arxiv_id, "reason": r.reason, "score": round(r.score, 4)} for r in ranked],
            }

            digest = None
            if ranked and schedule and not dry:
                digest = Digest(
                    user_id=user_id,
                    scheduled_for=at,
                    items=[{"paperId": r.paper.id, "reason": r.reason} for r in ranked],
                    status=DigestStatus.SCHEDULED,
                )
                db.add(digest)
                db.commit()
                result["digestId"] = digest.id

            if ranked and send and not dry:
                profile = db.get(Profile, user_id)
                if profile is None or not profile.email:
                    result["sent"] = False
                    result["note"] = "no email on profile"
                else:
                    provider = await asyncio.to_thread(
                        send_digest_email,
                        profile.email,
                        _email_items(ranked, authors, structured, app_url),
                        profile.display_name,
                        app_url,
                    )
                    result["sent"] = True
                    result["provider"] = provider
                    if digest is not None:
                        digest.status = DigestStatus.SENT
                        digest.sent_at = utc_now()
                        db.commit()

            results.append(result)
        except Exception as e:
            db.rollback()
            logger.warning(f"Digest failed for user {user_id}: {e}", exc_info=True)
            results.append({"userId": user_id, "ok": False, "error": str(e)[:200]})

    logger.info(f"✅ Digest finished for {len(results)} user(s)")
    return {
        "at": to_iso(at),
        "days": days,
        "per": per,
        "dry": dry,
        "schedule": schedule,
        "send": send,
        "candidates": len(candidates),
        "users": len(users),
        "results": results,
    }
