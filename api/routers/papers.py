# File: api/routers/papers.py
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import Optional
import logging

from api.dependencies.auth import get_db, get_optional_user
from services.paper_query_service import get_paper_detail, list_papers
from services.watchlist_service import list_watchlists
from utils.id_normalization import normalize_arxiv_id
from utils.sanitization import as_bool, clamp_int

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("")
def get_feed(
    view: Optional[str] = None,
    categories: Optional[str] = None,
    code: Optional[str] = None,
    weights: Optional[str] = None,
    benchmarks: Optional[str] = None,
    limit: Optional[str] = None,
    cursor: Optional[str] = None,
    user_id: Optional[str] = Depends(get_optional_user),
    db: Session = Depends(get_db),
):
    try:
        watchlists = list_watchlists(db, user_id) if view == "for-you" and user_id else []
        return list_papers(
            db,
            view=view,
            categories=[c.strip() for c in (categories or "").split(",") if c.strip()] or None,
            code_only=as_bool(code, False),
            has_weights=as_bool(weights, False),
            with_benchmarks=as_bool(benchmarks, False),
            limit=clamp_int(limit, 25, 1, 50),
            cursor=cursor,
            watchlists=watchlists,
        )
    except Exception:
        logger.error("Feed query failed", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/{arxiv_id:path}")
def get_paper(arxiv_id: str, db: Session = Depends(get_db)):
    base_id = normalize_arxiv_id(arxiv_id)
    if not base_id:
        raise HTTPException(status_code=400, detail="Invalid arXiv id")

    try:
        detail = get_paper_detail(db, base_id)
    except Exception:
        logger.error(f"Paper detail failed for {base_id}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error")

    if detail is None:
        raise HTTPException(status_code=404, detail="Paper not found")
    return detail
