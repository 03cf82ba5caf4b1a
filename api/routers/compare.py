# File: api/routers/compare.py
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import Optional
import logging

from api.dependencies.auth import get_db
from api.models.paper_models import CompareRequest
from services.paper_query_service import MAX_COMPARE_IDS, compare_papers
from utils.id_normalization import parse_arxiv_id_list

router = APIRouter()
logger = logging.getLogger(__name__)


def _compare(db: Session, raw_ids) -> dict:
    ids = parse_arxiv_id_list(raw_ids, MAX_COMPARE_IDS)
    if not ids:
        raise HTTPException(status_code=400, detail="Provide 1-2 valid arXiv ids")
    try:
        return {"ids": ids, "items": compare_papers(db, ids)}
    except Exception:
        logger.error("Compare failed", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/compare")
def compare_get(ids: Optional[str] = None, db: Session = Depends(get_db)):
    return _compare(db, ids)


@router.post("/compare")
def compare_post(payload: CompareRequest, db: Session = Depends(get_db)):
    return _compare(db, payload.ids)
