# File: api/routers/cron.py
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from typing import Optional
import logging
import os

from api.dependencies.auth import get_db, verify_cron_secret
from services.digest_service import run_digest_job
from services.enrichment_service import run_enrich_job
from services.ingestion_service import DEFAULT_CATEGORIES, run_ingest_job
from utils.id_normalization import parse_arxiv_id_list
from utils.sanitization import as_bool, clamp_int
from utils.timestamps import to_naive_utc

router = APIRouter(dependencies=[Depends(verify_cron_secret)])
logger = logging.getLogger(__name__)

MAX_ENRICH_IDS = 200


def _csv(value: Optional[str]) -> list:
    return [v.strip() for v in (value or "").split(",") if v.strip()]


@router.post("/ingest")
async def cron_ingest(
    cats: Optional[str] = None,
    pages: Optional[str] = None,
    size: Optional[str] = None,
    max_: Optional[str] = Query(default=None, alias="max"),
    days: Optional[str] = None,
):
    try:
        return await run_ingest_job(
            categories=_csv(cats) or list(DEFAULT_CATEGORIES),
            pages=clamp_int(pages, 2, 1, 10),
            size=clamp_int(size if size is not None else max_, 25, 1, 50),
            days=clamp_int(days, 3, 0, 30),
        )
    except Exception:
        logger.error("Ingest job failed", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/enrich")
async def cron_enrich(
    ids: Optional[str] = None,
    limit: Optional[str] = None,
    days: Optional[str] = None,
    since_days: Optional[str] = Query(default=None, alias="sinceDays"),
    readme: Optional[str] = None,
    extract: Optional[str] = None,
    pwc: Optional[str] = None,
    db: Session = Depends(get_db),
):
    try:
        return await run_enrich_job(
            db,
            ids=parse_arxiv_id_list(ids, MAX_ENRICH_IDS) if ids else None,
            limit=clamp_int(limit, 30, 1, 200),
            days=clamp_int(days if days is not None else since_days, 7, 0, 60),
            readme=as_bool(readme, False),
            extract=as_bool(extract, True),
            pwc=as_bool(pwc, True),
        )
    except Exception:
        logger.error("Enrich job failed", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/digest")
async def cron_digest(
    days: Optional[str] = None,
    per: Optional[str] = None,
    users: Optional[str] = None,
    dry: Optional[str] = None,
    schedule: Optional[str] = None,
    send: Optional[str] = None,
    limit_users: Optional[str] = Query(default=None, alias="limitUsers"),
    at: Optional[str] = None,
    db: Session = Depends(get_db),
):
    try:
        return await run_digest_job(
            db,
            days=clamp_int(days, 7, 1, 60),
            per=clamp_int(per, 8, 1, 50),
            user_ids=_csv(users) or None,
            limit_users=clamp_int(limit_users, 200, 1, 1000),
            at=to_naive_utc(at) if at else None,
            dry=as_bool(dry, False),
            schedule=as_bool(schedule, False),
            send=as_bool(send, False),
            app_url=os.getenv("APP_URL"),
        )
    except Exception:
        logger.error("Digest job failed", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error")
