# services/ingestion_service.py
import asyncio
import logging
import os
import time
from datetime import timedelta
from typing import Any, Dict, List, Optional

from database.db import SessionLocal
from database.models.paper_model import IngestRun
from clients.arxiv_client import search_arxiv
from services.paper_upsert_service import upsert_paper
from utils.sanitization import as_bool, clamp_int
from utils.timestamps import to_iso, to_naive_utc, utc_now

logger = logging.getLogger(__name__)

DEFAULT_CATEGORIES = ["cs.AI", "cs.LG", "cs.CL", "cs.CV", "cs.NE", "stat.ML"]
DEFAULT_PAGES = 2
DEFAULT_PAGE_SIZE = 25
DEFAULT_LOOKBACK_DAYS = 3

INGEST_CONCURRENCY = clamp_int(os.getenv("INGEST_CONCURRENCY"), 4, 3, 8)
JOB_MAX_SECONDS = clamp_int(os.getenv("JOB_MAX_SECONDS"), 240, 10, 3600)
INGEST_PRUNE_AUTHORS = as_bool(os.getenv("INGEST_PRUNE_AUTHORS"), False)


def _start_run(note: str) -> Optional[str]:
    db = SessionLocal()
    try:
        run = IngestRun(status="running", note=note, started_at=utc_now())
        db.add(run)
        db.commit()
        return run.id
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to create ingest run: {e}", exc_info=True)
        return None
    finally:
        db.close()


def _finish_run(run_id: Optional[str], status: str, processed: int, note: str) -> None:
    if not run_id:
        return
    db = SessionLocal()
    try:
        run = db.get(IngestRun, run_id)
        if run is None:
            return
        run.status = status
        run.finished_at = utc_now()
        run.items_fetched = processed
        run.note = note
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to finish ingest run {run_id}: {e}", exc_info=True)
    finally:
        db.close()


def _upsert_item(item: Dict[str, Any], category: str, prune_authors: bool) -> str:
    db = SessionLocal()
    try:
        return upsert_paper(db, item, query_category=category, prune_authors=prune_authors).arxiv_id
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


async def run_ingest_job(categories: Optional[List[str]] = None,
                         pages: int = DEFAULT_PAGES,
                         size: int = DEFAULT_PAGE_SIZE,
                         days: int = DEFAULT_LOOKBACK_DAYS,
                         concurrency: Optional[int] = None,
                         max_seconds: Optional[int] = None,
                         prune_authors: Optional[bool] = None) -> Dict[str, Any]:
    """
    Pulls recent papers per category from arXiv and upserts them.

    Paging stops per category on an empty or short page, or as soon as an item
    falls outside the lookback window. A wall-clock deadline is checked before
    every fetch; upserts finishing after it are discarded.
    """
    categories = categories or list(DEFAULT_CATEGORIES)
    concurrency = concurrency or INGEST_CONCURRENCY
    max_seconds = max_seconds or JOB_MAX_SECONDS
    prune_authors = INGEST_PRUNE_AUTHORS if prune_authors is None else prune_authors

    started = utc_now()
    deadline = time.monotonic() + max_seconds
    since = started - timedelta(days=days) if days > 0 else None

    params_note = f"cats={'|'.join(categories)}; pages={pages}; size={size}; days={days}"
    run_id = _start_run(params_note)
    logger.info(f"🚀 Ingest started ({params_note})")

    notes: List[str] = []
    item_errors: List[Dict[str, str]] = []
    fetched = 0
    processed = 0
    timed_out = False
    fetch_failures = 0

    semaphore = asyncio.Semaphore(concurrency)

    async def process(item: Dict[str, Any], category: str) -> None:
        nonlocal processed
        async with semaphore:
            if time.monotonic() > deadline:
                return
            try:
                await asyncio.to_thread(_upsert_item, item, category, prune_authors)
            except Exception as e:
                logger.warning(f"Upsert failed for {item.get('arxiv_id')}: {e}")
                item_errors.append({"arxivId": str(item.get("arxiv_id") or ""), "error": str(e)[:200]})
                return
            if time.monotonic() > deadline:
                return
            processed += 1

    tasks = []
    for category in categories:
        for page in range(pages):
            if time.monotonic() > deadline:
                timed_out = True
                break

            start = page * size
            try:
                items = await asyncio.to_thread(search_arxiv, f"cat:{category}", start, size)
            except Exception as e:
                logger.warning(f"arXiv fetch failed for {category} page {page}: {e}")
                notes.append(f"{category}@{start}: {str(e)[:120]}")
                fetch_failures += 1
                break

            if not items:
                break
            fetched += len(items)

            if since is not None:
                fresh = [it for it in items if (to_naive_utc(it.get("published")) or started) >= since]
            else:
                fresh = items

            for item in fresh:
                tasks.append(asyncio.create_task(process(item, category)))

            if len(fresh) < len(items) or len(items) < size:
                break
        if timed_out:
            break

    if tasks:
        await asyncio.gather(*tasks)
    if time.monotonic() > deadline:
        timed_out = True

    if timed_out:
        notes.append("stopped at deadline")
    status = "failed" if processed == 0 and (item_errors or fetch_failures) else "ok"
    finished = utc_now()
    _finish_run(run_id, status, processed, "; ".join([params_note] + notes))

    logger.info(f"✅ Ingest finished: fetched={fetched} processed={processed} errors={len(item_errors)} status={status}")
    return {
        "runId": run_id,
        "startedAt": to_iso(started),
        "finishedAt": to_iso(finished),
        "status": status,
        "categories": categories,
        "pages": pages,
        "size": size,
        "lookbackDays": days,
        "fetched": fetched,
        "processed": processed,
        "errors": len(item_errors),
        "timedOut": timed_out,
        "notes": notes,
        "itemErrors": item_errors,
    }
