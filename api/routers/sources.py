# File: api/routers/sources.py
from fastapi import APIRouter, HTTPException, Query
from typing import List, Optional
import logging

from api.models.paper_models import RepoMetaRequest
from clients.arxiv_client import ArxivAPIError, search_arxiv
from clients.github_client import resolve_repos
from clients.pwc_client import PwcAPIError, build_pwc_search_by_title, lookup_pwc_by_arxiv
from utils.id_normalization import normalize_arxiv_id
from utils.sanitization import as_bool, clamp_int

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/arxiv/search")
def arxiv_search(
    q: Optional[str] = None,
    start: Optional[str] = None,
    max_: Optional[str] = Query(default=None, alias="max"),
    sort_by: str = Query(default="submittedDate", alias="sortBy"),
    sort_order: str = Query(default="descending", alias="sortOrder"),
):
    if not q or not q.strip():
        raise HTTPException(status_code=400, detail="Missing query parameter q")

    start_at = clamp_int(start, 0, 0, 10000)
    page_size = clamp_int(max_, 25, 1, 50)
    try:
        items = search_arxiv(q.strip(), start_at, page_size, sort_by, sort_order)
    except ArxivAPIError as e:
        logger.warning(f"arXiv search failed: {e}")
        raise HTTPException(status_code=502, detail="arXiv query failed")
    except Exception:
        logger.error("Error in arxiv search endpoint", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error")
    return {"query": q.strip(), "start": start_at, "max": page_size, "items": items}


@router.get("/pwc/{arxiv_id:path}")
def pwc_lookup(arxiv_id: str, title: Optional[str] = None):
    base_id = normalize_arxiv_id(arxiv_id)
    if not base_id:
        raise HTTPException(status_code=400, detail="Invalid arXiv id")
    try:
        result = lookup_pwc_by_arxiv(base_id)
    except PwcAPIError as e:
        logger.warning(f"PwC lookup failed for {base_id}: {e}")
        raise HTTPException(status_code=502, detail="Papers with Code lookup failed")
    except Exception:
        logger.error("Error in pwc endpoint", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error")

    if not result["found"] and title and title.strip():
        result["search_url"] = build_pwc_search_by_title(title.strip())
    return {"arxivId": base_id, **result}


@router.get("/repos/meta")
def repos_meta_get(
    url: List[str] = Query(default=[]),
    owner: Optional[str] = None,
    repo: Optional[str] = None,
    readme: Optional[str] = None,
    ref: Optional[str] = None,
):
    inputs = list(url)
    if owner and repo:
        inputs.append(f"{owner.strip()}/{repo.strip()}")
    if not inputs:
        raise HTTPException(status_code=400, detail="Provide url or owner and repo")
    return {"items": resolve_repos(inputs[:25], include_readme=as_bool(readme, False), ref=ref)}


@router.post("/repos/meta")
def repos_meta_post(payload: RepoMetaRequest):
    return {"items": resolve_repos(payload.inputs, include_readme=payload.readme, ref=payload.ref)}
