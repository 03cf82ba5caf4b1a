# File: api/routers/user.py
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import Optional
import logging

from api.dependencies.auth import get_current_user, get_db
from api.models.user_models import ProfilePatch, SaveRequest, WatchlistIn
from database.models.user_model import SaveStatus
from services.user_service import (
    PaperNotFoundError,
    delete_account,
    delete_save,
    get_or_create_profile,
    list_saves,
    serialize_profile,
    toggle_save,
    update_profile,
)
from services.watchlist_service import (
    create_watchlist,
    delete_watchlist,
    list_watchlists,
    serialize_watchlist,
    update_watchlist,
)
from utils.id_normalization import normalize_arxiv_id

router = APIRouter()
logger = logging.getLogger(__name__)


# ------------------------------------------------------------
# PROFILE
# ------------------------------------------------------------

@router.get("/profile")
def read_profile(user_id: str = Depends(get_current_user), db: Session = Depends(get_db)):
    return serialize_profile(get_or_create_profile(db, user_id))


@router.patch("/profile")
def patch_profile(payload: ProfilePatch, user_id: str = Depends(get_current_user), db: Session = Depends(get_db)):
    return serialize_profile(update_profile(db, user_id, payload.to_changes()))


@router.delete("/profile")
def remove_account(confirm: bool = False, user_id: str = Depends(get_current_user), db: Session = Depends(get_db)):
    if not confirm:
        raise HTTPException(status_code=400, detail="Pass confirm=true to delete your account data")
    try:
        return {"deleted": True, "counts": delete_account(db, user_id)}
    except Exception:
        db.rollback()
        logger.error(f"Account deletion failed for {user_id}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error")


# ------------------------------------------------------------
# WATCHLISTS
# ------------------------------------------------------------

@router.get("/watchlists")
def get_watchlists(user_id: str = Depends(get_current_user), db: Session = Depends(get_db)):
    return {"items": [serialize_watchlist(wl) for wl in list_watchlists(db, user_id)]}


@router.post("/watchlists", status_code=201)
def post_watchlist(payload: WatchlistIn, user_id: str = Depends(get_current_user), db: Session = Depends(get_db)):
    wl = create_watchlist(db, user_id, payload.type, payload.name, payload.terms, payload.categories)
    return serialize_watchlist(wl)


@router.put("/watchlists/{watchlist_id}")
def put_watchlist(watchlist_id: str, payload: WatchlistIn,
                  user_id: str = Depends(get_current_user), db: Session = Depends(get_db)):
    wl = update_watchlist(db, user_id, watchlist_id, payload.type, payload.name, payload.terms, payload.categories)
    if wl is None:
        raise HTTPException(status_code=404, detail="Watchlist not found")
    return serialize_watchlist(wl)


@router.delete("/watchlists/{watchlist_id}")
def remove_watchlist(watchlist_id: str, user_id: str = Depends(get_current_user), db: Session = Depends(get_db)):
    if not delete_watchlist(db, user_id, watchlist_id):
        raise HTTPException(status_code=404, detail="Watchlist not found")
    return {"deleted": True}


# ------------------------------------------------------------
# SAVES
# ------------------------------------------------------------

@router.get("/save")
def get_saves(status: Optional[SaveStatus] = None, arxivId: Optional[str] = None,
              user_id: str = Depends(get_current_user), db: Session = Depends(get_db)):
    base_id = normalize_arxiv_id(arxivId) if arxivId else None
    if arxivId and not base_id:
        raise HTTPException(status_code=400, detail="Invalid arXiv id")
    return {"items": list_saves(db, user_id, status=status, arxiv_id=base_id)}


@router.post("/save")
def post_save(payload: SaveRequest, user_id: str = Depends(get_current_user), db: Session = Depends(get_db)):
    base_id = normalize_arxiv_id(payload.arxivId)
    if not base_id:
        raise HTTPException(status_code=400, detail="Invalid arXiv id")
    try:
        item = toggle_save(db, user_id, base_id, status=payload.status, remove=payload.remove)
    except PaperNotFoundError:
        raise HTTPException(status_code=404, detail="Paper not found")
    if item is None:
        return {"removed": True, "arxivId": base_id}
    return item


@router.delete("/save")
def remove_save(id: Optional[str] = None, arxivId: Optional[str] = None,
                user_id: str = Depends(get_current_user), db: Session = Depends(get_db)):
    base_id = normalize_arxiv_id(arxivId) if arxivId else None
    if not id and not base_id:
        raise HTTPException(status_code=400, detail="Provide id or a valid arXivId")
    deleted = delete_save(db, user_id, save_id=id, arxiv_id=base_id)
    return {"deleted": deleted}
