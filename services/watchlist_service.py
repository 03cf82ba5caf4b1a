# services/watchlist_service.py
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from database.models.user_model import Watchlist, WatchlistType
from utils.timestamps import to_iso, utc_now

logger = logging.getLogger(__name__)


def watchlist_type_value(wl: Watchlist) -> str:
    return wl.type.value if isinstance(wl.type, WatchlistType) else str(wl.type)


def serialize_watchlist(wl: Watchlist) -> Dict[str, Any]:
    return {
        "id": wl.id,
        "type": watchlist_type_value(wl),
        "name": wl.name,
        "terms": list(wl.terms or []),
        "categories": list(wl.categories or []),
        "createdAt": to_iso(wl.created_at),
    }


def list_watchlists(db: Session, user_id: str) -> List[Watchlist]:
    return list(db.execute(
        select(Watchlist).where(Watchlist.user_id == user_id).order_by(Watchlist.created_at.desc())
    ).scalars().all())


def get_owned_watchlist(db: Session, user_id: str, watchlist_id: str) -> Optional[Watchlist]:
    wl = db.get(Watchlist, watchlist_id)
    if wl is None or wl.user_id != user_id:
        return None
    return wl


def create_watchlist(db: Session, user_id: str, type: WatchlistType, name: str,
                     terms: List[str], categories: List[str]) -> Watchlist:
    wl = Watchlist(
        user_id=user_id,
        type=type,
        name=name,
        terms=terms,
        categories=categories,
        created_at=utc_now(),
    )
    db.add(wl)
    db.commit()
    db.refresh(wl)
    logger.info(f"Created {watchlist_type_value(wl)} watchlist {wl.id} for {user_id}")
    return wl


def update_watchlist(db: Session, user_id: str, watchlist_id: str, type: WatchlistType, name: str,
                     terms: List[str], categories: List[str]) -> Optional[Watchlist]:
    wl = get_owned_watchlist(db, user_id, watchlist_id)
    if wl is None:
        return None
    wl.type = type
    wl.name = name
    wl.terms = terms
    wl.categories = categories
    db.commit()
    db.refresh(wl)
    return wl


def delete_watchlist(db: Session, user_id: str, watchlist_id: str) -> bool:
    wl = get_owned_watchlist(db, user_id, watchlist_id)
    if wl is None:
        return False
    db.delete(wl)
    db.commit()
    return True
