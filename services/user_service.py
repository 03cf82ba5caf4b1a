# services/user_service.py
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import select, delete
from sqlalchemy.orm import Session

from database.models.paper_model import Paper
from database.models.user_model import Digest, Profile, SaveStatus, UserSave, Watchlist
from database.upsert import dialect_insert
from services.paper_query_service import get_paper_by_arxiv_id
from utils.timestamps import to_iso, utc_now

logger = logging.getLogger(__name__)

SAVE_CYCLE = [SaveStatus.QUEUED, SaveStatus.SAVED, SaveStatus.READING, SaveStatus.DONE]

PROFILE_FIELDS = ("display_name", "avatar_url", "email")


class PaperNotFoundError(Exception):
    """Raised when a user action references a paper that is not stored."""
    pass


# ------------------------------------------------------------
# PROFILE
# ------------------------------------------------------------

def serialize_profile(profile: Profile) -> Dict[str, Any]:
    return {
        "id": profile.id,
        "displayName": profile.display_name,
        "avatarUrl": profile.avatar_url,
        "email": profile.email,
        "preferences": dict(profile.preferences or {}),
        "createdAt": to_iso(profile.created_at),
    }


def get_or_create_profile(db: Session, user_id: str) -> Profile:
    stmt = dialect_insert(db, Profile).values(
        id=user_id, preferences={}, created_at=utc_now()
    ).on_conflict_do_nothing(index_elements=["id"])
    db.execute(stmt)
    db.commit()
    return db.get(Profile, user_id)


def update_profile(db: Session, user_id: str, changes: Dict[str, Any]) -> Profile:
    profile = get_or_create_profile(db, user_id)
    for key in PROFILE_FIELDS:
        if key in changes:
            setattr(profile, key, changes[key])
    if isinstance(changes.get("preferences"), dict):
        profile.preferences = {**(profile.preferences or {}), **changes["preferences"]}
    db.commit()
    db.refresh(profile)
    return profile


def delete_account(db: Session, user_id: str) -> Dict[str, int]:
    """Removes the profile and every row owned by the user."""
    counts = {}
    for label, model in (("watchlists", Watchlist), ("saves", UserSave), ("digests", Digest)):
        counts[label] = db.execute(delete(model).where(model.user_id == user_id)).rowcount or 0
    counts["profile"] = db.execute(delete(Profile).where(Profile.id == user_id)).rowcount or 0
    db.commit()
    logger.info(f"🗑️ Deleted account data for {user_id}: {counts}")
    return counts


# ------------------------------------------------------------
# SAVES
# ------------------------------------------------------------

def next_save_status(current: Optional[SaveStatus]) -> SaveStatus:
    if current is None:
        return SaveStatus.QUEUED
    index = SAVE_CYCLE.index(SaveStatus(current))
    return SAVE_CYCLE[(index + 1) % len(SAVE_CYCLE)]


def serialize_save(save: UserSave, paper: Optional[Paper] = None) -> Dict[str, Any]:
    status = save.status.value if isinstance(save.status, SaveStatus) else save.status
    item = {"id": save.id, "paperId": save.paper_id, "status": status, "createdAt": to_iso(save.created_at)}
    if paper is not None:
        item["arxivId"] = paper.arxiv_id_base
        item["title"] = paper.title
    return item


def list_saves(db: Session, user_id: str, status: Optional[SaveStatus] = None,
               arxiv_id: Optional[str] = None) -> List[Dict[str, Any]]:
    query = (
        select(UserSave, Paper)
        .join(Paper, UserSave.paper_id == Paper.id)
        .where(UserSave.user_id == user_id)
    )
    if status is not None:
        query = query.where(UserSave.status == status)
    if arxiv_id:
        query = query.where(Paper.arxiv_id_base == arxiv_id)
    rows = db.execute(query.order_by(UserSave.created_at.desc())).all()
    return [serialize_save(save, paper) for save, paper in rows]


def toggle_save(db: Session, user_id: str, arxiv_id: str, status: Optional[SaveStatus] = None,
                remove: bool = False) -> Optional[Dict[str, Any]]:
    """
    Upserts the user's save for a paper. Without an explicit status an
    existing save moves one step along queued -> saved -> reading -> done,
    and a new one starts queued. Returns None when the save was removed.
    """
    paper = get_paper_by_arxiv_id(db, arxiv_id)
    if paper is None:
        raise PaperNotFoundError(arxiv_id)

    existing = db.execute(
        select(UserSave).where(UserSave.user_id == user_id, UserSave.paper_id == paper.id)
    ).scalar_one_or_none()

    if remove:
        if existing is not None:
            db.delete(existing)
            db.commit()
        return None

    target = status or next_save_status(existing.status if existing else None)
    stmt = dialect_insert(db, UserSave).values(
        user_id=user_id, paper_id=paper.id, status=target, created_at=utc_now(),
    ).on_conflict_do_update(
        index_elements=["user_id", "paper_id"],
        set_={"status": target},
    )
    db.execute(stmt)
    db.commit()

    save = db.execute(
        select(UserSave).where(UserSave.user_id == user_id, UserSave.paper_id == paper.id)
    ).scalar_one()
    db.refresh(save)
    return serialize_save(save, paper)


def delete_save(db: Session, user_id: str, save_id: Optional[str] = None,
                arxiv_id: Optional[str] = None) -> int:
    query = delete(UserSave).where(UserSave.user_id == user_id)
    if save_id:
        query = query.where(UserSave.id == save_id)
    elif arxiv_id:
        paper = get_paper_by_arxiv_id(db, arxiv_id)
        if paper is None:
            return 0
        query = query.where(UserSave.paper_id == paper.id)
    else:
        return 0
    deleted = db.execute(query).rowcount or 0
    db.commit()
    return deleted
