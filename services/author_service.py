# services/author_service.py
import logging
from typing import Dict, Iterable, List

from sqlalchemy import select
from sqlalchemy.orm import Session

from database.models.paper_model import Author, new_uuid
from database.upsert import dialect_insert
from utils.sanitization import clean_text, dedupe
from utils.text_matching import normalize_name

logger = logging.getLogger(__name__)


def _lookup_author_ids(db: Session, names: List[str]) -> Dict[str, str]:
    if not names:
        return {}
    rows = db.execute(select(Author.name, Author.id).where(Author.name.in_(names))).all()
    return {name: author_id for name, author_id in rows}


def _backfill_norm_names(db: Session, author_ids: Iterable[str]) -> None:
    ids = list(author_ids)
    if not ids:
        return
    rows = db.execute(
        select(Author).where(Author.id.in_(ids), Author.norm_name.is_(None))
    ).scalars().all()
    for author in rows:
        author.norm_name = normalize_name(author.name)


def resolve_author_ids(db: Session, names: Iterable[str]) -> Dict[str, str]:
    """
    Maps author display names to author ids, creating rows for unknown names.

    Unknown names are inserted with ON CONFLICT DO NOTHING and then looked up
    again, so a concurrent worker inserting the same name first is picked up
    instead of producing a duplicate row or an integrity error.
    """
    unique = dedupe(n for n in (clean_text(name) for name in names or []) if n)
    if not unique:
        return {}

    resolved = _lookup_author_ids(db, unique)
    # Sorted so concurrent batches take unique-index locks in the same order
    missing = sorted(name for name in unique if name not in resolved)

    if missing:
        stmt = dialect_insert(db, Author).values([
            {"id": new_uuid(), "name": name, "norm_name": normalize_name(name)}
            for name in missing
        ]).on_conflict_do_nothing(index_elements=["name"])
        db.execute(stmt)

        resolved.update(_lookup_author_ids(db, missing))
        unresolved = [name for name in missing if name not in resolved]
        if unresolved:
            logger.warning(f"⚠️ Could not resolve {len(unresolved)} author(s): {unresolved[:5]}")

    _backfill_norm_names(db, resolved.values())
    return resolved
