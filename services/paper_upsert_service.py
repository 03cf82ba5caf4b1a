# services/paper_upsert_service.py
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from sqlalchemy import select, delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from database.models.paper_model import Paper, PaperVersion, PaperAuthor, new_uuid
from database.upsert import dialect_insert
from services.author_service import resolve_author_ids
from utils.id_normalization import split_arxiv_id, is_base_id
from utils.sanitization import clean_text, dedupe
from utils.timestamps import to_naive_utc, utc_now

logger = logging.getLogger(__name__)

ARXIV_ABS_URL = "https://arxiv.org/abs/{base_id}"
ARXIV_PDF_URL = "https://arxiv.org/pdf/{base_id}.pdf"


class PaperUpsertError(Exception):
    """Raised when a fetched item cannot be written as a paper."""
    pass


@dataclass
class UpsertResult:
    paper_id: str
    arxiv_id: str
    version: int
    created: bool
    version_created: bool
    authors_linked: int


def locked_paper_query(base_id: str):
    # Row lock so concurrent merges see each other's categories
    return select(Paper).where(Paper.arxiv_id_base == base_id).with_for_update()


def _merge_existing(paper: Paper, *, version: int, title: str, abstract: str,
                    categories: List[str], primary_category: Optional[str],
                    updated_at, pdf_url: Optional[str], abs_url: str) -> None:
    existing_version = paper.latest_version or 1
    incoming_newer = version > existing_version or (
        paper.updated_at is None or updated_at > paper.updated_at
    )

    # Reassign so the JSON column is marked dirty
    paper.categories = dedupe(list(paper.categories or []) + categories)
    paper.latest_version = max(existing_version, version)
    paper.primary_category = paper.primary_category or primary_category
    paper.abs_url = paper.abs_url or abs_url

    if incoming_newer:
        paper.title = title or paper.title
        paper.abstract = abstract or paper.abstract
        paper.updated_at = updated_at
        paper.pdf_url = pdf_url or paper.pdf_url
    elif not paper.pdf_url:
        paper.pdf_url = pdf_url


def _link_authors(db: Session, paper_id: str, names: List[str], prune: bool) -> int:
    ordered = dedupe(n for n in (clean_text(name) for name in names) if n)
    if not ordered:
        return 0

    author_ids = resolve_author_ids(db, ordered)
    linked = []
    # Sequential so positions follow the author list of this version
    for position, name in enumerate(ordered):
        author_id = author_ids.get(name)
        if not author_id:
            continue
        stmt = dialect_insert(db, PaperAuthor).values(
            paper_id=paper_id, author_id=author_id, position=position
        ).on_conflict_do_update(
            index_elements=["paper_id", "author_id"],
            set_={"position": position},
        )
        db.execute(stmt)
        linked.append(author_id)

    if prune and linked:
        try:
            with db.begin_nested():
                db.execute(
                    delete(PaperAuthor).where(
                        PaperAuthor.paper_id == paper_id,
                        PaperAuthor.author_id.not_in(linked),
                    )
                )
        except SQLAlchemyError as e:
            logger.warning(f"Author pruning failed for paper {paper_id}: {e}")

    return len(linked)


def upsert_paper(db: Session, item: Dict[str, Any], query_category: Optional[str] = None,
                 prune_authors: bool = False) -> UpsertResult:
    """
    Inserts or merges one fetched arXiv item and commits.

    The paper row is written with INSERT ... ON CONFLICT DO NOTHING on the base
    id; when another worker got there first the row is re-read and merged:
    categories are unioned, the version only moves forward, and title/abstract
    are taken from the incoming item only when it is newer. A snapshot per
    (paper, version) is created once and never rewritten.
    """
    raw_id = item.get("arxiv_id") or item.get("id") or ""
    base_id, version = split_arxiv_id(raw_id)
    if not is_base_id(base_id):
        raise PaperUpsertError(f"Invalid arXiv id: {raw_id!r}")

    title = clean_text(item.get("title"))
    if not title:
        raise PaperUpsertError(f"Missing title for {base_id}")
    abstract = clean_text(item.get("summary") or item.get("abstract"))

    categories = dedupe(
        [c for c in (item.get("categories") or []) if c]
        + ([query_category] if query_category else [])
    )
    primary_category = item.get("primary_category") or query_category or (categories[0] if categories else None)

    published_at = to_naive_utc(item.get("published")) or utc_now()
    updated_at = to_naive_utc(item.get("updated")) or published_at
    pdf_url = item.get("pdf_url") or ARXIV_PDF_URL.format(base_id=base_id)
    abs_url = ARXIV_ABS_URL.format(base_id=base_id)

    stmt = dialect_insert(db, Paper).values(
        id=new_uuid(),
        arxiv_id_base=base_id,
        latest_version=version,
        title=title,
        abstract=abstract,
        categories=categories,
        primary_category=primary_category,
        published_at=published_at,
        updated_at=updated_at,
        pdf_url=pdf_url,
        abs_url=abs_url,
        comment=item.get("comment"),
    ).on_conflict_do_nothing(index_elements=["arxiv_id_base"]).returning(Paper.id)
    paper_id = db.execute(stmt).scalar_one_or_none()
    created = paper_id is not None

    if not created:
        existing = db.execute(locked_paper_query(base_id)).scalar_one_or_none()
        if existing is None:
            raise PaperUpsertError(f"Paper {base_id} conflicted on insert but could not be re-read")
        _merge_existing(
            existing,
            version=version,
            title=title,
            abstract=abstract,
            categories=categories,
            primary_category=primary_category,
            updated_at=updated_at,
            pdf_url=item.get("pdf_url"),
            abs_url=abs_url,
        )
        paper_id = existing.id
        db.flush()

    version_stmt = dialect_insert(db, PaperVersion).values(
        id=new_uuid(),
        paper_id=paper_id,
        version=version,
        title=title,
        abstract=abstract,
        updated_at=updated_at,
    ).on_conflict_do_nothing(index_elements=["paper_id", "version"]).returning(PaperVersion.id)
    version_created = db.execute(version_stmt).scalar_one_or_none() is not None

    authors_linked = _link_authors(db, paper_id, item.get("authors") or [], prune_authors)

    db.commit()
    logger.debug(f"Upserted {base_id}v{version} (created={created}, version_created={version_created})")

    return UpsertResult(
        paper_id=paper_id,
        arxiv_id=base_id,
        version=version,
        created=created,
        version_created=version_created,
        authors_linked=authors_linked,
    )
