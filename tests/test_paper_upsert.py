# tests/test_paper_upsert.py
from unittest.mock import patch

import pytest
from sqlalchemy import func, select
from sqlalchemy.dialects import postgresql

from conftest import arxiv_item
from database.models.paper_model import Author, Paper, PaperAuthor, PaperVersion
from services.paper_upsert_service import PaperUpsertError, locked_paper_query, upsert_paper


def _count(db, model, *where):
    return db.execute(select(func.count()).select_from(model).where(*where)).scalar_one()


def test_two_versions_merge_into_one_paper(db):
    upsert_paper(db, arxiv_item("2501.00001", categories=["cs.AI"], title="First title"), query_category="cs.AI")
    result = upsert_paper(
        db,
        arxiv_item("2501.00001v2", categories=["cs.LG"], title="Second title",
                   updated="2025-01-09T00:00:00Z"),
        query_category="cs.LG",
    )

    assert result.created is False
    assert result.version_created is True

    db.expire_all()
    papers = db.execute(select(Paper)).scalars().all()
    assert len(papers) == 1
    paper = papers[0]
    assert paper.categories == ["cs.AI", "cs.LG"]
    assert paper.latest_version == 2
    assert paper.title == "Second title"
    assert paper.primary_category == "cs.AI"

    versions = db.execute(
        select(PaperVersion.version, PaperVersion.title).where(PaperVersion.paper_id == paper.id).order_by(PaperVersion.version)
    ).all()
    assert versions == [(1, "First title"), (2, "Second title")]


def test_reupserting_same_item_is_idempotent(db):
    item = arxiv_item("2501.00002v1", authors=["Alice Smith", "Bob Jones", "Alice Smith"])
    first = upsert_paper(db, item, query_category="cs.AI")
    second = upsert_paper(db, item, query_category="cs.AI")

    assert first.paper_id == second.paper_id
    assert first.created and not second.created
    assert not second.version_created
    assert _count(db, Paper) == 1
    assert _count(db, PaperVersion) == 1
    assert _count(db, Author) == 2
    assert _count(db, PaperAuthor) == 2


def test_older_version_never_regresses(db):
    upsert_paper(db, arxiv_item("2501.00003v3", title="v3 title", updated="2025-01-10T00:00:00Z"))
    upsert_paper(db, arxiv_item("2501.00003v1", title="v1 title", updated="2025-01-01T00:00:00Z"))

    db.expire_all()
    paper = db.execute(select(Paper)).scalar_one()
    assert paper.latest_version == 3
    assert paper.title == "v3 title"
    assert _count(db, PaperVersion) == 2


def test_author_positions_follow_latest_list(db):
    upsert_paper(db, arxiv_item("2501.00004v1", authors=["A One", "B Two"]))
    upsert_paper(db, arxiv_item("2501.00004v2", authors=["B Two", "A One"], updated="2025-01-05T00:00:00Z"))

    rows = db.execute(
        select(Author.name, PaperAuthor.position)
        .join(PaperAuthor, PaperAuthor.author_id == Author.id)
        .order_by(PaperAuthor.position)
    ).all()
    assert rows == [("B Two", 0), ("A One", 1)]


def test_prune_removes_authors_only_when_requested(db):
    upsert_paper(db, arxiv_item("2501.00005v1", authors=["A One", "B Two"]))
    upsert_paper(db, arxiv_item("2501.00005v2", authors=["A One"]))
    assert _count(db, PaperAuthor) == 2

    upsert_paper(db, arxiv_item("2501.00005v2", authors=["A One"]), prune_authors=True)
    assert _count(db, PaperAuthor) == 1


def test_invalid_items_raise(db):
    with pytest.raises(PaperUpsertError):
        upsert_paper(db, arxiv_item("not-an-id"))
    with pytest.raises(PaperUpsertError):
        upsert_paper(db, arxiv_item("2501.00006", title="   "))


def test_conflict_merge_rereads_with_row_lock(db):
    upsert_paper(db, arxiv_item("2501.00005", categories=["cs.AI"]), query_category="cs.AI")

    with patch("services.paper_upsert_service.locked_paper_query", wraps=locked_paper_query) as spy:
        upsert_paper(db, arxiv_item("2501.00005", categories=["cs.LG"]), query_category="cs.LG")

    spy.assert_called_once_with("2501.00005")
    sql = str(locked_paper_query("2501.00005").compile(dialect=postgresql.dialect()))
    assert "FOR UPDATE" in sql

    db.expire_all()
    assert db.execute(select(Paper.categories)).scalar_one() == ["cs.AI", "cs.LG"]
