# tests/test_author_service.py
from unittest.mock import patch

from sqlalchemy import func, select, text

from database.db import SessionLocal
from database.models.paper_model import Author
from services import author_service
from services.author_service import resolve_author_ids


def test_creates_unknown_names_once(db):
    first = resolve_author_ids(db, ["Ada Lovelace", "Alan Turing", "Ada Lovelace"])
    db.commit()
    second = resolve_author_ids(db, ["Alan Turing", "Grace Hopper"])
    db.commit()

    assert set(first) == {"Ada Lovelace", "Alan Turing"}
    assert second["Alan Turing"] == first["Alan Turing"]
    assert db.execute(select(func.count()).select_from(Author)).scalar_one() == 3


def test_norm_name_is_filled(db):
    resolve_author_ids(db, ["  Ada   LOVELACE "])
    db.commit()
    author = db.execute(select(Author)).scalar_one()
    assert author.name == "Ada LOVELACE"
    assert author.norm_name == "ada lovelace"


def test_overlapping_calls_converge_on_one_id(db):
    # The other worker commits "Shared Name" after this worker's first lookup missed it
    other = SessionLocal()
    try:
        racing_ids = resolve_author_ids(other, ["Shared Name", "Other Only"])
        other.commit()
    finally:
        other.close()

    real_lookup = author_service._lookup_author_ids
    calls = []

    def stale_first_lookup(session, names):
        calls.append(list(names))
        if len(calls) == 1:
            return {}
        return real_lookup(session, names)

    with patch("services.author_service._lookup_author_ids", side_effect=stale_first_lookup):
        ids = resolve_author_ids(db, ["Shared Name", "Mine Only"])
        db.commit()

    assert len(calls) == 2
    assert ids["Shared Name"] == racing_ids["Shared Name"]
    assert "Mine Only" in ids
    count = db.execute(
        select(func.count()).select_from(Author).where(Author.name == "Shared Name")
    ).scalar_one()
    assert count == 1


def test_new_authors_are_inserted_in_name_order(db):
    ids = resolve_author_ids(db, ["Zoe Zhang", "Ada Lovelace", "Mia Chen"])
    db.commit()

    assert set(ids) == {"Zoe Zhang", "Ada Lovelace", "Mia Chen"}
    inserted = db.execute(select(Author.name).order_by(text("rowid"))).scalars().all()
    assert inserted == ["Ada Lovelace", "Mia Chen", "Zoe Zhang"]
