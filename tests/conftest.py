# tests/conftest.py
import os
import tempfile

_DB_DIR = tempfile.mkdtemp(prefix="ronbun-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_DB_DIR, 'test.db')}"
os.environ.setdefault("NEXTAUTH_SECRET", "test-nextauth-secret")
os.environ.setdefault("CRON_SECRET", "test-cron-secret")
os.environ.setdefault("APP_ENV", "test")

import pytest
from jose import jwt

from database.db import Base, SessionLocal, engine
from database.models import paper_model, enrichment_model, user_model  # noqa: F401


@pytest.fixture
def tables():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db(tables):
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


def make_token(user_id: str) -> str:
    return jwt.encode({"sub": user_id}, os.environ["NEXTAUTH_SECRET"], algorithm="HS256")


@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {make_token('user-1')}"}


@pytest.fixture
def cron_headers():
    return {"Authorization": f"Bearer {os.environ['CRON_SECRET']}"}


def arxiv_item(arxiv_id: str, title: str = "A Paper", summary: str = "An abstract.",
               categories=None, authors=None, published: str = "2025-01-02T00:00:00Z",
               updated: str = None, primary_category: str = None) -> dict:
    return {
        "arxiv_id": arxiv_id,
        "title": title,
        "summary": summary,
        "authors": authors if authors is not None else ["Alice Smith", "Bob Jones"],
        "categories": categories if categories is not None else ["cs.AI"],
        "primary_category": primary_category,
        "published": published,
        "updated": updated or published,
        "pdf_url": None,
        "comment": None,
    }
