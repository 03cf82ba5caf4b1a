# database/models/paper_model.py
import uuid
from sqlalchemy import (
    Column, Integer, String, Text, JSON, DateTime, ForeignKey, UniqueConstraint, PrimaryKeyConstraint
)
from database.db import Base
from utils.timestamps import utc_now


def new_uuid() -> str:
    return str(uuid.uuid4())


class Paper(Base):
    __tablename__ = "papers"

    id = Column(String(36), primary_key=True, default=new_uuid)

    # Canonical arXiv id without version, e.g. 2501.12345
    arxiv_id_base = Column(String(32), unique=True, index=True, nullable=False)
    latest_version = Column(Integer, nullable=False, default=1)

    title = Column(Text, nullable=False)
    abstract = Column(Text, nullable=False, default="")
    categories = Column(JSON, nullable=False, default=lambda: [])
    primary_category = Column(String(64), nullable=True, index=True)

    published_at = Column(DateTime, nullable=False, index=True)
    updated_at = Column(DateTime, nullable=True)

    pdf_url = Column(Text, nullable=True)
    abs_url = Column(Text, nullable=True)
    comment = Column(Text, nullable=True)


class PaperVersion(Base):
    __tablename__ = "paper_versions"

    id = Column(String(36), primary_key=True, default=new_uuid)
    paper_id = Column(String(36), ForeignKey("papers.id", ondelete="CASCADE"), nullable=False, index=True)
    version = Column(Integer, nullable=False)
    title = Column(Text, nullable=False)
    abstract = Column(Text, nullable=False, default="")
    updated_at = Column(DateTime, nullable=True)

    __table_args__ = (
        UniqueConstraint("paper_id", "version", name="uq_paper_version"),
    )


class Author(Base):
    __tablename__ = "authors"

    id = Column(String(36), primary_key=True, default=new_uuid)
    name = Column(String(512), unique=True, nullable=False)
    norm_name = Column(String(512), nullable=True, index=True)
    orcid = Column(String(64), nullable=True)


class PaperAuthor(Base):
    __tablename__ = "paper_authors"

    paper_id = Column(String(36), ForeignKey("papers.id", ondelete="CASCADE"), nullable=False)
    author_id = Column(String(36), ForeignKey("authors.id", ondelete="CASCADE"), nullable=False)
    position = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        PrimaryKeyConstraint("paper_id", "author_id", name="pk_paper_author"),
    )


class IngestRun(Base):
    __tablename__ = "ingest_runs"

    id = Column(String(36), primary_key=True, default=new_uuid)
    started_at = Column(DateTime, nullable=False, default=utc_now)
    finished_at = Column(DateTime, nullable=True)
    status = Column(String(16), nullable=False, default="running")  # running | ok | failed
    items_fetched = Column(Integer, nullable=False, default=0)
    note = Column(Text, nullable=True)
