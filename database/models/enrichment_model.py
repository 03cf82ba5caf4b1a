# database/models/enrichment_model.py
from sqlalchemy import Column, Integer, String, Text, JSON, DateTime, Boolean, Float, ForeignKey
from database.db import Base
from database.models.paper_model import new_uuid
from utils.timestamps import utc_now


# Enrichment, structured and PwC rows are append-only; readers pick the latest row per paper.

class PaperEnrichment(Base):
    __tablename__ = "paper_enrich"

    id = Column(String(36), primary_key=True, default=new_uuid)
    paper_id = Column(String(36), ForeignKey("papers.id", ondelete="CASCADE"), nullable=False, index=True)

    code_urls = Column(JSON, nullable=False, default=lambda: [])
    primary_repo = Column(String(255), nullable=True)
    repo_license = Column(String(64), nullable=True)
    repo_stars = Column(Integer, nullable=True)
    has_weights = Column(Boolean, nullable=True)
    readme_excerpt = Column(Text, nullable=True)
    readme_sha = Column(String(64), nullable=True)

    updated_at = Column(DateTime, nullable=False, default=utc_now, index=True)


class PaperStructured(Base):
    __tablename__ = "paper_structured"

    id = Column(String(36), primary_key=True, default=new_uuid)
    paper_id = Column(String(36), ForeignKey("papers.id", ondelete="CASCADE"), nullable=False, index=True)

    method = Column(Text, nullable=True)
    tasks = Column(JSON, nullable=False, default=lambda: [])
    datasets = Column(JSON, nullable=False, default=lambda: [])
    benchmarks = Column(JSON, nullable=False, default=lambda: [])
    claimed_sota = Column(JSON, nullable=False, default=lambda: [])
    params = Column(Float, nullable=True)
    tokens = Column(Float, nullable=True)
    compute = Column(Text, nullable=True)
    code_urls = Column(JSON, nullable=False, default=lambda: [])

    created_at = Column(DateTime, nullable=False, default=utc_now, index=True)


class PaperScore(Base):
    __tablename__ = "paper_scores"

    # One row per paper, overwritten on recompute
    paper_id = Column(String(36), ForeignKey("papers.id", ondelete="CASCADE"), primary_key=True)
    global_score = Column(Float, nullable=False, default=0.0)
    components = Column(JSON, nullable=False, default=lambda: {})
    updated_at = Column(DateTime, nullable=False, default=utc_now)


class PwcLink(Base):
    __tablename__ = "pwc_links"

    id = Column(String(36), primary_key=True, default=new_uuid)
    paper_id = Column(String(36), ForeignKey("papers.id", ondelete="CASCADE"), nullable=False, index=True)

    found = Column(Boolean, nullable=False, default=False)
    paper_url = Column(Text, nullable=True)
    repo_url = Column(Text, nullable=True)
    repo_stars = Column(Integer, nullable=True)
    search_url = Column(Text, nullable=False, default="")
    sota_links = Column(JSON, nullable=False, default=lambda: [])

    updated_at = Column(DateTime, nullable=False, default=utc_now, index=True)
