# database/models/user_model.py
import enum
from sqlalchemy import Column, String, Text, JSON, DateTime, Enum, ForeignKey, UniqueConstraint
from database.db import Base
from database.models.paper_model import new_uuid
from utils.timestamps import utc_now


class WatchlistType(str, enum.Enum):
    KEYWORD = "keyword"
    AUTHOR = "author"
    BENCHMARK = "benchmark"
    INSTITUTION = "institution"


class SaveStatus(str, enum.Enum):
    QUEUED = "queued"
    SAVED = "saved"
    READING = "reading"
    DONE = "done"


class DigestStatus(str, enum.Enum):
    SCHEDULED = "scheduled"
    SENT = "sent"
    FAILED = "failed"


def _enum_values(enum_cls):
    return [e.value for e in enum_cls]


class Profile(Base):
    __tablename__ = "profiles"

    id = Column(String(255), primary_key=True, index=True)  # identity-provider user id
    display_name = Column(String(255), nullable=True)
    avatar_url = Column(Text, nullable=True)
    email = Column(String(320), nullable=True)
    preferences = Column(JSON, nullable=False, default=lambda: {})
    created_at = Column(DateTime, nullable=False, default=utc_now)


class Watchlist(Base):
    __tablename__ = "watchlists"

    id = Column(String(36), primary_key=True, default=new_uuid)
    user_id = Column(String(255), nullable=False, index=True)
    type = Column(Enum(WatchlistType, values_callable=_enum_values), nullable=False)
    name = Column(String(64), nullable=False)
    terms = Column(JSON, nullable=False, default=lambda: [])
    categories = Column(JSON, nullable=False, default=lambda: [])
    created_at = Column(DateTime, nullable=False, default=utc_now)


class UserSave(Base):
    __tablename__ = "user_saves"

    id = Column(String(36), primary_key=True, default=new_uuid)
    user_id = Column(String(255), nullable=False, index=True)
    paper_id = Column(String(36), ForeignKey("papers.id", ondelete="CASCADE"), nullable=False)
    status = Column(Enum(SaveStatus, values_callable=_enum_values), nullable=False, default=SaveStatus.QUEUED)
    created_at = Column(DateTime, nullable=False, default=utc_now)

    __table_args__ = (
        UniqueConstraint("user_id", "paper_id", name="uq_user_save"),
    )


class Digest(Base):
    __tablename__ = "digests"

    id = Column(String(36), primary_key=True, default=new_uuid)
    user_id = Column(String(255), nullable=False, index=True)
    scheduled_for = Column(DateTime, nullable=False)
    items = Column(JSON, nullable=False, default=lambda: [])  # [{paperId, reason}]
    status = Column(Enum(DigestStatus, values_callable=_enum_values), nullable=False, default=DigestStatus.SCHEDULED)
    sent_at = Column(DateTime, nullable=True)
