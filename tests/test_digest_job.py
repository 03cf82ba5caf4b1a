# tests/test_digest_job.py
import asyncio
from datetime import timedelta
from unittest.mock import patch

from sqlalchemy import select

from conftest import arxiv_item
from database.models.user_model import Digest, DigestStatus, Profile, Watchlist, WatchlistType
from services.digest_service import run_digest_job
from services.paper_upsert_service import upsert_paper
from utils.timestamps import to_iso, utc_now


def _seed(db):
    now = to_iso(utc_now() - timedelta(hours=2))
    upsert_paper(db, arxiv_item("2503.00001", title="Students and mentors",
                                summary="We revisit knowledge distillation.", published=now))
    upsert_paper(db, arxiv_item("2503.00002", title="Vision backbones",
                                summary="A convolutional design.", published=now))
    db.add(Watchlist(user_id="user-1", type=WatchlistType.KEYWORD, name="KD", terms=["distillation"]))
    db.add(Watchlist(user_id="user-2", type=WatchlistType.AUTHOR, name="Nobody", terms=["Nobody Known"]))
    db.add(Profile(id="user-1", email="reader@example.com", display_name="Reader"))
    db.commit()


def test_dry_run_ranks_without_writing(db):
    _seed(db)
    result = asyncio.run(run_digest_job(db, dry=True, schedule=True, send=True))

    by_user = {r["userId"]: r for r in result["results"]}
    assert by_user["user-1"]["count"] == 1
    assert by_user["user-1"]["items"][0]["arxivId"] == "2503.00001"
    assert "Keyword: distillation" in by_user["user-1"]["items"][0]["reason"]
    assert by_user["user-2"]["count"] == 0
    assert db.execute(select(Digest)).scalars().all() == []


def test_schedule_and_send_marks_digest_sent(db):
    _seed(db)
    with patch("services.digest_service.send_digest_email", return_value="console") as mock_send:
        result = asyncio.run(run_digest_job(db, user_ids=["user-1"], schedule=True, send=True))

    assert result["results"][0]["sent"] is True
    mock_send.assert_called_once()
    assert mock_send.call_args[0][0] == "reader@example.com"

    digest = db.execute(select(Digest)).scalar_one()
    assert digest.status == DigestStatus.SENT
    assert digest.sent_at is not None
    assert digest.items[0]["reason"] == "Keyword: distillation"


def test_user_failure_is_recorded_and_others_continue(db):
    _seed(db)
    with patch("services.digest_service.send_digest_email", side_effect=RuntimeError("smtp down")):
        result = asyncio.run(run_digest_job(db, user_ids=["user-1", "user-2"], send=True))

    by_user = {r["userId"]: r for r in result["results"]}
    assert by_user["user-1"]["ok"] is False
    assert by_user["user-2"]["ok"] is True
