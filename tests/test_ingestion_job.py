# tests/test_ingestion_job.py
import asyncio
import threading
import time
from datetime import timedelta
from unittest.mock import patch

from sqlalchemy import select

from conftest import arxiv_item
from clients.arxiv_client import ArxivAPIError
from database.models.paper_model import IngestRun, Paper
from services import ingestion_service
from services.ingestion_service import run_ingest_job
from utils.timestamps import to_iso, utc_now


def _recent(days_ago=0):
    return to_iso(utc_now() - timedelta(days=days_ago))


def test_ingest_upserts_items_and_records_run(db):
    pages = {
        ("cat:cs.AI", 0): [arxiv_item("2501.00011v1", published=_recent()), arxiv_item("2501.00012v1", published=_recent())],
        ("cat:cs.LG", 0): [arxiv_item("2501.00011v2", categories=["cs.LG"], published=_recent())],
    }

    def fake_search(query, start, size):
        return pages.get((query, start), [])

    with patch("services.ingestion_service.search_arxiv", side_effect=fake_search):
        result = asyncio.run(run_ingest_job(["cs.AI", "cs.LG"], pages=2, size=2, days=3, concurrency=1))

    assert result["status"] == "ok"
    assert result["fetched"] == 3
    assert result["processed"] == 3
    assert result["errors"] == 0
    assert result["timedOut"] is False

    papers = {p.arxiv_id_base: p for p in db.execute(select(Paper)).scalars().all()}
    assert set(papers) == {"2501.00011", "2501.00012"}
    assert papers["2501.00011"].latest_version == 2
    assert papers["2501.00011"].categories == ["cs.AI", "cs.LG"]

    run = db.get(IngestRun, result["runId"])
    assert run.status == "ok"
    assert run.items_fetched == 3
    assert run.note.startswith("cats=cs.AI|cs.LG; pages=2; size=2; days=3")


def test_lookback_stops_paging(db):
    calls = []

    def fake_search(query, start, size):
        calls.append(start)
        return [arxiv_item("2501.00021", published=_recent()), arxiv_item("2501.00022", published=_recent(30))]

    with patch("services.ingestion_service.search_arxiv", side_effect=fake_search):
        result = asyncio.run(run_ingest_job(["cs.AI"], pages=5, size=2, days=3, concurrency=1))

    assert calls == [0]
    assert result["processed"] == 1


def test_fetch_failure_ends_category_but_not_job(db):
    def fake_search(query, start, size):
        if query == "cat:cs.CV":
            raise ArxivAPIError("arXiv error 503")
        return [arxiv_item("2501.00031", published=_recent())]

    with patch("services.ingestion_service.search_arxiv", side_effect=fake_search):
        result = asyncio.run(run_ingest_job(["cs.CV", "cs.AI"], pages=1, size=5, days=0, concurrency=1))

    assert result["processed"] == 1
    assert result["status"] == "ok"
    assert any("cs.CV" in note for note in result["notes"])


def test_bad_items_are_recorded_per_item(db):
    def fake_search(query, start, size):
        return [arxiv_item("2501.00041", published=_recent()), arxiv_item("2501.00042", title="", published=_recent())]

    with patch("services.ingestion_service.search_arxiv", side_effect=fake_search):
        result = asyncio.run(run_ingest_job(["cs.AI"], pages=1, size=5, days=0, concurrency=1))

    assert result["processed"] == 1
    assert result["errors"] == 1
    assert result["itemErrors"][0]["arxivId"] == "2501.00042"


def test_deadline_stops_the_job(db):
    def slow_search(query, start, size):
        time.sleep(1.2)
        return [arxiv_item("2501.00051", published=_recent())]

    with patch("services.ingestion_service.search_arxiv", side_effect=slow_search):
        result = asyncio.run(run_ingest_job(["cs.AI", "cs.LG"], pages=3, size=5, days=0,
                                            concurrency=4, max_seconds=1))

    assert result["timedOut"] is True
    assert result["processed"] == 0
    assert result["notes"] == ["stopped at deadline"]
    assert db.execute(select(Paper)).scalars().all() == []


def test_upserts_never_exceed_concurrency(db):
    in_flight = 0
    peak = 0
    lock = threading.Lock()

    def counting_upsert(item, category, prune_authors):
        nonlocal in_flight, peak
        with lock:
            in_flight += 1
            peak = max(peak, in_flight)
        time.sleep(0.05)
        with lock:
            in_flight -= 1
        return item["arxiv_id"]

    items = [arxiv_item(f"2501.0006{i}", published=_recent()) for i in range(8)]
    with (
        patch("services.ingestion_service.search_arxiv", return_value=items),
        patch.object(ingestion_service, "_upsert_item", side_effect=counting_upsert),
    ):
        result = asyncio.run(run_ingest_job(["cs.AI"], pages=1, size=8, days=0, concurrency=3))

    assert result["processed"] == 8
    assert 1 < peak <= 3


def test_same_paper_from_three_categories_in_parallel(db):
    def fake_search(query, start, size):
        category = query.split(":", 1)[1]
        return [arxiv_item("2501.00071", categories=[category], published=_recent())]

    with patch("services.ingestion_service.search_arxiv", side_effect=fake_search):
        result = asyncio.run(run_ingest_job(["cs.AI", "cs.LG", "cs.CL"], pages=1, size=5, days=0,
                                            concurrency=4))

    assert result["processed"] == 3
    assert result["errors"] == 0
    paper = db.execute(select(Paper)).scalar_one()
    assert sorted(paper.categories) == ["cs.AI", "cs.CL", "cs.LG"]
