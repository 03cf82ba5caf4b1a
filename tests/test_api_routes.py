# tests/test_api_routes.py
from datetime import timedelta
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from api.dependencies.auth import get_current_user
from api.main import app
from conftest import arxiv_item
from services.llm_schemas import ExtractedPaper
from services.paper_upsert_service import upsert_paper
from utils.timestamps import to_iso, utc_now

client = TestClient(app)


@pytest.fixture
def papers(db):
    for i, days_ago in enumerate([0, 1, 2], start=1):
        upsert_paper(db, arxiv_item(
            f"2504.0000{i}",
            title=f"Paper {i} on distillation" if i == 2 else f"Paper {i}",
            published=to_iso(utc_now() - timedelta(days=days_ago, hours=1)),
            primary_category="cs.CL" if i == 3 else "cs.LG",
        ))


def test_health():
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}


def test_database_health(tables):
    assert client.get("/health/db").json() == {"status": "ok", "database": "ok"}


def test_cron_requires_secret(tables):
    assert client.post("/cron/ingest").status_code == 401
    assert client.post("/cron/digest", headers={"Authorization": "Bearer wrong"}).status_code == 401


def test_cron_ingest_clamps_params(tables, cron_headers):
    with patch("api.routers.cron.run_ingest_job", return_value={"status": "ok"}) as mock_job:
        r = client.post("/cron/ingest?cats=cs.AI,cs.CL&pages=99&max=0&days=abc", headers=cron_headers)

    assert r.status_code == 200
    kwargs = mock_job.call_args.kwargs
    assert kwargs == {"categories": ["cs.AI", "cs.CL"], "pages": 10, "size": 1, "days": 3}


def test_feed_paginates_with_cursor(papers):
    first = client.get("/papers?limit=2").json()
    assert [p["arxivId"] for p in first["items"]] == ["2504.00001", "2504.00002"]
    assert first["nextCursor"]

    second = client.get("/papers", params={"limit": 2, "cursor": first["nextCursor"]}).json()
    assert [p["arxivId"] for p in second["items"]] == ["2504.00003"]
    assert second["nextCursor"] is None


def test_feed_category_filter_uses_primary_category(papers):
    r = client.get("/papers?categories=cs.CL")
    assert [p["arxivId"] for p in r.json()["items"]] == ["2504.00003"]


def test_paper_detail_accepts_urls_and_rejects_garbage(papers):
    r = client.get("/papers/arxiv.org/abs/2504.00001v1")
    assert r.status_code == 200
    body = r.json()
    assert body["arxivId"] == "2504.00001"
    assert body["versions"][0]["version"] == 1
    assert body["authors"] == ["Alice Smith", "Bob Jones"]

    assert client.get("/papers/not-an-id").status_code == 400
    assert client.get("/papers/2504.09999").status_code == 404


def test_compare_returns_stubs_for_unknown_ids(papers):
    r = client.get("/compare?ids=2504.00001,2504.09999,2504.00002")
    assert r.status_code == 200
    items = r.json()["items"]
    assert len(items) == 2
    assert items[0]["found"] is True
    assert "oneLiner" in items[0]["quickSummary"]
    assert items[1] == {"arxivId": "2504.09999", "found": False}

    assert client.get("/compare?ids=junk").status_code == 400


def test_watchlists_crud_and_ownership(tables, auth_headers):
    bad = client.post("/user/watchlists", json={"type": "keyword", "name": "x", "terms": []}, headers=auth_headers)
    assert bad.status_code == 422

    created = client.post(
        "/user/watchlists",
        json={"type": "keyword", "name": "KD", "terms": [" distillation ", "distillation"], "categories": ["cs.LG"]},
        headers=auth_headers,
    )
    assert created.status_code == 201
    wl = created.json()
    assert wl["terms"] == ["distillation"]

    app.dependency_overrides[get_current_user] = lambda: "someone-else"
    try:
        assert client.delete(f"/user/watchlists/{wl['id']}").status_code == 404
    finally:
        app.dependency_overrides.clear()

    assert client.delete(f"/user/watchlists/{wl['id']}", headers=auth_headers).status_code == 200
    assert client.get("/user/watchlists", headers=auth_headers).json()["items"] == []


def test_for_you_feed_rescores_with_watchlists(papers, auth_headers):
    client.post("/user/watchlists", json={"type": "keyword", "name": "KD", "terms": ["distillation"]}, headers=auth_headers)
    items = client.get("/papers?view=for-you", headers=auth_headers).json()["items"]
    watch = {it["arxivId"]: it["score"]["components"]["watchlist"] for it in items}
    assert watch["2504.00002"] > 0
    assert watch["2504.00001"] == 0
    scores = [it["score"]["global"] for it in items]
    assert scores == sorted(scores, reverse=True)


def test_save_cycles_status(papers, auth_headers):
    statuses = [
        client.post("/user/save", json={"arxivId": "2504.00001"}, headers=auth_headers).json()["status"]
        for _ in range(5)
    ]
    assert statuses == ["queued", "saved", "reading", "done", "queued"]

    assert client.post("/user/save", json={"arxivId": "2504.09999"}, headers=auth_headers).status_code == 404
    assert client.delete("/user/save?arxivId=2504.00001", headers=auth_headers).json() == {"deleted": 1}


def test_user_routes_require_auth(tables):
    assert client.get("/user/profile").status_code == 401


def test_profile_patch_and_delete(tables, auth_headers):
    r = client.patch("/user/profile", json={"displayName": "Ada", "preferences": {"digest": "weekly"}}, headers=auth_headers)
    assert r.json()["displayName"] == "Ada"
    assert r.json()["preferences"] == {"digest": "weekly"}

    assert client.delete("/user/profile", headers=auth_headers).status_code == 400
    assert client.delete("/user/profile?confirm=true", headers=auth_headers).json()["counts"]["profile"] == 1


@patch("api.routers.llm.extract_paper_fields")
def test_extract_route(mock_extract):
    mock_extract.return_value = ExtractedPaper(method="M")
    r = client.post("/extract", json={"title": "T", "abstract": "A"})
    assert r.status_code == 200
    assert r.json()["method"] == "M"

    assert client.post("/extract", json={"title": "", "abstract": "A"}).status_code == 422


def test_pwc_route_rejects_malformed_ids():
    assert client.get("/pwc/abc").status_code == 400
