"""Unit tests for the /api/comments endpoints."""
from __future__ import annotations

import csv
import io

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.routers.comments import router
from commap.comments import COMMENT_CSV_HEADERS, InMemoryCommentStore, KeywordSentiment


def _make_app(store=None, analyzer=None):
    """Create a minimal FastAPI app with the comments router."""
    app = FastAPI()
    app.include_router(router)
    app.state.comment_store = store if store is not None else InMemoryCommentStore()
    app.state.sentiment = analyzer or KeywordSentiment()
    return app


@pytest.fixture
def client():
    return TestClient(_make_app())


def _post(client, text="Great spot", feature_id="f1", **headers):
    headers = {"X-User-Id": "u1", **headers}
    return client.post("/api/comments", headers=headers, json={
        "comment_text": text,
        "feature_id": feature_id,
        "feature_coordinates": [12.5, 41.9],
        "feature_geometry": {"type": "Point", "coordinates": [12.5, 41.9]},
    })


@pytest.mark.unit
class TestComments:

    def test_create_and_list(self, client):
        resp = _post(client)
        assert resp.status_code == 200
        comment = resp.json()["comment"]
        assert comment["feature_id"] == "f1"
        assert comment["user_id"] == "u1"
        assert comment["feature_coordinates"] == [12.5, 41.9]

        listed = client.get("/api/comments", params={"feature_id": "f1"}).json()
        assert [c["comment_text"] for c in listed["comments"]] == ["Great spot"]

    def test_list_requires_feature_id(self, client):
        assert client.get("/api/comments").status_code == 400

    def test_create_requires_user(self, client):
        resp = client.post("/api/comments", json={"comment_text": "x", "feature_id": "f1"})
        assert resp.status_code == 401

    def test_empty_text_is_400(self, client):
        assert _post(client, text="").status_code == 400

    def test_sentiment_only_for_pro(self, client):
        free = _post(client).json()["comment"]
        pro = _post(client, **{"X-Tier": "pro"}).json()["comment"]
        assert free["sentiment_category"] is None
        assert pro["sentiment_category"] == "Positive"

    def test_no_store_is_503(self):
        app = FastAPI()
        app.include_router(router)
        assert TestClient(app).get("/api/comments", params={"feature_id": "f1"}).status_code == 503


@pytest.mark.unit
class TestCommentExport:

    def test_free_tier_refused(self, client):
        resp = client.get("/api/comments/export")
        assert resp.status_code == 403
        assert resp.json()["detail"] == "Pro subscription required"

    def test_pro_export(self, client):
        _post(client, text='Says "hello", twice')
        resp = client.get("/api/comments/export", headers={"X-Tier": "pro"})
        assert resp.status_code == 200
        assert "spatial-comments-" in resp.headers["content-disposition"]
        rows = list(csv.reader(io.StringIO(resp.text)))
        assert rows[0] == COMMENT_CSV_HEADERS
        assert rows[1][2] == 'Says "hello", twice'


@pytest.mark.unit
class TestCommentAnalytics:

    def test_free_tier_refused(self, client):
        assert client.get("/api/comments/analytics").status_code == 403
        assert client.get("/api/comments/analytics/export").status_code == 403

    def test_breakdown(self, client):
        _post(client, text="great park", **{"X-Tier": "pro"})
        _post(client, text="awful noise", **{"X-Tier": "pro"})
        _post(client, text="no sentiment for free authors")
        body = client.get("/api/comments/analytics", headers={"X-Tier": "pro"}).json()
        assert body["total_comments"] == 2
        values = {row["name"]: row["value"] for row in body["sentiment_breakdown"]}
        assert values == {"Positive": 50, "Neutral": 0, "Negative": 50}

    def test_breakdown_download(self, client):
        _post(client, text="love it", **{"X-Tier": "pro"})
        resp = client.get("/api/comments/analytics/export", headers={"X-Tier": "pro"})
        assert resp.status_code == 200
        assert 'filename="comments-sentiment-analysis.json"' in resp.headers["content-disposition"]
        body = resp.json()
        assert body["type"] == "comments_sentiment"
        assert body["data"]["total_comments"] == 1
