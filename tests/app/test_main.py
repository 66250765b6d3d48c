"""Test the assembled Community Map application."""

import pytest
from fastapi.testclient import TestClient

from app.config import Settings, settings
from app.main import app, create_session


@pytest.fixture
def client():
    """Test client with lifespan startup/shutdown."""
    with TestClient(app) as c:
        yield c


@pytest.mark.unit
class TestApplication:

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "operational"
        assert data["system"] == "Community Map"

    def test_routers_mounted(self, client):
        assert client.get("/api/features").status_code == 200
        assert client.get("/api/features/quota").json()["limit"] == settings.free_point_limit

    def test_session_from_settings(self):
        session = create_session()
        assert session.tier == settings.default_tier
        assert session.point_limit == settings.free_point_limit
        assert session.map_size == (settings.map_width, settings.map_height)


@pytest.mark.unit
class TestSettings:

    def test_defaults(self):
        s = Settings()
        assert s.default_tier == "free"
        assert s.free_point_limit == 20
        assert s.create_rebuild_delay == pytest.approx(0.1)
        assert s.render_scale == pytest.approx(2.0)

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("FREE_POINT_LIMIT", "5")
        assert Settings().free_point_limit == 5


@pytest.mark.unit
class TestDashboardExport:

    def test_sentiment_breakdown_through_json_export(self, client):
        pro = {"X-Tier": "pro", "X-User-Id": "u1"}
        client.post("/api/comments", headers=pro, json={"comment_text": "great", "feature_id": "f1"})
        breakdown = client.get("/api/comments/analytics", headers=pro).json()

        resp = client.post("/api/features/export/json", headers=pro, json={
            "data": {"type": "comments_sentiment", "data": breakdown},
            "file_base": "comments-sentiment-analysis",
        })
        assert resp.status_code == 200
        assert resp.json()["data"]["total_comments"] == 1
