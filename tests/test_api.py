"""
Tests for the HTTP API: routing, response shapes and error mapping.

The client is not used as a context manager so the startup hook (database
and index bootstrap) does not run; every dependency is overridden instead.
"""

import pytest
from fastapi.testclient import TestClient

from backend.app.dependencies import get_cache, get_db, get_discovery_service, get_indexes
from backend.app.main import create_app
from contribux.index.manager import IndexManager
from contribux.index.registry import SearchIndexes
from contribux.index.vector_index import BruteForceIndex
from contribux.services import DiscoveryService

from keyword_embeddings import DIMENSION


@pytest.fixture
def app(test_session, discovery, indexes):
    app = create_app()

    def override_get_db():
        yield test_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_indexes] = lambda: indexes
    app.dependency_overrides[get_cache] = lambda: None
    app.dependency_overrides[get_discovery_service] = lambda: discovery
    return app


@pytest.fixture
def client(app):
    return TestClient(app, raise_server_exceptions=False)


class TestSearchEndpoints:
    def test_search(self, client, seeded):
        response = client.get("/api/v1/search", params={"q": "flaky test", "limit": 5})

        assert response.status_code == 200
        data = response.json()
        assert data["results"][0]["id"] == seeded["flaky"].id
        assert data["degraded"] is False

    def test_search_with_filters(self, client, seeded):
        response = client.get("/api/v1/search", params={"q": "parser", "type": "feature", "language": "Rust"})

        assert response.status_code == 200
        assert [r["id"] for r in response.json()["results"]] == [seeded["parser"].id]

    def test_search_by_vector(self, client, seeded):
        response = client.post("/api/v1/search", json={"vector": [0.0, 0.0, 1.0, 0.0]})

        assert response.status_code == 200
        assert response.json()["results"][0]["id"] == seeded["parser"].id

    def test_empty_body_is_422(self, client, seeded):
        response = client.post("/api/v1/search", json={})

        assert response.status_code == 422
        assert response.json()["error"] == "EmptyQuery"

    def test_dimension_mismatch_is_422(self, client, seeded):
        response = client.post("/api/v1/search", json={"vector": [1.0, 0.0]})

        assert response.status_code == 422
        assert response.json()["error"] == "DimensionMismatch"

    def test_limit_validated(self, client):
        assert client.get("/api/v1/search", params={"q": "x", "limit": 0}).status_code == 422

    def test_search_repositories(self, client, seeded):
        response = client.get("/api/v1/search/repositories", params={"q": "rust compiler"})

        assert response.status_code == 200
        assert response.json()["results"][0]["id"] == seeded["rust_repo"].id


class TestUserEndpoints:
    def test_feed(self, client, seeded):
        response = client.get(f"/api/v1/users/{seeded['user'].id}/feed")

        assert response.status_code == 200
        data = response.json()
        assert data["user_id"] == seeded["user"].id
        assert data["results"][0]["id"] == seeded["docs"].id
        assert data["results"][0]["reasons"]

    def test_feed_unknown_user_is_404(self, client, seeded):
        response = client.get("/api/v1/users/4242/feed")

        assert response.status_code == 404
        assert "4242" in response.json()["detail"]

    def test_similar_users_index_unavailable_is_503(
        self, app, client, catalog, indexes, embedding_service, settings, seeded
    ):
        unbuilt = IndexManager("users", DIMENSION, "keyword-test-model", factory=BruteForceIndex, start_empty=False)
        partial = SearchIndexes(
            opportunities=indexes.opportunities,
            repositories=indexes.repositories,
            users=unbuilt,
            opportunity_text=indexes.opportunity_text,
            repository_text=indexes.repository_text,
        )
        service = DiscoveryService(catalog, partial, embedding_service=embedding_service, settings=settings)
        app.dependency_overrides[get_discovery_service] = lambda: service

        response = client.get(f"/api/v1/users/{seeded['user'].id}/similar")

        assert response.status_code == 503
        assert response.json()["error"] == "IndexUnavailable"


class TestTrendingAndHealth:
    def test_trending(self, client, ingestion, seeded):
        ingestion.record_engagement(seeded["flaky"].id, views=5)

        response = client.get("/api/v1/trending")

        assert response.status_code == 200
        assert [o["id"] for o in response.json()["opportunities"]] == [seeded["flaky"].id]

    def test_health_report(self, client, seeded):
        response = client.get(f"/api/v1/repositories/{seeded['python_repo'].id}/health/report")

        assert response.status_code == 200
        data = response.json()
        assert data["health_status"] == "excellent"
        assert data["open_opportunities"] == 2

    def test_health_unknown_repository_is_404(self, client):
        assert client.get("/api/v1/repositories/999/health").status_code == 404


class TestIndexEndpoints:
    def test_status(self, client, seeded):
        response = client.get("/api/v1/index/status")

        assert response.status_code == 200
        statuses = {s["name"]: s for s in response.json()["indexes"]}
        assert statuses["opportunities"]["ready"] is True
        assert statuses["opportunities"]["size"] == 3

    def test_rebuild_swaps_versions(self, client, seeded):
        response = client.post("/api/v1/index/rebuild")

        assert response.status_code == 200
        assert response.json()["versions"] == {"opportunities": 2, "repositories": 2, "users": 2}

    def test_liveness(self, client):
        assert client.get("/health").json() == {"status": "ok"}
