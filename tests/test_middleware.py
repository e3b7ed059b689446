"""
Unit tests for the FastAPI rate limiting integration.
"""

import pytest
from fastapi import Depends, FastAPI, Request
from fastapi.testclient import TestClient
from unittest.mock import MagicMock

from ratelimiter.limiter import RateLimiter
from ratelimiter.middleware import RateLimitMiddleware, install
from ratelimiter.options import CheckOptions, LimiterDefaults


@pytest.fixture
def limiter(store, clock):
    return RateLimiter(store, defaults=LimiterDefaults(rate=0.1, burst=2, prefix="http"), clock=clock)


@pytest.fixture
def app(limiter):
    app = FastAPI()
    middleware = install(app, limiter)

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    @app.get("/api/v1/items")
    async def items():
        return {"items": []}

    @app.get("/api/v1/export", dependencies=[Depends(middleware.dependency(CheckOptions(burst=3, op_count=3)))])
    async def export():
        return {"status": "queued"}

    return app


class TestRateLimitMiddleware:
    """Test cases for the HTTP middleware."""

    def test_rejects_after_burst(self, app, store):
        with TestClient(app) as client:
            assert client.get("/api/v1/items").status_code == 200
            assert client.get("/api/v1/items").status_code == 200

            response = client.get("/api/v1/items")

        assert response.status_code == 429
        assert response.headers["Retry-After"] == "10"
        body = response.json()
        assert body["code"] == "LIMIT_EXCEEDED"
        assert body["details"]["key"] == "http:testclient:/api/v1/items"
        assert store.hashes["http:testclient:/api/v1/items"]["count"] == "2"

    def test_clients_are_limited_separately(self, app):
        with TestClient(app) as client:
            for _ in range(2):
                assert client.get("/api/v1/items", headers={"X-Forwarded-For": "10.0.0.1, 172.16.0.1"}).status_code == 200
            assert client.get("/api/v1/items", headers={"X-Forwarded-For": "10.0.0.1"}).status_code == 429
            assert client.get("/api/v1/items", headers={"X-Real-IP": "10.0.0.2"}).status_code == 200

    def test_paths_are_limited_separately(self, app, store):
        with TestClient(app) as client:
            for _ in range(2):
                client.get("/api/v1/items")
            assert client.get("/api/v1/items").status_code == 429
            assert client.get("/api/v1/other").status_code == 404

        assert "http:testclient:/api/v1/other" in store.hashes

    def test_exempt_paths_are_not_counted(self, app, store):
        with TestClient(app) as client:
            for _ in range(5):
                assert client.get("/health").status_code == 200

        assert store.hashes == {}

    def test_route_dependency_maps_to_429(self, app, store):
        with TestClient(app) as client:
            # The middleware admits one slot, then the export dependency needs three more
            response = client.get("/api/v1/export")

        assert response.status_code == 429
        assert response.json()["details"]["op_count"] == 3
        assert response.headers["Retry-After"] == "10"

    def test_retry_after_grows_with_bucket_fill(self, app):
        with TestClient(app) as client:
            first = client.get("/api/v1/export")
            # The middleware's own slot leaves the bucket at 2 before the export needs 3 more
            second = client.get("/api/v1/export")

        assert first.headers["Retry-After"] == "10"
        assert second.headers["Retry-After"] == "20"
        assert second.json()["details"]["count"] == 5


class TestClientId:
    """Test cases for client identification."""

    @pytest.fixture
    def middleware(self, limiter):
        return RateLimitMiddleware(limiter)

    def make_request(self, headers=None, user_info=None, host="127.0.0.1"):
        request = MagicMock(spec=Request)
        request.headers = headers or {}
        request.state = MagicMock()
        request.state.user_info = user_info
        request.client = MagicMock(host=host) if host else None
        return request

    def test_prefers_authenticated_user(self, middleware):
        request = self.make_request({"X-Forwarded-For": "10.0.0.1"}, user_info={"user_id": "user-7"})
        assert middleware.client_id(request) == "user-7"

    def test_forwarded_for_first_hop(self, middleware):
        request = self.make_request({"X-Forwarded-For": "10.0.0.1, 172.16.0.1"})
        assert middleware.client_id(request) == "10.0.0.1"

    def test_real_ip(self, middleware):
        assert middleware.client_id(self.make_request({"X-Real-IP": "10.0.0.9"})) == "10.0.0.9"

    def test_falls_back_to_client_host(self, middleware):
        assert middleware.client_id(self.make_request()) == "127.0.0.1"
        assert middleware.client_id(self.make_request(host=None)) == "unknown"
