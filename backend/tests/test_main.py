"""
backend/tests/test_main.py
Root, health and cross-cutting request handling
"""
from datetime import datetime, timedelta, timezone

from backend.main import API_VERSION
from backend.utils.dates import naive_utc
from backend.utils.slug import slugify


class TestRootEndpoints:

    async def test_root_lists_endpoints(self, client):
        response = await client.get("/")
        body = response.json()
        assert body["version"] == API_VERSION
        assert body["status"] == "active"
        assert body["endpoints"]["health"] == "GET /health"

    async def test_health(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["uptime"] >= 0

    async def test_unknown_route_uses_error_body(self, client):
        response = await client.get("/api/nothing-here")
        assert response.status_code == 404
        body = response.json()
        assert body["success"] is False
        assert body["code"] == "NOT_FOUND"


class TestHelpers:

    def test_slugify(self):
        assert slugify("  Intro to C++ & Rust!  ") == "intro-to-c-rust"
        assert slugify("***") == ""

    def test_naive_utc_converts_offsets(self):
        aware = datetime(2030, 1, 1, 12, 0, tzinfo=timezone(timedelta(hours=2)))
        assert naive_utc(aware) == datetime(2030, 1, 1, 10, 0)
        assert naive_utc(None) is None
