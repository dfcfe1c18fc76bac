import pytest
from httpx import ASGITransport, AsyncClient

from gcp_error_logging import hooks
from gcp_error_logging.config import Settings
from gcp_error_logging.main import app


@pytest.fixture
async def raw_client():
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as c:
        yield c


class TestHealth:
    async def test_reports_not_installed(self, raw_client):
        resp = await raw_client.get("/api/health")
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "healthy"
        assert body["error_logging"]["installed"] is False
        assert body["error_logging"]["sink"] is None

    async def test_reports_installed_sink(self, raw_client, sink):
        hooks.install(sink, Settings(error_reporting=6))
        resp = await raw_client.get("/api/health")
        error_logging = resp.json()["error_logging"]
        assert error_logging["installed"] is True
        assert error_logging["sink"] == "MemorySink"
        assert error_logging["error_reporting"] == 6

    async def test_reports_flags_of_installed_settings(self, raw_client, sink):
        hooks.install(sink, Settings(capture_warnings=False, capture_threads=False))
        error_logging = (await raw_client.get("/api/health")).json()["error_logging"]
        assert error_logging["capture_warnings"] is False
        assert error_logging["capture_threads"] is False
