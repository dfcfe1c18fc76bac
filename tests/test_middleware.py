import warnings

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from starlette.requests import Request

from gcp_error_logging import hooks
from gcp_error_logging.config import Settings
from gcp_error_logging.middleware import ErrorContextMiddleware, server_vars
from gcp_error_logging.models.schemas import Severity
from gcp_error_logging.services.dispatcher import ErrorDispatcher


def _build_app(dispatcher=None) -> FastAPI:
    application = FastAPI()
    application.add_middleware(ErrorContextMiddleware, dispatcher=dispatcher)

    @application.get("/ok")
    async def ok():
        return {"status": "ok"}

    @application.get("/boom")
    async def boom():
        raise RuntimeError("database unavailable")

    @application.get("/files/{name}")
    async def files(name: str):
        raise FileNotFoundError(name)

    @application.get("/warn")
    async def warn():
        with warnings.catch_warnings():
            warnings.simplefilter("always")
            warnings.warn("legacy endpoint", DeprecationWarning)
        return {"status": "warned"}

    return application


@pytest.fixture
def request_dispatcher(sink):
    return ErrorDispatcher(sink)


@pytest.fixture
async def client(request_dispatcher):
    transport = ASGITransport(app=_build_app(request_dispatcher), raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://testserver") as c:
        yield c


class TestRouteExceptions:
    async def test_exception_logged_with_request_context(self, client, sink):
        resp = await client.get(
            "/boom?id=7",
            headers={"User-Agent": "healthcheck/1.0", "Referer": "http://testserver/home"},
        )

        assert resp.status_code == 500
        assert len(sink.records) == 1
        severity, message, context = sink.records[0]
        assert severity is Severity.ERROR
        assert message == "Python Exception: database unavailable"
        assert context["sourceLocation"]["function"] == "boom"
        assert context["httpRequest"] == {
            "requestMethod": "GET",
            "requestUrl": "http://testserver/boom?id=7",
            "userAgent": "healthcheck/1.0",
            "remoteIp": "127.0.0.1",
            "referer": "http://testserver/home",
        }
        assert "operation" not in context

    async def test_request_url_keeps_percent_encoding(self, client, sink):
        resp = await client.get("/files/a%20b?q=%20")

        assert resp.status_code == 500
        assert sink.records[0][1] == "Python Exception: a b"
        assert sink.records[0][2]["httpRequest"]["requestUrl"] == "http://testserver/files/a%20b?q=%20"

    async def test_successful_request_logs_nothing(self, client, sink):
        resp = await client.get("/ok")
        assert resp.status_code == 200
        assert sink.records == []

    async def test_exception_is_reraised(self, request_dispatcher):
        transport = ASGITransport(app=_build_app(request_dispatcher))
        async with AsyncClient(transport=transport, base_url="http://testserver") as c:
            with pytest.raises(RuntimeError):
                await c.get("/boom")

    async def test_https_scheme(self, request_dispatcher, sink):
        transport = ASGITransport(app=_build_app(request_dispatcher), raise_app_exceptions=False)
        async with AsyncClient(transport=transport, base_url="https://secure.test") as c:
            await c.get("/boom")
        assert sink.records[0][2]["httpRequest"]["requestUrl"] == "https://secure.test/boom"

    async def test_falls_back_to_installed_dispatcher(self, sink):
        hooks.install(sink, Settings())
        transport = ASGITransport(app=_build_app(), raise_app_exceptions=False)
        async with AsyncClient(transport=transport, base_url="http://testserver") as c:
            resp = await c.get("/boom")
        assert resp.status_code == 500
        assert sink.records[0][1] == "Python Exception: database unavailable"

    async def test_nothing_installed_still_returns_500(self):
        transport = ASGITransport(app=_build_app(), raise_app_exceptions=False)
        async with AsyncClient(transport=transport, base_url="http://testserver") as c:
            resp = await c.get("/boom")
        assert resp.status_code == 500


class TestRequestScopedWarnings:
    async def test_warning_in_route_has_http_context(self, sink):
        hooks.install(sink, Settings())
        transport = ASGITransport(app=_build_app())
        async with AsyncClient(transport=transport, base_url="http://testserver") as c:
            resp = await c.get("/warn")

        assert resp.status_code == 200
        severity, message, context = sink.records[0]
        assert severity is Severity.NOTICE
        assert message.startswith("Deprecated: legacy endpoint in ")
        assert context["httpRequest"]["requestUrl"] == "http://testserver/warn"

    async def test_warning_outside_request_has_cli_context(self, sink):
        hooks.install(sink, Settings())
        with warnings.catch_warnings():
            warnings.simplefilter("always")
            warnings.warn("startup", UserWarning)
        assert set(sink.records[0][2]) == {"sourceLocation", "operation"}


class TestServerVars:
    def _request(self, **scope):
        base = {
            "type": "http",
            "method": "GET",
            "scheme": "http",
            "server": ("api.test", 80),
            "path": "/",
            "query_string": b"",
            "headers": [(b"host", b"api.test")],
        }
        base.update(scope)
        return Request(base)

    def test_raw_path_preferred_over_decoded_path(self):
        request = self._request(path="/a b", raw_path=b"/a%20b", query_string=b"x=%2F")
        assert server_vars(request)["REQUEST_URI"] == "/a%20b?x=%2F"

    def test_falls_back_to_path_without_raw_path(self):
        assert server_vars(self._request(path="/plain"))["REQUEST_URI"] == "/plain"

    def test_missing_headers_left_out(self):
        server = server_vars(self._request(headers=[]))
        assert "HTTP_HOST" not in server
        assert "HTTP_USER_AGENT" not in server
        assert "HTTPS" not in server
