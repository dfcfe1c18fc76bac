"""ASGI middleware that gives error records their HTTP request context.

While a request is being handled, its method, URL, user agent, client
address and referer are bound for the context builder, so any error logged
from inside the route (including warnings raised there) carries an
``httpRequest`` entry.  Exceptions escaping the route are reported through
the unhandled-exception entry point and then re-raised, so Starlette still
turns them into a 500 response.
"""

import logging

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from gcp_error_logging.hooks import get_handle
from gcp_error_logging.services.context_builder import request_scope
from gcp_error_logging.services.dispatcher import ErrorDispatcher

logger = logging.getLogger(__name__)


def server_vars(request: Request) -> dict[str, str]:
    """Translate a Starlette request into the server variables the context builder reads.

    Only values the request actually carries are included, so the builder's
    defaults apply to everything else.
    """
    server = {"REQUEST_METHOD": request.method}
    if request.url.scheme in ("https", "wss"):
        server["HTTPS"] = "on"

    # The request target as sent, not Starlette's percent-decoded path.
    raw_path = request.scope.get("raw_path")
    if raw_path:
        uri = raw_path.split(b"?", 1)[0].decode("latin-1")
    else:
        uri = request.scope["path"]
    query = request.scope.get("query_string", b"")
    if query:
        uri = f"{uri}?{query.decode('latin-1')}"
    server["REQUEST_URI"] = uri

    headers = request.headers
    for header, key in (
        ("host", "HTTP_HOST"),
        ("user-agent", "HTTP_USER_AGENT"),
        ("referer", "HTTP_REFERER"),
    ):
        if header in headers:
            server[key] = headers[header]
    if request.client:
        server["REMOTE_ADDR"] = request.client.host
    return server


class ErrorContextMiddleware(BaseHTTPMiddleware):
    """Binds request context for error records and reports route exceptions.

    Uses *dispatcher* when given, otherwise the one installed by
    :func:`gcp_error_logging.hooks.install` at the time of the failure.
    """

    def __init__(self, app, dispatcher: ErrorDispatcher | None = None) -> None:
        super().__init__(app)
        self.dispatcher = dispatcher

    def _active_dispatcher(self) -> ErrorDispatcher | None:
        if self.dispatcher is not None:
            return self.dispatcher
        handle = get_handle()
        return handle.dispatcher if handle is not None else None

    async def dispatch(self, request: Request, call_next) -> Response:
        with request_scope(server_vars(request)):
            try:
                return await call_next(request)
            except Exception as exc:
                dispatcher = self._active_dispatcher()
                if dispatcher is None:
                    logger.warning("Unhandled %s with no error logging installed", type(exc).__name__)
                else:
                    dispatcher.handle_exception(exc)
                raise
