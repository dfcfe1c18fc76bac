"""Builds the mode-specific part of every error record's context.

A process is either running a command-line invocation or serving an HTTP
request, never both.  The request side is bound per request through
:func:`request_scope` (the ASGI middleware does this), so anything logged
outside a request scope is attributed to the CLI invocation in ``sys.argv``.

Every lookup defaults on a missing value; nothing here raises.
"""

from __future__ import annotations

import hashlib
import sys
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any

from gcp_error_logging.models.schemas import HttpRequest, Operation

CLI = "cli"
HTTP = "http"

# Producer labels are cut at this many bytes of the command string.
_PRODUCER_MAX_BYTES = 30

_server_vars: ContextVar[Mapping[str, str] | None] = ContextVar(
    "gcp_error_logging_server_vars", default=None
)


@dataclass(frozen=True)
class RuntimeEnvironment:
    """Snapshot of the ambient state the context is derived from."""

    interface: str
    argv: Any = None
    server: Mapping[str, str] = field(default_factory=dict)


def current_environment() -> RuntimeEnvironment:
    server = _server_vars.get()
    if server is not None:
        return RuntimeEnvironment(interface=HTTP, server=server)
    return RuntimeEnvironment(interface=CLI, argv=getattr(sys, "argv", None))


@contextmanager
def request_scope(server: Mapping[str, str]) -> Iterator[None]:
    """Bind *server* variables as the current HTTP request for this context."""
    token = _server_vars.set(dict(server))
    try:
        yield
    finally:
        _server_vars.reset(token)


def build_context(environment: RuntimeEnvironment | None = None) -> dict[str, Any]:
    if environment is None:
        environment = current_environment()
    if environment.interface == CLI:
        return build_cli_context(environment.argv)
    return build_http_context(environment.server)


def build_cli_context(argv: Any) -> dict[str, Any]:
    """Identify a CLI invocation by a hash of its command line.

    Returns an empty mapping when *argv* is missing or not a list/tuple.
    """
    if not isinstance(argv, (list, tuple)):
        return {}

    command = "$ " + " ".join(str(arg) for arg in argv)
    encoded = command.encode("utf-8")
    operation = Operation(
        id=hashlib.md5(encoded).hexdigest(),
        producer=encoded[:_PRODUCER_MAX_BYTES].decode("utf-8", errors="ignore"),
    )
    return {"operation": operation.model_dump()}


def build_http_context(server: Mapping[str, str]) -> dict[str, Any]:
    scheme = "https" if server.get("HTTPS") == "on" else "http"
    host = server.get("HTTP_HOST", "unknown-host")
    path = server.get("REQUEST_URI", "")

    request = HttpRequest(
        request_method=server.get("REQUEST_METHOD", ""),
        request_url=f"{scheme}://{host}{path}",
        user_agent=server.get("HTTP_USER_AGENT", ""),
        remote_ip=server.get("REMOTE_ADDR", ""),
        referer=server.get("HTTP_REFERER", ""),
    )
    return {"httpRequest": request.model_dump(by_alias=True)}
