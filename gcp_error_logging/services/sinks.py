"""Logger sinks: where classified error records end up.

Any object with a ``log(severity, message, context)`` method can act as a
sink.  Sinks are expected to swallow their own transport failures; the
dispatcher does not catch anything they raise.
"""

from __future__ import annotations

import json
import logging
import sys
from typing import Any, Mapping, Protocol, TextIO, runtime_checkable

from gcp_error_logging.logging_config import NOTICE
from gcp_error_logging.models.schemas import Severity

_LEVELS = {
    Severity.DEBUG: logging.DEBUG,
    Severity.NOTICE: NOTICE,
    Severity.WARNING: logging.WARNING,
    Severity.ERROR: logging.ERROR,
    Severity.CRITICAL: logging.CRITICAL,
}


@runtime_checkable
class LoggerSink(Protocol):
    def log(self, severity: Severity, message: str, context: Mapping[str, Any]) -> None: ...


class GcpStderrLogger:
    """Writes one JSON line per record, in the shape Cloud Logging ingests.

    ``severity`` and ``message`` are written first and the context keys are
    overlaid at the top level.
    """

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream

    @property
    def stream(self) -> TextIO:
        # Resolved lazily so a replaced sys.stderr (pytest capture) is honoured.
        return self._stream if self._stream is not None else sys.stderr

    def log(self, severity: Severity, message: str, context: Mapping[str, Any]) -> None:
        output = {"severity": Severity(severity).value, "message": message}
        output.update(context)
        self.stream.write(json.dumps(output) + "\n")
        self.stream.flush()


class StdlibLoggerSink:
    """Forwards records into a :mod:`logging` logger.

    Pair with :class:`~gcp_error_logging.logging_config.CloudJSONFormatter`
    to get the same wire shape as :class:`GcpStderrLogger`.
    """

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self.logger = logger or logging.getLogger("gcp_error_logging.errors")

    def log(self, severity: Severity, message: str, context: Mapping[str, Any]) -> None:
        level = _LEVELS[Severity(severity)]
        self.logger.log(level, message, extra={"context": dict(context)})


class MemorySink:
    """Keeps records in a list.  Useful in tests and for deferred shipping."""

    def __init__(self) -> None:
        self.records: list[tuple[Severity, str, dict[str, Any]]] = []

    def log(self, severity: Severity, message: str, context: Mapping[str, Any]) -> None:
        self.records.append((Severity(severity), message, dict(context)))

    def clear(self) -> None:
        self.records.clear()
