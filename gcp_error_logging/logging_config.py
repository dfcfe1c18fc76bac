"""Structured JSON logging for Google Cloud Logging integration.

Cloud Run and GKE capture structured JSON written to stdout/stderr as Cloud
Logging entries.  ``severity``, ``sourceLocation``, ``httpRequest`` and
``operation`` are recognised as special fields when they appear at the top
level of the payload, so context passed with a record is flattened rather
than nested.
"""

import json
import logging
import sys

# Cloud Logging has a NOTICE severity between INFO and WARNING.
NOTICE = 25
logging.addLevelName(NOTICE, "NOTICE")


class CloudJSONFormatter(logging.Formatter):
    """Formats log records as JSON for Cloud Logging ingestion.

    A ``context`` mapping passed through ``extra`` is overlaid on the base
    fields; on a key collision the context value wins.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "severity": record.levelname,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        context = getattr(record, "context", None)
        if isinstance(context, dict):
            entry.update(context)
        return json.dumps(entry)


def _stream(name: str):
    return sys.stdout if name == "stdout" else sys.stderr


def setup_logging(level: int | str = logging.INFO, stream: str = "stderr") -> None:
    handler = logging.StreamHandler(_stream(stream))
    handler.setFormatter(CloudJSONFormatter())
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)
