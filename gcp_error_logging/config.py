"""Error-logging configuration loaded from environment variables.

Uses a frozen dataclass for immutable, type-safe settings with validation.
Invalid values fall back to their defaults instead of failing start-up: a
misconfigured error logger should still log.
"""

import os
from dataclasses import dataclass

from gcp_error_logging.models.schemas import ErrorKind

_LOG_STREAMS = ("stderr", "stdout")
_LOG_LEVELS = ("DEBUG", "INFO", "NOTICE", "WARNING", "ERROR", "CRITICAL")


def _parse_bool(value: str) -> bool:
    """Parse a boolean from an environment string, accepting common truthy values."""
    return value.strip().lower() in ("true", "1", "yes")


def parse_error_reporting(value: str) -> int:
    """Parse an error-reporting mask.

    Accepts a plain integer (``"32767"``, ``"0x1f"``) or kind names joined
    with ``|`` (``"ERROR|WARNING|PARSE"``).  Unknown names raise ``ValueError``.
    """
    value = value.strip()
    try:
        return int(value, 0)
    except ValueError:
        pass

    mask = 0
    for name in value.split("|"):
        name = name.strip().upper()
        if name not in ErrorKind.__members__:
            raise ValueError(f"Unknown error kind: {name!r}")
        mask |= int(ErrorKind[name])
    return mask


@dataclass(frozen=True)
class Settings:
    """Immutable error-logging settings populated from environment variables."""

    app_title: str = "gcp-error-logging"
    app_version: str = "1.0.0"

    # Kinds outside this mask are dropped silently.
    error_reporting: int = int(ErrorKind.ALL)

    # Runtime hooks
    capture_warnings: bool = True
    capture_threads: bool = True

    # Output
    log_stream: str = "stderr"
    log_level: str = "INFO"

    # Server
    port: int = 8080

    def __post_init__(self) -> None:
        """Validate settings after initialisation."""
        if self.error_reporting < 0:
            object.__setattr__(self, "error_reporting", int(ErrorKind.ALL))
        if self.log_stream not in _LOG_STREAMS:
            object.__setattr__(self, "log_stream", "stderr")
        if self.log_level not in _LOG_LEVELS:
            object.__setattr__(self, "log_level", "INFO")
        if self.port < 1 or self.port > 65535:
            object.__setattr__(self, "port", 8080)

    @classmethod
    def load(cls) -> "Settings":
        """Create a Settings instance from the current environment variables."""
        try:
            error_reporting = parse_error_reporting(
                os.environ.get("ERROR_REPORTING", str(int(ErrorKind.ALL)))
            )
        except ValueError:
            error_reporting = int(ErrorKind.ALL)
        return cls(
            error_reporting=error_reporting,
            capture_warnings=_parse_bool(os.environ.get("CAPTURE_WARNINGS", "true")),
            capture_threads=_parse_bool(os.environ.get("CAPTURE_THREADS", "true")),
            log_stream=os.environ.get("LOG_STREAM", "stderr").lower(),
            log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
            port=int(os.environ.get("PORT", "8080")),
        )


settings = Settings.load()
