"""Maps runtime error kinds onto Cloud Logging severities and display labels."""

from __future__ import annotations

from typing import Any

from gcp_error_logging.models.schemas import ErrorKind, Severity

EXCEPTION_TAG = "Python Exception"

_SEVERITIES: dict[int, Severity] = {
    ErrorKind.PARSE: Severity.CRITICAL,
    ErrorKind.ERROR: Severity.ERROR,
    ErrorKind.CORE_ERROR: Severity.ERROR,
    ErrorKind.COMPILE_ERROR: Severity.ERROR,
    ErrorKind.USER_ERROR: Severity.ERROR,
    ErrorKind.RECOVERABLE_ERROR: Severity.ERROR,
    ErrorKind.WARNING: Severity.WARNING,
    ErrorKind.CORE_WARNING: Severity.WARNING,
    ErrorKind.COMPILE_WARNING: Severity.WARNING,
    ErrorKind.USER_WARNING: Severity.WARNING,
    ErrorKind.STRICT: Severity.DEBUG,
    # DEPRECATED / USER_DEPRECATED have a label of their own but no severity
    # row, so they fall through to NOTICE.
}

_LABELS: dict[int, str] = {
    ErrorKind.CORE_ERROR: "Core error",
    ErrorKind.COMPILE_ERROR: "Compile error",
    ErrorKind.PARSE: "Parse error",
    ErrorKind.ERROR: "Fatal error",
    ErrorKind.USER_ERROR: "Fatal error",
    ErrorKind.WARNING: "Warning",
    ErrorKind.CORE_WARNING: "Warning",
    ErrorKind.COMPILE_WARNING: "Warning",
    ErrorKind.USER_WARNING: "Warning",
    ErrorKind.STRICT: "Strict standards",
    ErrorKind.RECOVERABLE_ERROR: "Catchable fatal error",
    ErrorKind.DEPRECATED: "Deprecated",
    ErrorKind.USER_DEPRECATED: "Deprecated",
}

_DEFAULT_SEVERITY = Severity.NOTICE
_DEFAULT_LABEL = "Notice"

FATAL_KINDS = frozenset(
    {
        ErrorKind.CORE_ERROR,
        ErrorKind.COMPILE_ERROR,
        ErrorKind.PARSE,
        ErrorKind.ERROR,
        ErrorKind.USER_ERROR,
        ErrorKind.RECOVERABLE_ERROR,
    }
)


def is_recognized_kind(kind: Any) -> bool:
    """Return True for integer kind codes (bools are not kind codes)."""
    return isinstance(kind, int) and not isinstance(kind, bool)


def severity_for_kind(kind: int) -> Severity:
    return _SEVERITIES.get(kind, _DEFAULT_SEVERITY)


def label_for_kind(kind: int) -> str:
    return _LABELS.get(kind, _DEFAULT_LABEL)


def classify(kind: int) -> tuple[Severity, str]:
    return severity_for_kind(kind), label_for_kind(kind)


def is_fatal(kind: int) -> bool:
    """Return True if *kind* terminates the process.

    Only the shutdown path consults this.
    """
    return kind in FATAL_KINDS


def format_message(label: str, message: str, file: str, line: int) -> str:
    return f"{label}: {message} in {file} on line {line}"


def format_exception_message(exc: BaseException) -> str:
    return f"{EXCEPTION_TAG}: {exc}"
