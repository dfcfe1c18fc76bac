"""Entry points that turn intercepted runtime errors into log records.

``ErrorDispatcher`` holds the injected sink and is otherwise stateless apart
from the last error left behind for the shutdown path.  The runtime hooks
in :mod:`gcp_error_logging.hooks` wrap its three entry points:

    sys.excepthook / threading.excepthook  ->  handle_exception
    warnings.showwarning / trigger_error   ->  handle_error
    atexit                                 ->  handle_shutdown

Exceptions raised by the sink are not caught here.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

from gcp_error_logging.models.schemas import (
    ErrorContext,
    ErrorKind,
    HandlerOutcome,
    LogRecord,
    RawErrorSignal,
    Severity,
    SourceLocation,
)
from gcp_error_logging.services import classifier
from gcp_error_logging.services.context_builder import (
    RuntimeEnvironment,
    build_context,
    current_environment,
)

if TYPE_CHECKING:
    from gcp_error_logging.services.sinks import LoggerSink

logger = logging.getLogger(__name__)


class ErrorDispatcher:
    """Classifies runtime error signals and forwards them to a sink."""

    def __init__(
        self,
        sink: LoggerSink | None,
        *,
        error_reporting: int = ErrorKind.ALL,
        environment: Callable[[], RuntimeEnvironment] = current_environment,
    ) -> None:
        self.sink = sink
        self.error_reporting = int(error_reporting)
        self._environment = environment
        self._last_error: RawErrorSignal | None = None

    # ------------------------------------------------------------------
    # Residual state
    # ------------------------------------------------------------------

    @property
    def last_error(self) -> RawErrorSignal | None:
        return self._last_error

    def record_error(self, signal: RawErrorSignal) -> None:
        """Remember *signal* for the shutdown path.

        A pending fatal error is never replaced by a non-fatal one; a fatal
        error would have ended the process before anything else happened.
        """
        if _is_fatal_signal(self._last_error) and not _is_fatal_signal(signal):
            return
        self._last_error = signal

    def clear_last_error(self) -> None:
        self._last_error = None

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def handle_exception(self, exc: BaseException) -> None:
        """Log an exception that nothing caught.  Always ERROR."""
        if self.sink is None:
            return
        file, line, function = _origin(exc)
        self._dispatch(
            Severity.ERROR,
            classifier.format_exception_message(exc),
            file,
            line,
            function,
        )

    def handle_error(
        self, kind: object, message: str, file: str, line: int
    ) -> HandlerOutcome:
        """Log a runtime error notification.

        The outcome tells the caller whether the runtime's default handling
        should still run.
        """
        if self.sink is None:
            return HandlerOutcome.DECLINED_SUPPRESS

        if not classifier.is_recognized_kind(kind):
            # The runtime's own handler takes over and is what leaves the
            # residual error behind.
            self.record_error(RawErrorSignal(kind, message, file, line))
            return HandlerOutcome.DECLINED_DEFER

        if not kind & self.error_reporting:
            return HandlerOutcome.DECLINED_SUPPRESS

        severity, label = classifier.classify(kind)
        self._dispatch(
            severity, classifier.format_message(label, message, file, line), file, line
        )
        return HandlerOutcome.LOGGED

    def handle_shutdown(self, last_error: RawErrorSignal | None) -> None:
        """Report the error left behind at process end, if it was fatal.

        Non-fatal residual errors were already reported by ``handle_error``
        when they happened.
        """
        if last_error is None or self.sink is None:
            return

        if not _is_fatal_signal(last_error):
            return

        severity, label = classifier.classify(last_error.kind)
        message = classifier.format_message(
            label, last_error.message, last_error.file, last_error.line
        )
        self._dispatch(severity, message, last_error.file, last_error.line, last_error.function)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _dispatch(
        self, severity: Severity, message: str, file: str, line: int, function: str = ""
    ) -> None:
        context = ErrorContext.model_validate(
            {
                "sourceLocation": SourceLocation(file=str(file), line=line, function=function),
                **build_context(self._environment()),
            }
        )
        record = LogRecord(severity=severity, message=message, context=context)
        logger.debug("Dispatching %s record from %s:%s", severity.value, file, line)
        self.sink.log(record.severity, record.message, record.context.to_wire())


def _is_fatal_signal(signal: RawErrorSignal | None) -> bool:
    return (
        signal is not None
        and classifier.is_recognized_kind(signal.kind)
        and classifier.is_fatal(signal.kind)
    )


def _origin(exc: BaseException) -> tuple[str, int, str]:
    """Return file, line and function of the innermost traceback frame."""
    tb = exc.__traceback__
    if tb is None:
        return "", 0, ""
    while tb.tb_next is not None:
        tb = tb.tb_next
    code = tb.tb_frame.f_code
    return code.co_filename, tb.tb_lineno, code.co_name
