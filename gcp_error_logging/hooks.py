"""Registers the dispatcher with the Python runtime.

``install()`` wires an :class:`ErrorDispatcher` into the interpreter's
global notification points and returns a handle that owns those
registrations:

    sys.excepthook          uncaught exceptions in the main thread
    threading.excepthook    uncaught exceptions in other threads
    warnings.showwarning    runtime warnings, mapped onto error kinds
    atexit                  fatal error left behind at process end

Installing again replaces the previous handle (and its sink).
"""

from __future__ import annotations

import atexit
import logging
import sys
import threading
import warnings

from gcp_error_logging.config import Settings, settings as default_settings
from gcp_error_logging.models.schemas import ErrorKind, HandlerOutcome, RawErrorSignal
from gcp_error_logging.services.classifier import is_recognized_kind
from gcp_error_logging.services.dispatcher import ErrorDispatcher
from gcp_error_logging.services.sinks import LoggerSink

logger = logging.getLogger(__name__)

# Warning categories are matched along the MRO, most specific first.
_WARNING_KINDS: dict[type[Warning], ErrorKind] = {
    DeprecationWarning: ErrorKind.DEPRECATED,
    PendingDeprecationWarning: ErrorKind.DEPRECATED,
    FutureWarning: ErrorKind.USER_DEPRECATED,
    SyntaxWarning: ErrorKind.COMPILE_WARNING,
    ImportWarning: ErrorKind.CORE_WARNING,
    UserWarning: ErrorKind.USER_WARNING,
    ResourceWarning: ErrorKind.NOTICE,
}

# Fatal kinds the error callback never sees; they only surface at shutdown.
_UNHANDLED_KINDS = frozenset(
    {
        ErrorKind.ERROR,
        ErrorKind.PARSE,
        ErrorKind.CORE_ERROR,
        ErrorKind.COMPILE_ERROR,
    }
)

_handle: ErrorLoggingHandle | None = None


def warning_kind(category: type[Warning]) -> ErrorKind:
    for cls in getattr(category, "__mro__", ()):
        if cls in _WARNING_KINDS:
            return _WARNING_KINDS[cls]
    return ErrorKind.WARNING


class ErrorLoggingHandle:
    """Owns the runtime registrations for one dispatcher."""

    def __init__(self, dispatcher: ErrorDispatcher, settings: Settings) -> None:
        self.dispatcher = dispatcher
        self.settings = settings
        self.installed = False
        self._previous_excepthook = None
        self._previous_threading_excepthook = None
        self._previous_showwarning = None

    @property
    def sink(self) -> LoggerSink | None:
        return self.dispatcher.sink

    # ------------------------------------------------------------------
    # Hook callables
    # ------------------------------------------------------------------

    def excepthook(self, exc_type, exc_value, exc_tb) -> None:
        if exc_value is None:
            exc_value = exc_type()
        if exc_value.__traceback__ is None and exc_tb is not None:
            exc_value = exc_value.with_traceback(exc_tb)
        self.dispatcher.handle_exception(exc_value)

    def threading_excepthook(self, args) -> None:
        # The default hook ignores SystemExit as well.
        if args.exc_type is SystemExit:
            return
        self.excepthook(args.exc_type, args.exc_value, args.exc_traceback)

    def showwarning(self, message, category, filename, lineno, file=None, line=None) -> None:
        outcome = self.dispatcher.handle_error(
            warning_kind(category), str(message), filename, lineno
        )
        if not outcome.suppresses_default and self._previous_showwarning is not None:
            self._previous_showwarning(message, category, filename, lineno, file, line)

    def shutdown(self) -> None:
        self.dispatcher.handle_shutdown(self.dispatcher.last_error)

    def trigger_error(
        self,
        message: str,
        kind: int = ErrorKind.USER_NOTICE,
        *,
        file: str = "",
        line: int = 0,
        function: str = "",
    ) -> HandlerOutcome:
        if is_recognized_kind(kind) and kind in _UNHANDLED_KINDS:
            self.dispatcher.record_error(RawErrorSignal(kind, message, file, line, function))
            return HandlerOutcome.DECLINED_DEFER
        return self.dispatcher.handle_error(kind, message, file, line)

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def install(self) -> None:
        if self.installed:
            return
        self._previous_excepthook = sys.excepthook
        sys.excepthook = self.excepthook
        if self.settings.capture_threads:
            self._previous_threading_excepthook = threading.excepthook
            threading.excepthook = self.threading_excepthook
        if self.settings.capture_warnings:
            self._previous_showwarning = warnings.showwarning
            warnings.showwarning = self.showwarning
        atexit.register(self.shutdown)
        self.installed = True

    def uninstall(self) -> None:
        """Restore the hooks that were active before :meth:`install`.

        A hook replaced by someone else in the meantime is left alone.
        """
        if not self.installed:
            return
        if sys.excepthook == self.excepthook:
            sys.excepthook = self._previous_excepthook
        if (
            self._previous_threading_excepthook is not None
            and threading.excepthook == self.threading_excepthook
        ):
            threading.excepthook = self._previous_threading_excepthook
        if self._previous_showwarning is not None and warnings.showwarning == self.showwarning:
            warnings.showwarning = self._previous_showwarning
        atexit.unregister(self.shutdown)
        self.installed = False


def install(sink: LoggerSink, settings: Settings | None = None) -> ErrorLoggingHandle:
    """Make *sink* the destination for uncaught errors in this process."""
    global _handle
    if not callable(getattr(sink, "log", None)):
        raise TypeError(f"{type(sink).__name__} has no callable log(severity, message, context)")

    settings = settings or default_settings
    if _handle is not None:
        _handle.uninstall()
        logger.info("Replacing error logging sink %s", type(_handle.sink).__name__)

    dispatcher = ErrorDispatcher(sink, error_reporting=settings.error_reporting)
    _handle = ErrorLoggingHandle(dispatcher, settings)
    _handle.install()
    logger.debug(
        "Error logging installed (sink=%s, error_reporting=%d, warnings=%s, threads=%s)",
        type(sink).__name__,
        settings.error_reporting,
        settings.capture_warnings,
        settings.capture_threads,
    )
    return _handle


def uninstall() -> None:
    global _handle
    if _handle is not None:
        _handle.uninstall()
        _handle = None


def get_handle() -> ErrorLoggingHandle | None:
    return _handle


def get_logger() -> LoggerSink | None:
    return _handle.sink if _handle is not None else None


def trigger_error(message: str, kind: int = ErrorKind.USER_NOTICE) -> HandlerOutcome:
    """Raise a runtime error notification from the calling line.

    Fatal kinds the error callback cannot intercept (``ERROR``, ``PARSE``,
    ``CORE_ERROR``, ``COMPILE_ERROR``) are kept as the process's last error
    and reported by the shutdown hook.  Everything else goes through the
    error-notification entry point right away.
    """
    if _handle is None:
        return HandlerOutcome.DECLINED_SUPPRESS
    caller = sys._getframe(1)
    return _handle.trigger_error(
        message,
        kind,
        file=caller.f_code.co_filename,
        line=caller.f_lineno,
        function=caller.f_code.co_name,
    )
