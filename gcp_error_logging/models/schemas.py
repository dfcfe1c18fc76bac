from dataclasses import dataclass
from enum import Enum, IntFlag
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class Severity(str, Enum):
    DEBUG = "DEBUG"
    NOTICE = "NOTICE"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class ErrorKind(IntFlag):
    """Closed set of runtime error kinds, one bit each so they can be masked."""

    ERROR = 1
    WARNING = 2
    PARSE = 4
    NOTICE = 8
    CORE_ERROR = 16
    CORE_WARNING = 32
    COMPILE_ERROR = 64
    COMPILE_WARNING = 128
    USER_ERROR = 256
    USER_WARNING = 512
    USER_NOTICE = 1024
    STRICT = 2048
    RECOVERABLE_ERROR = 4096
    DEPRECATED = 8192
    USER_DEPRECATED = 16384

    ALL = 32767


class HandlerOutcome(Enum):
    """Result of the error-notification entry point.

    The two declined outcomes differ in whether the runtime's own default
    handling should still run.
    """

    LOGGED = "logged"
    DECLINED_SUPPRESS = "declined-suppress"
    DECLINED_DEFER = "declined-defer"

    @property
    def suppresses_default(self) -> bool:
        return self is not HandlerOutcome.DECLINED_DEFER


@dataclass(frozen=True)
class RawErrorSignal:
    """What the runtime knows about a failure at the moment it is intercepted."""

    kind: Any
    message: str
    file: str
    line: int
    function: str = ""


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)


class SourceLocation(_WireModel):
    file: str = ""
    line: int = 0
    function: str = ""


class Operation(_WireModel):
    id: str
    producer: str


class HttpRequest(_WireModel):
    request_method: str = Field(default="", alias="requestMethod")
    request_url: str = Field(default="", alias="requestUrl")
    user_agent: str = Field(default="", alias="userAgent")
    remote_ip: str = Field(default="", alias="remoteIp")
    referer: str = ""


class ErrorContext(_WireModel):
    """Structured context attached to every dispatched record.

    ``operation`` and ``http_request`` are mutually exclusive; which one is set
    depends on whether the process is serving a CLI invocation or a request.
    """

    source_location: SourceLocation = Field(alias="sourceLocation")
    operation: Operation | None = None
    http_request: HttpRequest | None = Field(default=None, alias="httpRequest")

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class LogRecord(_WireModel):
    severity: Severity
    message: str
    context: ErrorContext
