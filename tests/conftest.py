import pytest

from gcp_error_logging import hooks
from gcp_error_logging.models.schemas import ErrorKind
from gcp_error_logging.services.context_builder import CLI, HTTP, RuntimeEnvironment
from gcp_error_logging.services.dispatcher import ErrorDispatcher
from gcp_error_logging.services.sinks import MemorySink


@pytest.fixture(autouse=True)
def restore_runtime_hooks():
    """Undo any install() a test performed so hooks never leak between tests."""
    yield
    hooks.uninstall()


@pytest.fixture
def sink():
    return MemorySink()


@pytest.fixture
def cli_environment():
    return RuntimeEnvironment(interface=CLI, argv=["worker.py", "--queue", "default"])


@pytest.fixture
def http_environment():
    return RuntimeEnvironment(
        interface=HTTP,
        server={
            "HTTPS": "on",
            "HTTP_HOST": "example.test",
            "REQUEST_URI": "/checkout?step=2",
            "REQUEST_METHOD": "POST",
            "HTTP_USER_AGENT": "curl/8.4.0",
            "REMOTE_ADDR": "203.0.113.7",
            "HTTP_REFERER": "https://example.test/cart",
        },
    )


@pytest.fixture
def dispatcher(sink, cli_environment):
    return ErrorDispatcher(
        sink, error_reporting=ErrorKind.ALL, environment=lambda: cli_environment
    )
