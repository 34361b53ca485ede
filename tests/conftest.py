"""
pytest configuration and fixtures.
"""

import logging
import socket
import threading
from typing import Callable, Dict, Generator, Optional

import pytest

from helloserver import HTTPServer, Mode, ServerConfig
from helloserver.http import HTTPRequest, HTTPResponse


@pytest.fixture
def hello_request() -> bytes:
    """Raw GET /hello as curl would send it."""
    return (
        b"GET /hello HTTP/1.1\r\n"
        b"Host: localhost:3000\r\n"
        b"User-Agent: pytest\r\n"
        b"Accept: */*\r\n"
        b"\r\n"
    )


@pytest.fixture
def post_request() -> bytes:
    """Raw POST /hello with a small body."""
    body = b'{"name": "world"}'
    return (
        b"POST /hello HTTP/1.1\r\n"
        b"Host: localhost:3000\r\n"
        b"Content-Type: application/json\r\n"
        + f"Content-Length: {len(body)}\r\n".encode()
        + b"Connection: close\r\n"
        b"\r\n"
    ) + body


@pytest.fixture
def make_request() -> Callable[..., HTTPRequest]:
    """Factory for HTTPRequest views."""
    def factory(
        method: str = "GET",
        target: str = "/hello",
        headers: Optional[Dict[str, str]] = None,
        version: str = "HTTP/1.1",
    ) -> HTTPRequest:
        return HTTPRequest(
            method=method,
            target=target,
            version=version,
            headers={k.lower(): v for k, v in (headers or {}).items()},
            client_address=("127.0.0.1", 54321),
        )
    return factory


@pytest.fixture
def sink() -> HTTPResponse:
    """A fresh response sink."""
    return HTTPResponse()


@pytest.fixture
def free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


class TestServer:
    """Runs an HTTPServer in a background thread."""

    __test__ = False

    def __init__(self, server: HTTPServer):
        self.server = server
        self._thread: Optional[threading.Thread] = None

    @property
    def port(self) -> int:
        return self.server.address[1]

    @property
    def host(self) -> str:
        return self.server.address[0]

    def start(self):
        self._thread = threading.Thread(target=self.server.run, daemon=True)
        self._thread.start()
        if not self.server.wait_until_ready(5.0):
            raise RuntimeError("Server failed to start")

    def stop(self):
        if not self.server.is_shutting_down:
            self.server.shutdown()
        if self._thread is not None:
            self._thread.join(timeout=15.0)

    @property
    def stopped(self) -> bool:
        return self._thread is not None and not self._thread.is_alive()


@pytest.fixture
def server_config(free_port: int) -> ServerConfig:
    return ServerConfig(
        host="127.0.0.1",
        port=free_port,
        environment="test",
        timeout=2.0,
        keep_alive_timeout=1.0,
        workers=2,
    )


@pytest.fixture
def test_server(server_config: ServerConfig) -> Generator[TestServer, None, None]:
    """A live server on a free port."""
    srv = TestServer(HTTPServer(server_config, mode=Mode.DEVELOPMENT))
    srv.start()

    yield srv

    srv.stop()


def read_response(sock: socket.socket) -> bytes:
    """Read exactly one response (head plus Content-Length body) from a socket."""
    data = b""
    while b"\r\n\r\n" not in data:
        chunk = sock.recv(4096)
        if not chunk:
            return data
        data += chunk

    head, _, body = data.partition(b"\r\n\r\n")
    length = 0
    for line in head.split(b"\r\n")[1:]:
        name, _, value = line.partition(b":")
        if name.strip().lower() == b"content-length":
            length = int(value.strip())

    while len(body) < length:
        chunk = sock.recv(4096)
        if not chunk:
            break
        body += chunk

    return head + b"\r\n\r\n" + body


def send_raw(port: int, data: bytes, timeout: float = 5.0) -> bytes:
    """Send raw bytes on a new connection and return one response."""
    with socket.create_connection(("127.0.0.1", port), timeout=timeout) as sock:
        sock.sendall(data)
        return read_response(sock)


@pytest.fixture(autouse=True)
def restore_package_log_level():
    """serve() and main() set the package log level; undo it after each test."""
    logger = logging.getLogger("helloserver")
    level = logger.level
    yield
    logger.setLevel(level)
