"""
pytest configuration and fixtures.
"""

import logging
import socket
import threading
import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from staticserver import ServerConfig, StaticServer, create_server
from staticserver.content import MemoryContentSource
from staticserver.errors import ErrorReporter


ASSETS = {
    "index.html": b"<!DOCTYPE html><html><body>test page</body></html>",
    "robots.txt": b"User-agent: *\nDisallow:\n",
    "cash.avif": b"\x00\x00\x00\x1cftypavif-large",
    "cash-small.avif": b"\x00\x00\x00\x1cftypavif-small",
}


@pytest.fixture
def sample_get_request() -> bytes:
    """Sample HTTP GET request."""
    return (
        b"GET /image.avif?v=2 HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"User-Agent: pytest\r\n"
        b"X-Forwarded-For: 203.0.113.7\r\n"
        b"Connection: keep-alive\r\n"
        b"\r\n"
    )


@pytest.fixture
def sample_post_request() -> bytes:
    """Sample HTTP POST request with a body."""
    body = b"name=cash"
    return (
        b"POST / HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"Content-Type: application/x-www-form-urlencoded\r\n"
    ) + f"Content-Length: {len(body)}\r\n".encode() + (
        b"Connection: close\r\n"
        b"\r\n"
    ) + body


@pytest.fixture
def assets() -> MemoryContentSource:
    """In-memory content source with every logical asset."""
    return MemoryContentSource(ASSETS)


@pytest.fixture
def error_logger() -> logging.Logger:
    """A propagating logger for ErrorReporter records, visible to caplog."""
    return logging.getLogger("tests.errors")


@pytest.fixture
def reporter(error_logger: logging.Logger) -> ErrorReporter:
    return ErrorReporter(error_logger)


@pytest.fixture
def config() -> ServerConfig:
    """Test server configuration on an OS-assigned port."""
    return ServerConfig(
        host="127.0.0.1",
        port=0,
        workers=2,
        read_header_timeout=2.0,
        read_timeout=2.0,
        write_timeout=2.0,
        idle_timeout=1.0,
    )


class LiveServer:
    """Runs a StaticServer in a background thread."""

    def __init__(self, server: StaticServer):
        self.server = server
        self._thread: threading.Thread = None

    @property
    def port(self) -> int:
        return self.server.address[1]

    def start(self):
        self._thread = threading.Thread(target=self.server.run, daemon=True)
        self._thread.start()

        if not self.server.ready.wait(timeout=5.0):
            raise RuntimeError("Server failed to start")

    def stop(self):
        self.server.shutdown()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5.0)

    def request(self, raw: bytes, timeout: float = 3.0) -> bytes:
        """Send raw bytes and read until the server closes the connection."""
        with socket.create_connection(("127.0.0.1", self.port), timeout=timeout) as sock:
            sock.sendall(raw)
            chunks = []
            while True:
                chunk = sock.recv(65536)
                if not chunk:
                    break
                chunks.append(chunk)
        return b"".join(chunks)


@pytest.fixture
def server_factory(config: ServerConfig, reporter: ErrorReporter):
    """Start servers on demand; every one started is stopped at teardown."""
    started = []

    def start(source) -> LiveServer:
        server = LiveServer(create_server(config, source=source, reporter=reporter))
        server.start()
        started.append(server)
        return server

    yield start

    for server in started:
        server.stop()


@pytest.fixture
def live_server(server_factory, assets: MemoryContentSource) -> LiveServer:
    """A running server with in-memory assets."""
    return server_factory(assets)
