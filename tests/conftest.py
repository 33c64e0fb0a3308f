"""
pytest configuration and fixtures.
"""

import socket
import threading
import time
from typing import Generator, Mapping, Optional
import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from pagejar import HTTPServer, ServerConfig, MemoryResourceStore


@pytest.fixture
def sample_get_request() -> bytes:
    """Sample HTTP GET request for a slide."""
    return (
        b"GET /slides/intro.html?print-pdf HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"User-Agent: pytest\r\n"
        b"Accept: text/html\r\n"
        b"Connection: keep-alive\r\n"
        b"\r\n"
    )


@pytest.fixture
def config() -> ServerConfig:
    """Default test server configuration."""
    return ServerConfig(
        host="127.0.0.1",
        port=0,  # Let OS pick a free port
        timeout=5.0,
    )


@pytest.fixture
def free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(('127.0.0.1', 0))
        return s.getsockname()[1]


class FakeConnection:
    """In-memory stand-in for Connection.read_line()."""

    def __init__(self, data: bytes, address=("10.0.0.1", 4242)):
        self._lines = data.split(b"\n")
        if self._lines and self._lines[-1] == b"":
            self._lines.pop()
        self.address = address

    def read_line(self, limit: int = 8192) -> Optional[bytes]:
        if not self._lines:
            return None
        line = self._lines.pop(0)
        if line.endswith(b"\r"):
            line = line[:-1]
        if len(line) > limit:
            raise ValueError(f"Line too long (limit {limit} bytes)")
        return line


@pytest.fixture
def fake_connection():
    """Factory building a FakeConnection from raw request bytes."""
    return FakeConnection


class TestServer:
    """Test server helper that runs in a background thread."""

    __test__ = False

    def __init__(self, server: HTTPServer):
        self.server = server
        self.port = server.port
        self._thread: Optional[threading.Thread] = None

    def start(self):
        """Start serving in a background thread."""
        self._thread = threading.Thread(target=self.server.serve, daemon=True)
        self._thread.start()

        # Wait for the accept loop
        for _ in range(50):  # 5 seconds max
            if self.server.is_running:
                return
            time.sleep(0.1)

        raise RuntimeError("Server failed to start")

    def stop(self):
        """Stop the server."""
        self.server.shutdown()

        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5.0)

    def connect(self) -> socket.socket:
        sock = socket.create_connection(("127.0.0.1", self.port), timeout=5.0)
        return sock


SLIDES = {
    "index.html": b"<html><body><h1>Welcome</h1></body></html>",
    "start.html": b"<html><body><h1>Start here</h1></body></html>",
    "css/deck.css": b"body { margin: 0 }",
    "img/logo.svgz": b"\x1f\x8b compressed svg",
    "pagejar-metadata.properties": b"title=Test Talk\n",
}


@pytest.fixture
def make_server(config: ServerConfig):
    """Factory for started test servers over in-memory content."""
    started = []

    def factory(files: Mapping[str, bytes] = SLIDES, **kwargs) -> TestServer:
        server = HTTPServer(MemoryResourceStore(files), config, **kwargs)
        test_srv = TestServer(server)
        test_srv.start()
        started.append(test_srv)
        return test_srv

    yield factory

    for test_srv in started:
        test_srv.stop()


@pytest.fixture
def test_server(make_server) -> Generator[TestServer, None, None]:
    """A running server over the sample slide deck."""
    yield make_server()
