"""
pytest configuration and fixtures.
"""

import socket
import threading
from pathlib import Path
from typing import Callable, Dict, Generator, NamedTuple, Optional
import pytest

# Add src to path for imports
import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from minihttp import HTTPServer, ServerConfig
from minihttp.storage import FileStorage


@pytest.fixture
def sample_get_request() -> bytes:
    """Sample HTTP GET request."""
    return (
        b"GET /echo/hello HTTP/1.1\r\n"
        b"Host: localhost:4221\r\n"
        b"User-Agent: pytest\r\n"
        b"Accept: */*\r\n"
        b"\r\n"
    )


@pytest.fixture
def sample_post_request() -> bytes:
    """Sample HTTP POST request with a body."""
    body = b"12345 hello"
    return (
        b"POST /files/notes.txt HTTP/1.1\r\n"
        b"Host: localhost:4221\r\n"
        b"Content-Type: application/octet-stream\r\n"
        + f"Content-Length: {len(body)}\r\n".encode()
        + b"\r\n"
        + body
    )


@pytest.fixture
def storage(tmp_path: Path) -> FileStorage:
    """File storage rooted at a fresh temporary directory."""
    return FileStorage(tmp_path)


# =============================================================================
# RAW SOCKET CLIENT
# =============================================================================

class RawResponse(NamedTuple):
    status_line: str
    headers: Dict[str, str]
    body: bytes
    raw: bytes

    @property
    def status_code(self) -> int:
        return int(self.status_line.split(" ")[1])


def parse_raw_response(raw: bytes) -> RawResponse:
    head, sep, body = raw.partition(b"\r\n\r\n")
    assert sep, f"No header terminator in response: {raw!r}"

    lines = head.decode("iso-8859-1").split("\r\n")
    headers = {}
    for line in lines[1:]:
        name, _, value = line.partition(": ")
        headers[name] = value

    return RawResponse(lines[0], headers, body, raw)


def send_raw(
    port: int,
    data: bytes,
    close_write: bool = False,
    timeout: float = 5.0,
) -> RawResponse:
    """
    Send raw bytes, read until the server closes, parse the response.

    close_write half-closes the socket after sending, so the server sees EOF.
    """
    with socket.create_connection(("127.0.0.1", port), timeout=timeout) as sock:
        if data:
            sock.sendall(data)
        if close_write:
            sock.shutdown(socket.SHUT_WR)

        chunks = []
        while True:
            chunk = sock.recv(65536)
            if not chunk:
                break
            chunks.append(chunk)

    return parse_raw_response(b"".join(chunks))


@pytest.fixture
def raw_request() -> Callable[..., RawResponse]:
    """send_raw() as a fixture, so tests need not import conftest."""
    return send_raw


# =============================================================================
# BACKGROUND SERVER
# =============================================================================

class TestServer:
    """Test server helper that runs in a background thread."""

    def __init__(self, server: HTTPServer):
        self.server = server
        self._thread: Optional[threading.Thread] = None

    @property
    def port(self) -> int:
        return self.server.bound_port

    @property
    def root(self) -> Path:
        return self.server.storage.root

    def start(self):
        """Start server in background thread."""
        self._thread = threading.Thread(target=self.server.run, daemon=True)
        self._thread.start()

        if not self.server.wait_until_ready(timeout=5.0):
            raise RuntimeError("Server failed to start")

    def stop(self):
        """Stop the server."""
        self.server.shutdown()

        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5.0)

    def request(self, data: bytes, **kwargs) -> RawResponse:
        return send_raw(self.port, data, **kwargs)


def make_config(directory: Path, **overrides) -> ServerConfig:
    options = dict(
        host="127.0.0.1",
        port=0,  # Let OS pick a free port
        directory=str(directory),
        timeout=2.0,
        log_level="WARNING",
    )
    options.update(overrides)
    return ServerConfig(**options)


@pytest.fixture(params=["thread", "async"])
def test_server(request, tmp_path: Path) -> Generator[TestServer, None, None]:
    """Running server in each concurrency mode, serving a temp directory."""
    server = HTTPServer(make_config(tmp_path, concurrency=request.param))

    test_srv = TestServer(server)
    test_srv.start()

    yield test_srv

    test_srv.stop()


@pytest.fixture(params=["thread", "async"])
def short_timeout_server(request, tmp_path: Path) -> Generator[TestServer, None, None]:
    """Server with a half-second request read deadline."""
    server = HTTPServer(make_config(tmp_path, concurrency=request.param, timeout=0.5))

    test_srv = TestServer(server)
    test_srv.start()

    yield test_srv

    test_srv.stop()
