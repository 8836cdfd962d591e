"""
pytest configuration and fixtures.
"""

import json
import socket
import threading
from typing import Generator, Optional
import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from usersapi import ApiSettings, HTTPServer, ServerConfig, create_app
from usersapi.http import HTTPRequest
from usersapi.users import UserStore


API_KEY = "test-key"


def make_request(
    method: str,
    path: str,
    body: Optional[object] = None,
    api_key: Optional[str] = API_KEY,
    headers: Optional[dict] = None,
    is_secure: bool = True,
) -> HTTPRequest:
    """
    Build an HTTPRequest as the parser would.

    ``body`` may be bytes (sent as is) or anything JSON-serialisable.
    Requests are marked secure by default so the HTTPS redirect stays out
    of the way.
    """
    request_headers = {"host": "localhost:8080"}
    if api_key is not None:
        request_headers["x-api-key"] = api_key
    for name, value in (headers or {}).items():
        request_headers[name.lower()] = value

    if body is None:
        raw_body = b""
    elif isinstance(body, bytes):
        raw_body = body
    else:
        raw_body = json.dumps(body).encode("utf-8")
        request_headers.setdefault("content-type", "application/json")

    if raw_body:
        request_headers["content-length"] = str(len(raw_body))

    path, _, query = path.partition("?")
    return HTTPRequest(
        method=method,
        path=path,
        query_string=query,
        headers=request_headers,
        body=raw_body,
        client_address=("127.0.0.1", 50000),
        is_secure=is_secure,
    )


@pytest.fixture
def sample_get_request() -> bytes:
    """Sample HTTP GET request."""
    return (
        b"GET /users?page=1&limit=10 HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"User-Agent: pytest\r\n"
        b"X-API-KEY: test-key\r\n"
        b"Accept: application/json\r\n"
        b"Connection: keep-alive\r\n"
        b"\r\n"
    )


@pytest.fixture
def sample_post_request() -> bytes:
    """Sample HTTP POST request with JSON body."""
    body = b'{"name": "Carl", "email": "carl@x.com"}'
    return (
        b"POST /users HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"X-API-KEY: test-key\r\n"
        b"Content-Type: application/json\r\n"
        + f"Content-Length: {len(body)}\r\n".encode()
        + b"Connection: close\r\n"
        b"\r\n"
        + body
    )


@pytest.fixture
def settings() -> ApiSettings:
    return ApiSettings(api_key=API_KEY)


@pytest.fixture
def store() -> UserStore:
    """A fresh store holding Alice (1) and Bob (2)."""
    return UserStore.seeded()


@pytest.fixture
def app(settings: ApiSettings, store: UserStore) -> HTTPServer:
    """The full application, driven through server.handle() without sockets."""
    return create_app(settings, ServerConfig(min_workers=1, max_workers=2), store=store)


@pytest.fixture
def free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(('127.0.0.1', 0))
        return s.getsockname()[1]


class TestServer:
    """Test server helper that runs in a background thread."""

    __test__ = False  # not a test class, despite the name

    def __init__(self, server: HTTPServer, port: int):
        self.server = server
        self.port = port
        self._thread: Optional[threading.Thread] = None

    def start(self):
        """Start server in background thread."""
        self._thread = threading.Thread(
            target=self.server.run,
            kwargs={"port": self.port},
            daemon=True
        )
        self._thread.start()

        if not self.server.wait_until_ready(timeout=5.0):
            raise RuntimeError("Server failed to start")

    def stop(self):
        """Stop the server."""
        self.server.shutdown()

        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=10.0)


@pytest.fixture
def test_server(free_port: int, settings: ApiSettings) -> Generator[TestServer, None, None]:
    """The full application listening on a real socket."""
    server = create_app(settings, ServerConfig(
        host="127.0.0.1",
        port=free_port,
        min_workers=2,
        max_workers=4,
        log_level="WARNING",
    ))

    test_srv = TestServer(server, free_port)
    test_srv.start()

    yield test_srv

    test_srv.stop()
