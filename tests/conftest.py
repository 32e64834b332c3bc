"""
pytest configuration and fixtures.
"""

import socket
import threading
from pathlib import Path
from typing import Generator, Optional
import pytest

# Add src to path for imports
import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from userprofiles import HTTPServer, ServiceConfig, UserStore, create_app
from userprofiles.http import HTTPRequest


TOKEN = "test-token"
AUTH_HEADER = f"Bearer {TOKEN}"


def make_request(
    method: str,
    path: str = "/users",
    query: Optional[dict] = None,
    body: bytes = b"",
    auth: Optional[str] = AUTH_HEADER,
    headers: Optional[dict] = None,
) -> HTTPRequest:
    """Build a parsed request the way RequestParser would."""
    all_headers = {k.lower(): v for k, v in (headers or {}).items()}
    if auth is not None:
        all_headers["authorization"] = auth
    if body:
        all_headers.setdefault("content-type", "application/json")
        all_headers["content-length"] = str(len(body))

    return HTTPRequest(
        method=method,
        path=path,
        headers=all_headers,
        query_params={k: [v] for k, v in (query or {}).items()},
        body=body,
        client_address=("127.0.0.1", 50000),
    )


@pytest.fixture
def request_factory():
    """make_request() as a fixture, for test modules."""
    return make_request


@pytest.fixture
def data_file(tmp_path: Path) -> Path:
    """Path for the user collection; the file itself does not exist yet."""
    return tmp_path / "data" / "users.json"


@pytest.fixture
def config(data_file: Path) -> ServiceConfig:
    """Test configuration."""
    return ServiceConfig(
        host="127.0.0.1",
        port=0,
        min_workers=2,
        max_workers=4,
        timeout=5.0,
        auth_token=TOKEN,
        data_file=str(data_file),
        log_level="WARNING",
    )


@pytest.fixture
def store(data_file: Path) -> UserStore:
    """A loaded, empty store."""
    s = UserStore(data_file)
    s.load()
    return s


@pytest.fixture
def app(config: ServiceConfig, store: UserStore) -> HTTPServer:
    """Fully wired service, driven through app.handle()."""
    return create_app(config, store=store)


@pytest.fixture
def sample_post_request() -> bytes:
    """Raw POST /users with a JSON body."""
    body = b'{"name": "Ana", "email": "a@x.com"}'
    return (
        b"POST /users HTTP/1.1\r\n"
        b"Host: localhost:3000\r\n"
        b"Authorization: Bearer test-token\r\n"
        b"Content-Type: application/json\r\n"
        + f"Content-Length: {len(body)}\r\n".encode()
        + b"Connection: close\r\n"
        b"\r\n"
    ) + body


@pytest.fixture
def sample_get_request() -> bytes:
    """Raw GET /users?id=1."""
    return (
        b"GET /users?id=1 HTTP/1.1\r\n"
        b"Host: localhost:3000\r\n"
        b"Authorization: Bearer test-token\r\n"
        b"User-Agent: pytest\r\n"
        b"Connection: keep-alive\r\n"
        b"\r\n"
    )


@pytest.fixture
def free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


class LiveServer:
    """Runs an HTTPServer in a background thread."""

    def __init__(self, server: HTTPServer, port: int):
        self.server = server
        self.port = port
        self._thread: Optional[threading.Thread] = None

    def start(self):
        self._thread = threading.Thread(
            target=self.server.run,
            kwargs={"port": self.port},
            daemon=True,
        )
        self._thread.start()

        if not self.server.wait_until_ready(timeout=5.0):
            raise RuntimeError("Server failed to start")

    def stop(self):
        self.server.stop()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=10.0)


@pytest.fixture
def live_server(config: ServiceConfig, store: UserStore, free_port: int) -> Generator[LiveServer, None, None]:
    """The full service listening on a real socket."""
    server = create_app(config, store=store)
    live = LiveServer(server, free_port)
    live.start()

    yield live

    live.stop()
