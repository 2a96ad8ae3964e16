"""
pytest configuration and fixtures.
"""

from typing import Dict, Optional
import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from httpmessage import MessageConfig, MessageEngine
from httpmessage.http import RouteBinding, Session, SessionProvider
from httpmessage.transport import HTTPRequest, RequestParser


BOUNDARY = "----pytestboundary"


@pytest.fixture
def sample_get_request() -> bytes:
    """Sample HTTP GET request with repeated query values."""
    return (
        b"GET /api/users?page=1&tag=a&tag=b HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"User-Agent: pytest\r\n"
        b"Accept: application/json\r\n"
        b"Accept-Language: fr-CA, en;q=0.8\r\n"
        b"Cookie: sid=abc123; theme=dark\r\n"
        b"\r\n"
    )


@pytest.fixture
def sample_post_request() -> bytes:
    """Sample HTTP POST request with JSON body."""
    body = b'{"name": "John", "email": "john@example.com"}'
    return (
        b"POST /api/users HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"Content-Type: application/json\r\n"
        + f"Content-Length: {len(body)}\r\n".encode()
        + b"Connection: close\r\n"
        b"\r\n"
    ) + body


def multipart_body(fields: Dict[str, str], files: Dict[str, tuple]) -> bytes:
    """Build a multipart/form-data body; files map name → (filename, type, bytes)."""
    chunks = []
    for name, value in fields.items():
        chunks.append(
            f"--{BOUNDARY}\r\n"
            f'Content-Disposition: form-data; name="{name}"\r\n'
            f"\r\n"
            f"{value}\r\n".encode()
        )
    for name, (filename, content_type, data) in files.items():
        head = (
            f"--{BOUNDARY}\r\n"
            f'Content-Disposition: form-data; name="{name}"; filename="{filename}"\r\n'
        )
        if content_type:
            head += f"Content-Type: {content_type}\r\n"
        chunks.append(head.encode() + b"\r\n" + data + b"\r\n")
    chunks.append(f"--{BOUNDARY}--\r\n".encode())
    return b"".join(chunks)


def raw_request(
    method: str = "GET",
    target: str = "/",
    headers: Optional[Dict[str, str]] = None,
    body: bytes = b"",
) -> bytes:
    """Assemble raw request bytes; Content-Length is added for bodies."""
    lines = [f"{method} {target} HTTP/1.1", "Host: localhost"]
    for name, value in (headers or {}).items():
        lines.append(f"{name}: {value}")
    if body:
        lines.append(f"Content-Length: {len(body)}")
    return ("\r\n".join(lines) + "\r\n\r\n").encode() + body


@pytest.fixture
def make_request():
    return raw_request


@pytest.fixture
def make_multipart():
    """Returns (content_type, body) for the given fields and files."""

    def _make(fields: Dict[str, str], files: Optional[Dict[str, tuple]] = None):
        return f"multipart/form-data; boundary={BOUNDARY}", multipart_body(fields, files or {})

    return _make


@pytest.fixture
def sample_multipart_request() -> bytes:
    """POST /users/42 with a form field, a file and a query value."""
    body = multipart_body(
        {"id": "9", "title": "Holiday"},
        {"avatar": ("me.png", "image/png", b"\x89PNG-bytes")},
    )
    return raw_request(
        "POST",
        "/users/42?id=7",
        {"Content-Type": f"multipart/form-data; boundary={BOUNDARY}"},
        body,
    )


@pytest.fixture
def parse():
    """Parse raw bytes into a transport request."""
    parser = RequestParser()

    def _parse(data: bytes) -> HTTPRequest:
        return parser.parse(data, ("127.0.0.1", 54321))

    return _parse


@pytest.fixture
def config(tmp_path: Path) -> MessageConfig:
    """Test configuration with uploads under a throwaway directory."""
    return MessageConfig(tmpdir=tmp_path / "uploads", log_level="DEBUG")


class FakeSession(Session):
    def __init__(self, session_id: str):
        self._id = session_id
        self.attributes: Dict[str, object] = {}

    @property
    def id(self) -> str:
        return self._id

    def get(self, name, default=None):
        return self.attributes.get(name, default)

    def set(self, name, value):
        self.attributes[name] = value


class FakeSessionProvider(SessionProvider):
    """In-memory provider holding at most one session."""

    def __init__(self):
        self.session: Optional[FakeSession] = None

    def get_or_create(self) -> Session:
        if self.session is None:
            self.session = FakeSession("s-1")
        return self.session

    def get_if_exists(self) -> Optional[Session]:
        return self.session


@pytest.fixture
def session_provider() -> FakeSessionProvider:
    return FakeSessionProvider()


@pytest.fixture
def engine(config: MessageConfig, session_provider: FakeSessionProvider) -> MessageEngine:
    return MessageEngine(config, session_provider=session_provider)


@pytest.fixture
def bind(engine: MessageEngine, parse):
    """Parse raw bytes and bind a Request/Response pair to a route."""

    def _bind(data: bytes, path: Optional[str] = None, **path_vars: str):
        transport = parse(data)
        route = RouteBinding(path or transport.path, dict(path_vars))
        return engine.bind(transport, route)

    return _bind
