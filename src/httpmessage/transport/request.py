"""
=============================================================================
TRANSPORT REQUEST PARSER
=============================================================================

Parses raw HTTP/1.1 request bytes into an HTTPRequest: the host engine's
view of a request, before the message layer wraps it.

=============================================================================
WHAT THE TRANSPORT HANDS TO THE MESSAGE LAYER
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                         HTTPRequest                                 │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   headers        name → [values]   (lowercase names, repeat-safe)   │
    │   query_params   ?a=1&a=2          → {"a": ["1", "2"]}              │
    │   form_params    urlencoded body and non-file multipart fields      │
    │   parts          every multipart part (fields AND files)            │
    │   body           raw bytes, read through input_stream()             │
    │   native_cookies Cookie header as http.cookies.Morsel objects       │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Parameter order is transport order: query string first, then form body.

=============================================================================
PARSING CHALLENGES
=============================================================================

1. LINE ENDINGS: headers end with \r\n\r\n
2. CASE: header names are case-insensitive, stored lowercase
3. REPEATED HEADERS: "Accept: a" + "Accept: b" keep both values, in order
4. BODY LENGTH: Content-Length only (no chunked encoding)
5. SECURITY: size limit (413), path traversal ("..") rejected (400)

=============================================================================
"""

from dataclasses import dataclass, field
from http.cookies import CookieError, Morsel, SimpleCookie
from typing import BinaryIO, Dict, List, Optional
from urllib.parse import parse_qs, unquote, urlparse
import io
import re

from ..http.errors import HTTPError
from ..http.status_codes import HTTPStatus
from .multipart import Part, parse_multipart


class HTTPParseError(HTTPError):
    """
    Raised when HTTP request parsing fails.

        400 Bad Request                - Malformed request syntax
        405 Method Not Allowed         - Unknown method
        413 Payload Too Large          - Request exceeds size limit
        505 HTTP Version Not Supported - Unknown HTTP version
    """

    status_code = HTTPStatus.BAD_REQUEST


@dataclass
class HTTPRequest:
    """
    A parsed HTTP request as the transport sees it.

    Headers are stored with LOWERCASE names and a list of values per name,
    so "X-Tag: a" followed by "X-Tag: b" yields {"x-tag": ["a", "b"]}.
    """

    method: str
    path: str
    version: str = "HTTP/1.1"

    headers: Dict[str, List[str]] = field(default_factory=dict)
    query_params: Dict[str, List[str]] = field(default_factory=dict)
    form_params: Dict[str, List[str]] = field(default_factory=dict)
    parts: List[Part] = field(default_factory=list)
    body: bytes = b""

    client_address: tuple[str, int] = ("", 0)
    secure: bool = False
    raw: bytes = b""

    body_consumed: bool = field(default=False, repr=False)

    # =========================================================================
    # HEADER ACCESS
    # =========================================================================

    def get_header(self, name: str, default: str = "") -> str:
        """Get a header value (case-insensitive), repeated values comma-joined."""
        values = self.headers.get(name.lower())
        return ", ".join(values) if values else default

    def get_headers(self, name: str) -> List[str]:
        return list(self.headers.get(name.lower(), []))

    def header_names(self) -> List[str]:
        return list(self.headers)

    @property
    def content_type(self) -> Optional[str]:
        """The raw Content-Type header, parameters included."""
        return self.get_header("content-type") or None

    @property
    def content_length(self) -> int:
        """Content-Length as an int; -1 when missing or invalid."""
        try:
            return int(self.get_header("content-length", "-1"))
        except ValueError:
            return -1

    @property
    def host(self) -> str:
        return self.get_header("host")

    @property
    def is_keep_alive(self) -> bool:
        """
        HTTP/1.1 keeps alive unless "Connection: close";
        HTTP/1.0 closes unless "Connection: keep-alive".
        """
        connection = self.get_header("connection").lower()
        if self.version == "HTTP/1.1":
            return connection != "close"
        return connection == "keep-alive"

    # =========================================================================
    # PARAMETER ACCESS
    # =========================================================================

    def parameter_names(self) -> List[str]:
        """Query names, then form names not already seen."""
        names = list(self.query_params)
        names.extend(n for n in self.form_params if n not in self.query_params)
        return names

    def parameter_values(self, name: str) -> List[str]:
        """All values for `name`: query values first, then form values."""
        return self.query_params.get(name, []) + self.form_params.get(name, [])

    def part(self, name: str) -> Optional[Part]:
        """First multipart part named `name`, file or field."""
        for part in self.parts:
            if part.name == name:
                return part
        return None

    # =========================================================================
    # COOKIES AND BODY
    # =========================================================================

    @property
    def native_cookies(self) -> List[Morsel]:
        jar: SimpleCookie = SimpleCookie()
        for header in self.get_headers("cookie"):
            try:
                jar.load(header)
            except CookieError:
                continue
        return list(jar.values())

    def input_stream(self) -> BinaryIO:
        """
        Open the request body for reading.

        Marks the body consumed; the message layer only calls this once a
        body parser has been selected.
        """
        self.body_consumed = True
        return io.BytesIO(self.body)


class RequestParser:
    """
    Parses raw HTTP request bytes into HTTPRequest objects.

        Raw bytes
            │
            ▼
        1. Size check            → 413
        2. Split at \r\n\r\n     → 400 if missing
        3. Request line          → 400 / 405 / 505
        4. Headers               → name → [values]
        5. Body by Content-Length
        6. Form / multipart body → form_params, parts
            │
            ▼
        HTTPRequest
    """

    VALID_METHODS = {
        "GET", "POST", "PUT", "DELETE", "PATCH",
        "HEAD", "OPTIONS", "TRACE", "CONNECT",
    }

    REQUEST_LINE_PATTERN = re.compile(r"^([A-Z]+) ([^ ]+) (HTTP/\d\.\d)$")
    HEADER_PATTERN = re.compile(r"^([^:]+):\s*(.*)$")

    def __init__(self, max_request_size: int = 10 * 1024 * 1024, charset: str = "utf-8"):
        self.max_request_size = max_request_size
        self.charset = charset

    def parse(
        self,
        data: bytes,
        client_address: tuple[str, int] = ("", 0),
        secure: bool = False,
    ) -> HTTPRequest:
        """
        Parse raw HTTP request data into an HTTPRequest object.

        Raises:
            HTTPParseError: If the request is malformed.
        """
        if len(data) > self.max_request_size:
            raise HTTPParseError(
                f"Request too large: {len(data)} bytes",
                status_code=HTTPStatus.PAYLOAD_TOO_LARGE,
            )

        header_end = data.find(b"\r\n\r\n")
        if header_end == -1:
            raise HTTPParseError("Incomplete request: no header terminator")

        header_section = data[:header_end].decode("utf-8", errors="replace")
        body = data[header_end + 4:]

        lines = header_section.split("\r\n")
        method, path, query_params, version = self._parse_request_line(lines[0])
        headers = self._parse_headers(lines[1:])

        # Body MUST match Content-Length (request smuggling)
        try:
            content_length = int(headers.get("content-length", ["0"])[0])
        except ValueError:
            raise HTTPParseError("Invalid Content-Length")
        if len(body) < content_length:
            raise HTTPParseError(
                f"Incomplete body: expected {content_length} bytes, got {len(body)}"
            )
        body = body[:content_length]

        request = HTTPRequest(
            method=method,
            path=path,
            version=version,
            headers=headers,
            query_params=query_params,
            body=body,
            client_address=client_address,
            secure=secure,
            raw=data,
        )
        self._parse_form(request)
        return request

    def _parse_request_line(self, line: str) -> tuple[str, str, Dict[str, List[str]], str]:
        match = self.REQUEST_LINE_PATTERN.match(line)
        if not match:
            raise HTTPParseError(f"Invalid request line: {line}")

        method, uri, version = match.groups()

        if method not in self.VALID_METHODS:
            raise HTTPParseError(
                f"Invalid method: {method}",
                status_code=HTTPStatus.METHOD_NOT_ALLOWED,
            )

        if version not in ("HTTP/1.0", "HTTP/1.1"):
            raise HTTPParseError(
                f"Unsupported HTTP version: {version}",
                status_code=HTTPStatus.HTTP_VERSION_NOT_SUPPORTED,
            )

        parsed = urlparse(uri)
        path = unquote(parsed.path) or "/"
        query_params = parse_qs(parsed.query, keep_blank_values=True)

        # Path traversal: "GET /../../../etc/passwd HTTP/1.1"
        if ".." in path:
            raise HTTPParseError("Invalid path: contains ..")

        return method, path, query_params, version

    def _parse_headers(self, lines: List[str]) -> Dict[str, List[str]]:
        """
        Parse header lines into name → [values].

        Lines starting with whitespace continue the previous value
        (obsolete folding); malformed lines are skipped.
        """
        headers: Dict[str, List[str]] = {}
        current_name: Optional[str] = None

        for line in lines:
            if not line:
                continue

            if line[0] in (" ", "\t"):
                if current_name is not None:
                    headers[current_name][-1] += " " + line.strip()
                continue

            match = self.HEADER_PATTERN.match(line)
            if not match:
                continue  # lenient

            name, value = match.groups()
            current_name = name.strip().lower()
            headers.setdefault(current_name, []).append(value.strip())

        return headers

    def _parse_form(self, request: HTTPRequest) -> None:
        """Fill form_params / parts from urlencoded or multipart bodies."""
        content_type = request.get_header("content-type").lower()
        if not request.body or not content_type:
            return

        media, _, params = content_type.partition(";")
        media = media.strip()
        charset = _param(params, "charset") or self.charset

        if media == "application/x-www-form-urlencoded":
            try:
                text = request.body.decode(charset)
            except (UnicodeDecodeError, LookupError) as e:
                raise HTTPParseError(f"Invalid form body: {e}")
            request.form_params = parse_qs(text, keep_blank_values=True)

        elif media.startswith("multipart/"):
            # Boundary is case-sensitive: read it from the original header
            boundary = _param(request.get_header("content-type").partition(";")[2], "boundary")
            if not boundary:
                raise HTTPParseError("No boundary in multipart Content-Type")
            try:
                request.parts = parse_multipart(request.body, boundary)
            except ValueError as e:
                raise HTTPParseError(f"Multipart parsing failed: {e}")

            try:
                for part in request.parts:
                    if part.filename is None:
                        request.form_params.setdefault(part.name, []).append(part.text(charset))
            except LookupError as e:
                raise HTTPParseError(f"Invalid form body: {e}")


def _param(params: str, name: str) -> Optional[str]:
    for item in params.split(";"):
        key, eq, value = item.partition("=")
        if eq and key.strip().lower() == name:
            return value.strip().strip('"')
    return None
