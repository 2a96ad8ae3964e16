"""
=============================================================================
TRANSPORT RESPONSE
=============================================================================

The host engine's side of a response: status, headers, cookies and a real
output stream. The message layer (httpmessage.http.response.Response)
drives this object; handlers never see it.

=============================================================================
RESPONSE ANATOMY
=============================================================================

    HTTP/1.1 200 OK\r\n                       ← status line
    Content-Type: application/json\r\n
    Set-Cookie: sid=abc; HttpOnly\r\n         ← one line per cookie
    Content-Length: 27\r\n                    ← auto-calculated
    Date: Wed, 01 Jan 2026 12:00:00 GMT\r\n   ← auto-added
    Server: httpmessage/1.0\r\n               ← auto-added
    \r\n
    {"message": "Hello"}                      ← body bytes

=============================================================================
COMMIT AND CLOSE
=============================================================================

    set_status / set_header / add_cookie     mutable until committed
    get_output_stream() / get_writer()       commits the headers
    stream.close()                           the transport's REAL close:
                                             the body is complete

Once committed, header changes are ignored (and logged), the same way a
servlet container behaves.

=============================================================================
"""

from datetime import datetime, timezone
from http.cookies import Morsel
from typing import Dict, List, Optional, TextIO
import io
import logging

from ..http.status_codes import HTTPStatus


logger = logging.getLogger(__name__)


class ResponseStream(io.BufferedIOBase):
    """
    In-memory output stream for one response body.

    Unlike io.BytesIO, the written bytes stay readable after close().
    """

    def __init__(self):
        super().__init__()
        self._data = bytearray()

    def writable(self) -> bool:
        return True

    def write(self, data) -> int:
        if self.closed:
            raise ValueError("I/O operation on closed response stream")
        self._data.extend(data)
        return len(data)

    def getvalue(self) -> bytes:
        return bytes(self._data)


class HTTPResponse:
    """
    Represents the transport-level HTTP response for one request.
    """

    def __init__(self, version: str = "HTTP/1.1"):
        self.version = version
        self.status = HTTPStatus.OK
        self.headers: Dict[str, str] = {}
        self.cookies: List[Morsel] = []
        self.committed = False
        self._stream = ResponseStream()
        self._writer: Optional[TextIO] = None

    # =========================================================================
    # FRAMING
    # =========================================================================

    def set_status(self, status: int) -> None:
        if self._reject("status"):
            return
        self.status = HTTPStatus.of(status)

    def set_header(self, name: str, value: str) -> None:
        if self._reject(name):
            return
        self.headers[name] = value

    def set_content_type(self, content_type: str) -> None:
        self.set_header("Content-Type", content_type)

    def add_cookie(self, morsel: Morsel) -> None:
        if self._reject("Set-Cookie"):
            return
        self.cookies.append(morsel)

    def _reject(self, what: str) -> bool:
        if self.committed:
            logger.debug(f"Ignoring {what} change on committed response")
            return True
        return False

    def commit(self) -> None:
        self.committed = True

    # =========================================================================
    # BODY
    # =========================================================================

    def get_output_stream(self) -> ResponseStream:
        """The binary body stream; commits the headers."""
        if self._writer is not None:
            raise RuntimeError("get_writer() has already been called")
        self.commit()
        return self._stream

    def get_writer(self, charset: str = "utf-8") -> TextIO:
        """A text writer over the body stream; commits the headers."""
        if self._writer is None:
            self.commit()
            self._writer = io.TextIOWrapper(
                self._stream, encoding=charset, newline="", write_through=True
            )
        return self._writer

    @property
    def closed(self) -> bool:
        return self._stream.closed

    @property
    def body(self) -> bytes:
        return self._stream.getvalue()

    # =========================================================================
    # SERIALIZATION
    # =========================================================================

    @property
    def status_line(self) -> str:
        """Format: HTTP-VERSION SP STATUS-CODE SP REASON-PHRASE"""
        return f"{self.version} {self.status.value} {self.status.phrase}"

    def set_cookie_headers(self) -> List[str]:
        return [morsel.OutputString() for morsel in self.cookies]

    def to_bytes(self, server_name: str = "httpmessage/1.0") -> bytes:
        """
        Serialize the response for socket.sendall().

        Content-Length, Date and Server are added when absent.
        """
        body = self.body
        headers = dict(self.headers)

        if "Content-Length" not in headers:
            headers["Content-Length"] = str(len(body))
        if "Date" not in headers:
            headers["Date"] = format_http_date(datetime.now(timezone.utc))
        if "Server" not in headers:
            headers["Server"] = server_name

        lines = [self.status_line]
        lines.extend(f"{name}: {value}" for name, value in headers.items())
        lines.extend(f"Set-Cookie: {cookie}" for cookie in self.set_cookie_headers())
        lines.append("")

        return "\r\n".join(lines).encode("utf-8") + b"\r\n" + body


def format_http_date(dt: datetime) -> str:
    """
    Format a datetime as an HTTP-date (RFC 7231), always GMT.

    Example: Thu, 01 Jan 2026 12:00:00 GMT
    """
    days = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
    months = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
              "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

    return (
        f"{days[dt.weekday()]}, "
        f"{dt.day:02d} {months[dt.month - 1]} {dt.year} "
        f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d} GMT"
    )
