"""
=============================================================================
RESPONSE WRITER
=============================================================================

Handlers answer through a Response. It frames the transport response
(status, Content-Type, headers, cookies) exactly once and writes the body
through a BodyWriter picked by content negotiation.

=============================================================================
STATE MACHINE
=============================================================================

    FRESH ──frame──► FRAMED ──body written──► WRITTEN ──► CLOSED
      │                 │
      │                 └── strategy failed: stays FRAMED, error propagates
      │
      └── NotAcceptable raised while FRESH → 406, empty body

    ┌─────────────────────────────────────────────────────────────────────┐
    │  FRESH     status(), type(), header(), cookie() allowed             │
    │  FRAMED    headers pushed to the transport; mutators raise          │
    │  WRITTEN   body complete; the transport stream is closed            │
    │  CLOSED    nothing more may be sent                                 │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
UNCLOSEABLE STREAMS
=============================================================================

A BodyWriter may close what it is given (json.dump into a `with` block,
a template engine closing its sink...). The transport stream must only be
closed by the Response, after the writer returned normally, so writers
receive an _Uncloseable wrapper:

    writer.close()   → no-op
    after the write  → wrapper detached; any later write raises IllegalState

=============================================================================
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, BinaryIO, Callable, Dict, List, Optional, Sequence, TextIO, Union
import logging

from .converters import BodyConverterSelector, BodyOutput, BodyWriter, NotAcceptableWriter
from .cookie import Cookie
from .errors import IllegalState, NotAcceptable
from .media_type import ALL, HTML, MediaType, is_text_type
from .status_codes import HTTPStatus
from ..transport.response import HTTPResponse


logger = logging.getLogger(__name__)


class ResponseState(Enum):
    FRESH = "fresh"
    FRAMED = "framed"
    WRITTEN = "written"
    CLOSED = "closed"


@dataclass
class View:
    """A named template plus the model it renders."""

    name: str
    model: Dict[str, Any] = field(default_factory=dict)


class ViewWriter(BodyWriter):
    """
    Renders Views. Chosen by Response.render() without consulting Accept.

    Subclasses implement write(view, out) and usually call out.text().
    """

    types = (HTML,)

    def can_write(self, value: Any) -> bool:
        return isinstance(value, View)


class _Uncloseable:
    """Stream wrapper whose close() leaves the target open."""

    def __init__(self, target: Union[TextIO, BinaryIO]):
        self._target: Optional[Union[TextIO, BinaryIO]] = target

    def _live(self) -> Union[TextIO, BinaryIO]:
        if self._target is None:
            raise IllegalState("response already sent")
        return self._target

    def write(self, data: Any) -> int:
        return self._live().write(data)

    def writelines(self, lines: Any) -> None:
        self._live().writelines(lines)

    def flush(self) -> None:
        self._live().flush()

    def writable(self) -> bool:
        return self._target is not None

    def close(self) -> None:
        pass

    @property
    def closed(self) -> bool:
        return self._target is None

    def detach(self) -> None:
        self._target = None

    def __enter__(self):
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class Response(BodyOutput):
    """
    Handler-facing response for one request.

    Example:
        response.status(201).header("Location", "/users/7").send({"id": 7})
        response.type("text/csv").send("id\\n7\\n")
        response.render("profile", {"user": user})
    """

    def __init__(
        self,
        transport: HTTPResponse,
        selector: Optional[BodyConverterSelector] = None,
        accept: Optional[Sequence[MediaType]] = None,
        charset: str = "utf-8",
        default_type: MediaType = HTML,
        view_writer: Optional[ViewWriter] = None,
    ):
        self._transport = transport
        self._selector = selector or BodyConverterSelector.default()
        self._accept = list(accept) if accept else [ALL]
        self._charset = charset
        self._default_type = default_type
        self._view_writer = view_writer

        self._state = ResponseState.FRESH
        self._status = HTTPStatus.OK
        self._type: Optional[MediaType] = None
        self._headers: Dict[str, str] = {}
        self._cookies: List[Cookie] = []

    # =========================================================================
    # STATE
    # =========================================================================

    @property
    def state(self) -> ResponseState:
        return self._state

    @property
    def committed(self) -> bool:
        return self._state is not ResponseState.FRESH

    @property
    def transport(self) -> HTTPResponse:
        return self._transport

    def _ensure_fresh(self, what: str) -> None:
        if self._state is not ResponseState.FRESH:
            logger.warning(f"Cannot change {what}: response is {self._state.value}")
            raise IllegalState(f"response already sent ({what})")

    # =========================================================================
    # FRAMING (FRESH ONLY)
    # =========================================================================

    def status(self, code: int) -> "Response":
        self._ensure_fresh("status")
        self._status = HTTPStatus.of(code)
        return self

    @property
    def status_code(self) -> HTTPStatus:
        return self._status

    def type(self, media_type: Union[MediaType, str]) -> "Response":
        """Set Content-Type from a MediaType, "type/subtype" or a file extension."""
        self._ensure_fresh("Content-Type")
        self._type = MediaType.of(media_type)
        return self

    @property
    def media_type(self) -> Optional[MediaType]:
        """The explicitly set or negotiated type; None until one is known."""
        return self._type

    def header(self, name: str, value: Any) -> "Response":
        self._ensure_fresh(name)
        if name.lower() == "content-type":
            return self.type(str(value))
        self._headers[name] = str(value)
        return self

    def get_header(self, name: str) -> Optional[str]:
        for key, value in self._headers.items():
            if key.lower() == name.lower():
                return value
        return None

    def cookie(self, cookie: Cookie) -> "Response":
        self._ensure_fresh("Set-Cookie")
        self._cookies.append(cookie)
        return self

    def clear_cookie(self, name: str, path: Optional[str] = None) -> "Response":
        """Expire cookie `name` in the client (Max-Age=0)."""
        return self.cookie(Cookie(name, "", path=path, max_age=0))

    def redirect(self, location: str, permanent: bool = False) -> "Response":
        self.status(HTTPStatus.MOVED_PERMANENTLY if permanent else HTTPStatus.FOUND)
        self.header("Location", location)
        return self.end()

    def _frame(self, media_type: Optional[MediaType], text: bool) -> None:
        """Push everything collected so far to the transport. FRESH → FRAMED."""
        transport = self._transport
        transport.set_status(self._status)
        if media_type is not None:
            if text:
                media_type = media_type.with_param("charset", self._charset)
            transport.set_content_type(str(media_type))
        for name, value in self._headers.items():
            transport.set_header(name, value)
        for cookie in self._cookies:
            transport.add_cookie(cookie.to_morsel())
        self._state = ResponseState.FRAMED

    # =========================================================================
    # BODY PATHS (BodyOutput)
    # =========================================================================

    def text(self, strategy: Callable[[TextIO], None]) -> "Response":
        """Write character data with the response charset."""
        self._ensure_fresh("body")
        self._frame(self._type or self._default_type, text=True)
        return self._write(self._transport.get_writer(self._charset), strategy)

    def bytes(self, strategy: Callable[[BinaryIO], None]) -> "Response":
        """Write binary data; Content-Type carries no charset."""
        self._ensure_fresh("body")
        media_type = self._type or self._default_type
        if not is_text_type(media_type):
            media_type = media_type.without_params()
        self._frame(media_type, text=False)
        return self._write(self._transport.get_output_stream(), strategy)

    def _write(self, target: Any, strategy: Callable[[Any], None]) -> "Response":
        out = _Uncloseable(target)
        try:
            strategy(out)
        finally:
            out.detach()

        self._state = ResponseState.WRITTEN
        target.flush()
        target.close()
        self._state = ResponseState.CLOSED
        return self

    # =========================================================================
    # SENDING
    # =========================================================================

    def send(self, body: Any, status: Optional[int] = None) -> "Response":
        """
        Send `body` as the response.

        Strings are written as-is; anything else goes to the BodyWriter
        matching the explicit type (if set) or the client's Accept list.
        When no writer matches, the response becomes 406 with no body.

        Raises:
            IllegalState: The response was already sent.
        """
        self._ensure_fresh("body")
        if status is not None:
            self.status(status)

        if isinstance(body, str):
            return self.text(lambda out: out.write(body))

        accepts = [self._type] if self._type is not None else self._accept
        writer = self._selector.writer_for(body, accepts)
        return self._deliver(writer, body, accepts)

    def render(self, view_name: str, model: Optional[Dict[str, Any]] = None) -> "Response":
        """Render a view through the view writer, whatever the Accept list says."""
        self._ensure_fresh("body")
        view = View(view_name, dict(model or {}))
        writer: BodyWriter = self._view_writer or NotAcceptableWriter([self._type or HTML])
        accepts = [self._type] if self._type is not None else list(writer.types)
        return self._deliver(writer, view, accepts)

    def _deliver(self, writer: BodyWriter, value: Any, accepts: Sequence[MediaType]) -> "Response":
        negotiated = BodyConverterSelector.negotiate(writer, accepts)
        if negotiated is not None:
            self._type = negotiated

        try:
            writer.write(value, self)
        except NotAcceptable as e:
            if self._state is not ResponseState.FRESH:
                raise
            logger.info(f"406 Not Acceptable: {e}")
            self._status = HTTPStatus.NOT_ACCEPTABLE
            self._type = None
            return self.end()

        if self._state is ResponseState.FRESH:
            # Writer produced no body
            return self.end()
        return self

    def end(self) -> "Response":
        """Finish the response with whatever was framed and an empty body."""
        self._ensure_fresh("body")
        self._frame(self._type, text=False)
        return self._write(self._transport.get_output_stream(), lambda out: None)

    def __repr__(self) -> str:
        return f"Response({self._status.value}, {self._state.value})"
