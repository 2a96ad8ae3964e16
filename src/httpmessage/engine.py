"""
=============================================================================
MESSAGE ENGINE
=============================================================================

Owns the Request/Response pair for each dispatch and turns failures into
status responses.

=============================================================================
DISPATCH FLOW
=============================================================================

    raw bytes ──► RequestParser ──► HTTPRequest ─┐
                      │                          │
                      └─ HTTPParseError ──► 400/405/413/505
                                                 ▼
                                   negotiate(transport headers)
                                   ┌──────────────────────────────┐
                                   │ Content-Type  → request.type  │
                                   │ Accept        → request.accept│
                                   │ charset       → request.charset
                                   │ Accept-Language → locale      │
                                   └──────────────────────────────┘
                                                 ▼
                                   handler(request, response)
                                                 ▼
                                        HTTPResponse ──► to_bytes()

=============================================================================
ERROR POLICY
=============================================================================

    ┌──────────────────────────────┬───────────────────────────────────────┐
    │ Raised by the handler        │ Response                              │
    ├──────────────────────────────┼───────────────────────────────────────┤
    │ UnsupportedMediaType (415)   │ status only, empty body               │
    │ NotAcceptable (406)          │ status only, empty body               │
    │ other HTTPError              │ status + text/plain message           │
    │ anything else                │ logged with traceback, 500            │
    ├──────────────────────────────┼───────────────────────────────────────┤
    │ any error after framing      │ logged; partial response left as is  │
    └──────────────────────────────┴───────────────────────────────────────┘

=============================================================================
"""

from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Tuple
import codecs
import logging

from .config import MessageConfig
from .http.converters import BodyConverterSelector, ConverterRegistry
from .http.errors import HTTPError, NotAcceptable, UnsupportedMediaType
from .http.media_type import ALL, TEXT_PLAIN, MediaType, parse_list
from .http.params import ParameterResolver, UploadStorage
from .http.request import Request, RouteBinding, SessionProvider
from .http.response import Response, ViewWriter
from .http.status_codes import HTTPStatus
from .transport.request import HTTPRequest, RequestParser
from .transport.response import HTTPResponse


logger = logging.getLogger(__name__)


Handler = Callable[[Request, Response], Any]


@dataclass(frozen=True)
class Negotiation:
    """What the engine derived from the transport headers."""

    content_type: MediaType
    accept: List[MediaType]
    charset: str
    locale: str


class MessageEngine:
    """
    Builds Request/Response pairs over transport objects and runs handlers.

    Example:
        engine = MessageEngine(MessageConfig())

        def show_user(request, response):
            response.send({"id": request.param("id").to_int()})

        raw = engine.handle_bytes(data, show_user, RouteBinding("/users/7", {"id": "7"}))
    """

    def __init__(
        self,
        config: Optional[MessageConfig] = None,
        selector: Optional[BodyConverterSelector] = None,
        converters: Optional[ConverterRegistry] = None,
        upload_storage: Optional[UploadStorage] = None,
        view_writer: Optional[ViewWriter] = None,
        session_provider: Optional[SessionProvider] = None,
    ):
        self.config = config or MessageConfig()
        self.selector = selector or BodyConverterSelector.default()
        self.converters = converters or ConverterRegistry()
        self.resolver = ParameterResolver(self.config.tmpdir, upload_storage, self.converters)
        self.view_writer = view_writer
        self.session_provider = session_provider
        self._parser = RequestParser(self.config.max_request_size, self.config.charset)

    # =========================================================================
    # NEGOTIATION
    # =========================================================================

    def negotiate(self, transport: HTTPRequest) -> Negotiation:
        """
        Raises:
            InvalidMediaType: Content-Type or Accept is malformed (400).
            UnsupportedMediaType: The declared charset is unknown (415).
        """
        raw_type = transport.content_type
        content_type = MediaType.parse(raw_type) if raw_type else ALL
        accept = parse_list(transport.get_header("accept") or None)
        charset = content_type.charset or self.config.charset
        try:
            codecs.lookup(charset)
        except LookupError:
            raise UnsupportedMediaType(f"Unsupported charset: {charset}")
        return Negotiation(content_type, accept, charset, self._locale(transport))

    def _locale(self, transport: HTTPRequest) -> str:
        # First language range wins; q weights are not ranked
        header = transport.get_header("accept-language")
        for item in header.split(","):
            tag = item.split(";")[0].strip()
            if tag and tag != "*":
                return tag
        return self.config.locale

    # =========================================================================
    # BINDING
    # =========================================================================

    def bind(
        self,
        transport: HTTPRequest,
        route: RouteBinding,
        out: Optional[HTTPResponse] = None,
    ) -> Tuple[Request, Response]:
        """Create the Request/Response pair for one handler invocation."""
        negotiation = self.negotiate(transport)
        request = Request(
            transport,
            route,
            self.selector,
            self.resolver,
            content_type=negotiation.content_type,
            accept=negotiation.accept,
            charset=negotiation.charset,
            locale=negotiation.locale,
            session_provider=self.session_provider,
        )
        response = self._response(out or HTTPResponse(transport.version), negotiation.accept, negotiation.charset)
        return request, response

    def _response(self, out: HTTPResponse, accept: List[MediaType], charset: str) -> Response:
        return Response(
            out,
            self.selector,
            accept=accept,
            charset=charset,
            default_type=self.config.default_media_type,
            view_writer=self.view_writer,
        )

    # =========================================================================
    # DISPATCH
    # =========================================================================

    def dispatch(
        self,
        transport: HTTPRequest,
        handler: Handler,
        route: Optional[RouteBinding] = None,
    ) -> HTTPResponse:
        """Run `handler` for `transport` and return the finished transport response."""
        route = route or RouteBinding(transport.path)
        out = HTTPResponse(transport.version)

        try:
            request, response = self.bind(transport, route, out)
        except HTTPError as e:
            logger.info(f"Rejected {transport.method} {transport.path}: {e}")
            self._fail(self._response(out, [ALL], self.config.charset), e)
            return out

        self.run(handler, request, response)
        return out

    def redispatch(self, request: Request, response: Response, route: RouteBinding, handler: Handler) -> None:
        """Run `handler` for the same transport request bound to another route."""
        self.run(handler, request.rebind(route), response)

    def run(self, handler: Handler, request: Request, response: Response) -> None:
        """
        Invoke `handler` and apply the error policy.

        A non-None return value is sent as the body; a handler that
        never wrote gets an empty response.
        """
        try:
            result = handler(request, response)
            if result is not None and not response.committed:
                response.send(result)
        except Exception as e:
            self._fail(response, e)

        if not response.committed:
            response.end()

    def _fail(self, response: Response, error: Exception) -> None:
        if response.committed:
            logger.error(f"Error after response was framed: {error}", exc_info=error)
            return

        if isinstance(error, (UnsupportedMediaType, NotAcceptable)):
            response.status(error.status_code).end()
        elif isinstance(error, HTTPError):
            logger.debug(f"{error.status_code.value} {error}")
            response.status(error.status_code).type(TEXT_PLAIN).send(str(error))
        else:
            logger.exception(f"Handler error: {error}")
            status = HTTPStatus.INTERNAL_SERVER_ERROR
            response.status(status).type(TEXT_PLAIN).send(status.phrase)

    # =========================================================================
    # RAW BYTES
    # =========================================================================

    def handle_bytes(
        self,
        data: bytes,
        handler: Handler,
        route: Optional[RouteBinding] = None,
        client_address: Tuple[str, int] = ("", 0),
        secure: bool = False,
    ) -> bytes:
        """Parse a raw request, dispatch it and serialize the response."""
        try:
            transport = self._parser.parse(data, client_address, secure)
        except HTTPError as e:
            logger.info(f"Malformed request from {client_address[0] or 'unknown'}: {e}")
            out = HTTPResponse()
            self._fail(self._response(out, [ALL], self.config.charset), e)
            out.headers["Connection"] = "close"
            return out.to_bytes(self.config.server_name)

        out = self.dispatch(transport, handler, route)
        if not transport.is_keep_alive:
            out.headers.setdefault("Connection", "close")
        return out.to_bytes(self.config.server_name)
