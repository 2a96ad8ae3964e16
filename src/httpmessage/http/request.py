"""
=============================================================================
REQUEST FACADE
=============================================================================

The object route handlers receive. It wraps the transport request and
answers every question a handler asks about it, lazily:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                           Request                                   │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │  param(name) / params()   ──► ParameterResolver  (cached per name)  │
    │  header(name) / headers() ──► ParameterView over header values      │
    │  cookie(name) / cookies() ──► Cookie values                         │
    │  body(SomeType)           ──► BodyConverterSelector.parser_for()    │
    │  accepts(candidates)      ──► media_type.first_match()              │
    │  session() / if_session() ──► SessionProvider                       │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
LIFECYCLE
=============================================================================

A Request is bound once, at construction, to a RouteBinding (the path and
the path variables the router extracted). It is never mutated afterwards.
When the owning engine has to dispatch the same transport request again
(an internal forward), it calls rebind(), which returns a NEW Request with
a fresh parameter cache:

    request = Request(transport, RouteBinding("/users/42", {"id": "42"}), ...)
    forwarded = request.rebind(RouteBinding("/profile/42", {"id": "42"}))

A Request (and its Response) belongs to exactly one handler invocation.
It performs no locking and must not be shared between threads.

=============================================================================
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from .converters import BodyConverterSelector, BodyReader
from .cookie import Cookie
from .errors import IllegalState
from .media_type import ALL, MediaType, first_match
from .params import ParameterResolver, ParameterView
from ..transport.request import HTTPRequest


@dataclass(frozen=True)
class RouteBinding:
    """What the router resolved for a request: its path and path variables."""

    path: str
    vars: Mapping[str, str] = field(default_factory=dict)


# =============================================================================
# SESSION CONTRACTS
# =============================================================================

class Session(ABC):
    """A server-side session; storage is the provider's concern."""

    @property
    @abstractmethod
    def id(self) -> str:
        ...

    @abstractmethod
    def get(self, name: str, default: Any = None) -> Any:
        ...

    @abstractmethod
    def set(self, name: str, value: Any) -> None:
        ...


class SessionProvider(ABC):
    """Creates or finds the session of the request being handled."""

    @abstractmethod
    def get_or_create(self) -> Session:
        ...

    @abstractmethod
    def get_if_exists(self) -> Optional[Session]:
        ...


# =============================================================================
# REQUEST
# =============================================================================

class Request:
    """
    Handler-facing view of one HTTP request.

    Content type, accept list, charset and locale are negotiated by the
    engine and handed in; the Request only answers questions about them.
    """

    def __init__(
        self,
        transport: HTTPRequest,
        route: RouteBinding,
        selector: BodyConverterSelector,
        resolver: ParameterResolver,
        content_type: MediaType = ALL,
        accept: Optional[Sequence[MediaType]] = None,
        charset: str = "utf-8",
        locale: str = "en-US",
        session_provider: Optional[SessionProvider] = None,
    ):
        if transport is None:
            raise TypeError("A transport request is required.")
        if route is None:
            raise TypeError("A route is required.")

        self._transport = transport
        self._route = route
        self._selector = selector
        self._resolver = resolver
        self._type = content_type
        self._accept = list(accept) if accept else [ALL]
        self._charset = charset
        self._locale = locale
        self._session_provider = session_provider

        # Views are built once per name and reused
        self._params: Dict[str, ParameterView] = {}

    # =========================================================================
    # ROUTE AND TRANSPORT
    # =========================================================================

    @property
    def transport(self) -> HTTPRequest:
        return self._transport

    @property
    def route(self) -> RouteBinding:
        return self._route

    @property
    def path(self) -> str:
        return self._route.path

    @property
    def vars(self) -> Mapping[str, str]:
        """Path variables of the bound route."""
        return self._route.vars

    @property
    def method(self) -> str:
        return self._transport.method

    def rebind(self, route: RouteBinding) -> "Request":
        """A new Request for the same transport request, bound to `route`."""
        return Request(
            self._transport,
            route,
            self._selector,
            self._resolver,
            content_type=self._type,
            accept=self._accept,
            charset=self._charset,
            locale=self._locale,
            session_provider=self._session_provider,
        )

    # =========================================================================
    # NEGOTIATED PROPERTIES
    # =========================================================================

    @property
    def type(self) -> MediaType:
        """Content type of the request body ("*/*" when not declared)."""
        return self._type

    @property
    def accept(self) -> List[MediaType]:
        """Client accept list, preferred first."""
        return list(self._accept)

    def accepts(self, *candidates: Union[MediaType, str, Sequence[Union[MediaType, str]]]) -> Optional[MediaType]:
        """
        The candidate the client prefers, or None if it accepts none of them.

        Example:
            # Accept: text/html, application/json
            request.accepts("application/json", "text/html")   → text/html
            request.accepts("image/png")                       → None
        """
        if len(candidates) == 1 and isinstance(candidates[0], (list, tuple)):
            candidates = tuple(candidates[0])
        offered = [MediaType.of(c) for c in candidates]
        return first_match(offered, self._accept)

    @property
    def charset(self) -> str:
        return self._charset

    @property
    def locale(self) -> str:
        return self._locale

    @property
    def length(self) -> int:
        """Content-Length, or -1 when the client did not send one."""
        return self._transport.content_length

    # =========================================================================
    # CLIENT / CONNECTION
    # =========================================================================

    @property
    def ip(self) -> str:
        return self._transport.client_address[0]

    @property
    def hostname(self) -> str:
        """Host header without the port; the client IP when absent."""
        host = self._transport.host
        if not host:
            return self.ip
        if host.startswith("["):  # IPv6 literal
            return host.split("]")[0] + "]"
        return host.split(":")[0]

    @property
    def protocol(self) -> str:
        return self._transport.version

    @property
    def secure(self) -> bool:
        return self._transport.secure

    # =========================================================================
    # PARAMETERS
    # =========================================================================

    def param(self, name: str) -> ParameterView:
        """
        The merged view for `name`: path variable, then query/form values,
        or the uploaded files when the name has no string values at all.
        """
        if name is None:
            raise TypeError("Parameter's name is missing.")

        view = self._params.get(name)
        if view is None:
            view = self._resolver.resolve_one(self, name)
            self._params[name] = view
        return view

    def params(self) -> Dict[str, ParameterView]:
        """Every parameter, path variables first. Empty when there are none."""
        return {name: self.param(name) for name in self._resolver.names(self)}

    # =========================================================================
    # HEADERS AND COOKIES
    # =========================================================================

    def header(self, name: str) -> ParameterView:
        if name is None:
            raise TypeError("Header's name is missing.")
        return ParameterView(
            name,
            self._transport.get_headers(name),
            converters=self._resolver.converters,
        )

    def headers(self) -> Dict[str, ParameterView]:
        return {name: self.header(name) for name in self._transport.header_names()}

    def cookie(self, name: str) -> Optional[Cookie]:
        for cookie in self.cookies():
            if cookie.name == name:
                return cookie
        return None

    def cookies(self) -> List[Cookie]:
        return [Cookie.from_morsel(morsel) for morsel in self._transport.native_cookies]

    # =========================================================================
    # BODY
    # =========================================================================

    def body(self, target_type: Any) -> Any:
        """
        Decode the request body into `target_type`.

        The parser is chosen BEFORE the body stream is opened, so an
        unsupported content type leaves the body untouched.

        Raises:
            UnsupportedMediaType: No parser for this content type and target (415).
            DecodeError: The body is malformed (400).
        """
        parser = self._selector.parser_for(target_type, [self._type])
        reader = BodyReader(self._charset, self._transport.input_stream)
        return parser.parse(target_type, reader)

    # =========================================================================
    # SESSION
    # =========================================================================

    def session(self) -> Session:
        """The current session, created if needed."""
        return self._require_sessions().get_or_create()

    def if_session(self) -> Optional[Session]:
        """The current session, or None if there is none yet."""
        return self._require_sessions().get_if_exists()

    def _require_sessions(self) -> SessionProvider:
        if self._session_provider is None:
            raise IllegalState("No session provider configured")
        return self._session_provider

    def __repr__(self) -> str:
        return f"Request({self.method} {self.path})"
