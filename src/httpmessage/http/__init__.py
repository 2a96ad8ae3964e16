"""
=============================================================================
HTTP MESSAGE LAYER
=============================================================================

What route handlers see of an HTTP exchange.

    ┌─────────────────────────────────────────────────────────────────────┐
    │ MEDIA TYPES (media_type.py)                                         │
    │ ─────────────────────────────────────────────────────────────────── │
    │ MediaType values, Accept parsing, first_match() negotiation         │
    ├─────────────────────────────────────────────────────────────────────┤
    │ PARAMETERS (params.py)                                              │
    │ ─────────────────────────────────────────────────────────────────── │
    │ ParameterView typed coercions, ParameterResolver precedence,        │
    │ Upload files                                                        │
    ├─────────────────────────────────────────────────────────────────────┤
    │ BODY CONVERTERS (converters.py)                                     │
    │ ─────────────────────────────────────────────────────────────────── │
    │ Value converters, body parsers/writers, BodyConverterSelector       │
    ├─────────────────────────────────────────────────────────────────────┤
    │ REQUEST / RESPONSE (request.py, response.py)                        │
    │ ─────────────────────────────────────────────────────────────────── │
    │ The facade handlers read from, and the writer they answer through   │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from .status_codes import HTTPStatus
from .errors import (
    HTTPError,
    UnsupportedMediaType,
    NotAcceptable,
    DecodeError,
    ValidationError,
    InvalidMediaType,
    UnsupportedConversion,
    IllegalState,
)
from .media_type import MediaType, parse_list, first_match, get_mime_type
from .cookie import Cookie
from .converters import (
    ConverterRegistry,
    Conversion,
    BodyParser,
    BodyWriter,
    BodyConverterSelector,
    JsonBodyConverter,
    TextBodyConverter,
    BytesBodyConverter,
)
from .params import Upload, UploadStorage, ParameterView, ParameterResolver
from .request import Request, RouteBinding, Session, SessionProvider
from .response import Response, ResponseState, View, ViewWriter

__all__ = [
    # Status and errors
    "HTTPStatus",
    "HTTPError",
    "UnsupportedMediaType",
    "NotAcceptable",
    "DecodeError",
    "ValidationError",
    "InvalidMediaType",
    "UnsupportedConversion",
    "IllegalState",

    # Media types
    "MediaType",
    "parse_list",
    "first_match",
    "get_mime_type",

    # Cookies
    "Cookie",

    # Converters
    "ConverterRegistry",
    "Conversion",
    "BodyParser",
    "BodyWriter",
    "BodyConverterSelector",
    "JsonBodyConverter",
    "TextBodyConverter",
    "BytesBodyConverter",

    # Parameters
    "Upload",
    "UploadStorage",
    "ParameterView",
    "ParameterResolver",

    # Request / response
    "Request",
    "RouteBinding",
    "Session",
    "SessionProvider",
    "Response",
    "ResponseState",
    "View",
    "ViewWriter",
]
