"""
=============================================================================
MESSAGE LAYER ERRORS
=============================================================================

Every failure the request/response layer can report is an exception that
carries the HTTP status the owning engine should answer with.

    ┌─────────────────────────┬────────┬──────────────────────────────────┐
    │ Exception               │ Status │ Raised when                      │
    ├─────────────────────────┼────────┼──────────────────────────────────┤
    │ UnsupportedMediaType    │  415   │ no parser for the request body   │
    │ NotAcceptable           │  406   │ no writer matches Accept         │
    │ DecodeError             │  400   │ parser found, body malformed     │
    │ ValidationError         │  400   │ param/header coercion failed     │
    │ InvalidMediaType        │  400   │ "type/subtype" is malformed      │
    │ UnsupportedConversion   │  500   │ no converter for a target type   │
    ├─────────────────────────┼────────┼──────────────────────────────────┤
    │ IllegalState            │   -    │ response mutated after framing   │
    └─────────────────────────┴────────┴──────────────────────────────────┘

Negotiation failures (415/406) are recoverable: the engine turns them into
an empty-bodied status response. IllegalState is a programming error and
is never converted into a client-visible status.

=============================================================================
"""

from typing import Optional

from .status_codes import HTTPStatus


class HTTPError(Exception):
    """
    Base class for errors that map onto an HTTP status.

    Subclasses set a default `status_code`; callers may override it.
    """

    status_code: HTTPStatus = HTTPStatus.INTERNAL_SERVER_ERROR

    def __init__(self, message: str = "", status_code: Optional[int] = None):
        if status_code is not None:
            self.status_code = HTTPStatus.of(status_code)
        super().__init__(message or self.status_code.phrase)


class UnsupportedMediaType(HTTPError):
    """No registered parser can read the request body's media type."""

    status_code = HTTPStatus.UNSUPPORTED_MEDIA_TYPE


class NotAcceptable(HTTPError):
    """No registered writer can produce a type the client accepts."""

    status_code = HTTPStatus.NOT_ACCEPTABLE


class DecodeError(HTTPError):
    """A parser was found but the body it was handed is malformed."""

    status_code = HTTPStatus.BAD_REQUEST


class ValidationError(HTTPError):
    """A parameter or header value could not be coerced to the requested type."""

    status_code = HTTPStatus.BAD_REQUEST


class InvalidMediaType(HTTPError, ValueError):
    status_code = HTTPStatus.BAD_REQUEST


class UnsupportedConversion(HTTPError, TypeError):
    """No value converter is registered for the requested target type."""

    status_code = HTTPStatus.INTERNAL_SERVER_ERROR


class IllegalState(RuntimeError):
    """
    Raised when the response is used after it has been framed or sent.

    Signals a bug in the calling handler; it has no HTTP status.
    """
