"""
Host-engine stand-in: raw HTTP/1.1 bytes in, transport request/response
objects out. The message layer wraps these; handlers never see them.
"""

from .multipart import Part, parse_multipart
from .request import HTTPRequest, RequestParser, HTTPParseError
from .response import HTTPResponse, ResponseStream, format_http_date

__all__ = [
    "Part",
    "parse_multipart",
    "HTTPRequest",
    "RequestParser",
    "HTTPParseError",
    "HTTPResponse",
    "ResponseStream",
    "format_http_date",
]
