"""
=============================================================================
HTTPMESSAGE - HTTP Message Abstraction Layer
=============================================================================

Sits between a host HTTP engine and application route handlers:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   host engine (transport)                                           │
    │        │  HTTPRequest: headers, query, form, parts, body           │
    │        ▼                                                            │
    │   MessageEngine ── negotiates type / accept / charset / locale      │
    │        │                                                            │
    │        ▼                                                            │
    │   handler(request, response)                                        │
    │        │   request.param("id").to_int()                             │
    │        │   request.body(dict)                                       │
    │        │   response.send({"ok": True})                              │
    │        ▼                                                            │
    │   HTTPResponse: status, headers, cookies, body bytes                │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    httpmessage/
    ├── __init__.py          # This file - package exports
    ├── config.py            # MessageConfig dataclass
    ├── engine.py            # MessageEngine: binding, dispatch, error policy
    ├── http/                # What handlers see
    │   ├── media_type.py    # MediaType, Accept parsing, matcher
    │   ├── status_codes.py  # HTTP status enums
    │   ├── errors.py        # Error taxonomy
    │   ├── cookie.py        # Cookie values
    │   ├── converters.py    # Value converters, body parsers/writers
    │   ├── params.py        # ParameterView, ParameterResolver, Upload
    │   ├── request.py       # Request facade
    │   └── response.py      # Response writer
    └── transport/           # Host-engine stand-in
        ├── request.py       # Raw bytes → HTTPRequest
        ├── multipart.py     # multipart/form-data parts
        └── response.py      # HTTPResponse → raw bytes

=============================================================================
QUICK START
=============================================================================

    from httpmessage import MessageEngine, MessageConfig, RouteBinding

    engine = MessageEngine(MessageConfig())

    def get_user(request, response):
        user_id = request.param("id").to_int()
        response.send({"id": user_id, "tags": request.param("tag").to_list()})

    raw_response = engine.handle_bytes(
        raw_request, get_user, RouteBinding("/users/42", {"id": "42"})
    )

=============================================================================
"""

__version__ = "1.0.0"

from .config import MessageConfig
from .engine import MessageEngine
from .http import Request, Response, RouteBinding

__all__ = ["MessageEngine", "MessageConfig", "Request", "Response", "RouteBinding", "__version__"]
