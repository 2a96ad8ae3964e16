"""
=============================================================================
MEDIA TYPES AND CONTENT NEGOTIATION
=============================================================================

Media types (a.k.a. MIME types) name the format of a message body:

    text/html; charset=utf-8
    ──┬─ ─┬──  ──────┬──────
      │   │          │
    type subtype  parameters

Both negotiation directions in this package run through one pure
function, first_match():

    ┌────────────────────────────────────────────────────────────────────┐
    │                      CONTENT NEGOTIATION                           │
    ├────────────────────────────────────────────────────────────────────┤
    │                                                                     │
    │  REQUEST BODY (decode):                                            │
    │     server = types a parser declares                               │
    │     client = [Content-Type of the request]                         │
    │                                                                     │
    │  RESPONSE BODY (encode):                                           │
    │     server = types a writer declares                               │
    │     client = Accept header, in client order                        │
    │                                                                     │
    └────────────────────────────────────────────────────────────────────┘

=============================================================================
WILDCARDS AND SPECIFICITY
=============================================================================

    text/html   exact              specificity 2
    text/*      subtype wildcard   specificity 1
    */*         full wildcard      specificity 0

Two types match when each of type and subtype is equal, or either side
is "*". When a client entry matches several server entries, the most
specific server entry wins:

    server: [*/*, text/*, text/html]   client: [text/html]
    → text/html

Q: "Why walk the CLIENT list in the outer loop?"
A: "The client states its preference order. The first entry it lists that
   we can satisfy wins, even if a later entry would match more exactly."

=============================================================================
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

from .errors import InvalidMediaType


WILDCARD = "*"


@dataclass(frozen=True)
class MediaType:
    """
    Immutable media type value.

    Equality compares type, subtype and parameters; parameter names are
    stored lowercase in the order they were given.
    """

    type: str
    subtype: str
    params: Tuple[Tuple[str, str], ...] = field(default=())

    # =========================================================================
    # PARSING
    # =========================================================================

    @classmethod
    def parse(cls, value: str) -> "MediaType":
        """
        Parse a single media type such as "application/json; charset=utf-8".

        Raises:
            InvalidMediaType: If the value is not "type/subtype[; k=v]*".
        """
        if value is None:
            raise InvalidMediaType("Media type is missing")

        name, _, rest = value.strip().partition(";")
        type_, slash, subtype = name.strip().lower().partition("/")

        if not slash or not type_ or not subtype:
            raise InvalidMediaType(f"Invalid media type: {value!r}")
        if "/" in subtype or " " in type_ or " " in subtype:
            raise InvalidMediaType(f"Invalid media type: {value!r}")
        # "*/html" is not a legal wildcard
        if type_ == WILDCARD and subtype != WILDCARD:
            raise InvalidMediaType(f"Invalid wildcard media type: {value!r}")

        params: List[Tuple[str, str]] = []
        for raw in rest.split(";"):
            if not raw.strip():
                continue
            key, eq, val = raw.partition("=")
            if not eq or not key.strip():
                raise InvalidMediaType(f"Invalid media type parameter: {raw!r}")
            params.append((key.strip().lower(), val.strip().strip('"')))

        return cls(type_, subtype, tuple(params))

    @classmethod
    def of(cls, value: Union["MediaType", str]) -> "MediaType":
        """
        Coerce a MediaType, a "type/subtype" string or a bare file
        extension ("json", ".css") into a MediaType.
        """
        if isinstance(value, MediaType):
            return value
        if "/" not in value:
            return cls.parse(get_mime_type("file." + value.lstrip(".")))
        return cls.parse(value)

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def name(self) -> str:
        """The "type/subtype" part without parameters."""
        return f"{self.type}/{self.subtype}"

    @property
    def parameters(self) -> Dict[str, str]:
        return dict(self.params)

    def param(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.parameters.get(name.lower(), default)

    @property
    def charset(self) -> Optional[str]:
        return self.param("charset")

    @property
    def quality(self) -> float:
        """The "q" weight from an Accept entry (1.0 when absent or invalid)."""
        try:
            return float(self.param("q", "1"))
        except ValueError:
            return 1.0

    @property
    def is_wildcard(self) -> bool:
        return self.type == WILDCARD or self.subtype == WILDCARD

    @property
    def is_multipart(self) -> bool:
        return self.type == "multipart"

    @property
    def specificity(self) -> int:
        """2 for exact types, 1 for "type/*", 0 for "*/*"."""
        if self.type == WILDCARD:
            return 0
        if self.subtype == WILDCARD:
            return 1
        return 2

    def matches(self, other: "MediaType") -> bool:
        """Check whether two types are compatible, honoring wildcards on either side."""
        type_ok = self.type == other.type or WILDCARD in (self.type, other.type)
        subtype_ok = self.subtype == other.subtype or WILDCARD in (self.subtype, other.subtype)
        return type_ok and subtype_ok

    def without_params(self) -> "MediaType":
        return MediaType(self.type, self.subtype)

    def with_param(self, name: str, value: str) -> "MediaType":
        name = name.lower()
        params = tuple((k, v) for k, v in self.params if k != name) + ((name, value),)
        return MediaType(self.type, self.subtype, params)

    def __str__(self) -> str:
        if not self.params:
            return self.name
        return self.name + "".join(f"; {k}={v}" for k, v in self.params)


# =============================================================================
# WELL-KNOWN TYPES
# =============================================================================

ALL = MediaType("*", "*")
TEXT_PLAIN = MediaType("text", "plain")
HTML = MediaType("text", "html")
JSON = MediaType("application", "json")
XML = MediaType("application", "xml")
OCTET_STREAM = MediaType("application", "octet-stream")
FORM = MediaType("application", "x-www-form-urlencoded")
MULTIPART = MediaType("multipart", "form-data")


# =============================================================================
# HEADER PARSING
# =============================================================================

def parse_list(header: Optional[str]) -> List[MediaType]:
    """
    Parse an Accept header into a list of media types.

    Entries are sorted by their "q" weight, highest first; entries with the
    same weight keep the order the client sent them in. Entries with q=0
    are dropped. An empty or missing header means "*/*".

    Example:
        >>> [str(t) for t in parse_list("text/html;q=0.5, application/json")]
        ['application/json', 'text/html; q=0.5']
    """
    if not header or not header.strip():
        return [ALL]

    types = []
    for item in header.split(","):
        item = item.strip()
        if not item:
            continue
        # Some clients send a bare "*"
        if item == WILDCARD or item.startswith(WILDCARD + ";"):
            item = "*/*" + item[1:]
        types.append(MediaType.parse(item))
    types = [t for t in types if t.quality > 0]
    # sorted() is stable, so equal weights keep client order
    return sorted(types, key=lambda t: -t.quality) or [ALL]


# =============================================================================
# MATCHER
# =============================================================================

def first_match(
    server_accepts: Sequence[MediaType],
    client_accepts: Sequence[MediaType],
) -> Optional[MediaType]:
    """
    Pick the server type that best satisfies the client's preferences.

    =========================================================================
    ALGORITHM
    =========================================================================

        for each client entry, in client order:
            candidates = server entries compatible with it
            if any: return the most specific candidate

        return None

    Ties between server entries of equal specificity go to the one listed
    first. "No match" is a normal outcome and returns None; only
    malformed input (caught at parse time) raises.

    =========================================================================

    Args:
        server_accepts: Types the server side can handle.
        client_accepts: Types the client side wants, in preference order.

    Returns:
        The chosen server entry, or None when nothing matches.
    """
    for wanted in client_accepts:
        best: Optional[MediaType] = None
        for offered in server_accepts:
            if offered.matches(wanted):
                if best is None or offered.specificity > best.specificity:
                    best = offered
        if best is not None:
            return best
    return None


def matches_any(server_accepts: Iterable[MediaType], client_accepts: Sequence[MediaType]) -> bool:
    return first_match(list(server_accepts), client_accepts) is not None


# =============================================================================
# FILE EXTENSION LOOKUP
# =============================================================================
#
# Used for Response.type("json") shortcuts and as the fallback content
# type of uploaded files whose part carries no Content-Type header.
#
# =============================================================================

MIME_TYPES = {
    ".html": "text/html",
    ".htm": "text/html",
    ".css": "text/css",
    ".js": "text/javascript",
    ".json": "application/json",
    ".xml": "application/xml",
    ".txt": "text/plain",
    ".text": "text/plain",
    ".md": "text/markdown",
    ".csv": "text/csv",
    ".form": "application/x-www-form-urlencoded",
    ".multipart": "multipart/form-data",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".svg": "image/svg+xml",
    ".webp": "image/webp",
    ".pdf": "application/pdf",
    ".zip": "application/zip",
    ".gz": "application/gzip",
    ".bin": "application/octet-stream",
}

DEFAULT_MIME_TYPE = "application/octet-stream"


def get_mime_type(path: Union[str, Path], default: Optional[str] = None) -> str:
    """
    Get the MIME type for a file name based on its extension.

    Examples:
        >>> get_mime_type("avatar.png")
        'image/png'
        >>> get_mime_type("unknown.xyz")
        'application/octet-stream'
    """
    if isinstance(path, str):
        path = Path(path)

    extension = path.suffix.lower()  # .PNG → .png
    return MIME_TYPES.get(extension, default or DEFAULT_MIME_TYPE)


def is_text_type(media_type: MediaType) -> bool:
    """
    Check if a media type is character data (and so carries a charset).

    >>> is_text_type(JSON)
    True
    >>> is_text_type(MediaType.parse("image/png"))
    False
    """
    if media_type.type == "text":
        return True

    return media_type.name in {
        "application/json",
        "application/xml",
        "application/javascript",
        "application/x-www-form-urlencoded",
        "image/svg+xml",
    }
