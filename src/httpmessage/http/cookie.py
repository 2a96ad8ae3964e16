"""
=============================================================================
COOKIES
=============================================================================

An immutable Cookie value, translated both ways against the transport's
native cookie form: the standard library's http.cookies.Morsel, which is
what a "Set-Cookie" header parses into and serializes from.

    Cookie(name="sid", value="abc", http_only=True, max_age=3600)
        │  to_morsel()                          ▲  from_morsel()
        ▼                                       │
    Set-Cookie: sid=abc; HttpOnly; Max-Age=3600

Attributes that were not set stay absent on the way out: a cookie with no
domain never produces "Domain=", and a parsed header with no Domain
attribute decodes back to domain=None, never to "".

max_age follows the usual convention:
    -1  session cookie (no Max-Age attribute)
     0  delete now
    >0  lifetime in seconds

=============================================================================
"""

from dataclasses import dataclass
from http.cookies import CookieError, Morsel, SimpleCookie
from typing import List, Optional

from .errors import ValidationError


@dataclass(frozen=True)
class Cookie:
    """Immutable cookie value."""

    name: str
    value: str
    domain: Optional[str] = None
    path: Optional[str] = None
    comment: Optional[str] = None
    http_only: bool = False
    secure: bool = False
    max_age: int = -1

    def to_morsel(self) -> Morsel:
        """Translate into the transport's native Morsel form."""
        jar: SimpleCookie = SimpleCookie()
        try:
            jar[self.name] = self.value
        except CookieError as e:
            raise ValidationError(f"Invalid cookie {self.name!r}: {e}")

        morsel = jar[self.name]
        if self.domain is not None:
            morsel["domain"] = self.domain
        if self.path is not None:
            morsel["path"] = self.path
        if self.comment is not None:
            morsel["comment"] = self.comment
        if self.http_only:
            morsel["httponly"] = True
        if self.secure:
            morsel["secure"] = True
        if self.max_age >= 0:
            morsel["max-age"] = str(self.max_age)
        return morsel

    def to_header(self) -> str:
        """Render the value of a "Set-Cookie" header."""
        return self.to_morsel().OutputString()

    @classmethod
    def from_morsel(cls, morsel: Morsel) -> "Cookie":
        """Translate a native Morsel back into a Cookie."""
        max_age = morsel["max-age"]
        try:
            max_age = int(max_age) if max_age != "" else -1
        except ValueError:
            max_age = -1

        return cls(
            name=morsel.key,
            value=morsel.value,
            domain=morsel["domain"] or None,
            path=morsel["path"] or None,
            comment=morsel["comment"] or None,
            http_only=bool(morsel["httponly"]),
            secure=bool(morsel["secure"]),
            max_age=max_age,
        )


def parse_cookies(header: str) -> List[Cookie]:
    """
    Parse a "Cookie" or "Set-Cookie" header value into Cookies.

    Malformed headers yield an empty list (lenient, like header parsing).
    """
    if not header:
        return []

    jar: SimpleCookie = SimpleCookie()
    try:
        jar.load(header)
    except CookieError:
        return []
    return [Cookie.from_morsel(morsel) for morsel in jar.values()]
