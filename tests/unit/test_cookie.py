"""
Unit tests for cookie translation.
"""

import pytest

from httpmessage.http.cookie import Cookie, parse_cookies
from httpmessage.http.errors import ValidationError


class TestCookie:
    """Tests for Cookie <-> Morsel / Set-Cookie translation."""

    def test_round_trip_through_set_cookie(self):
        """Sent attributes come back equal; omitted ones stay absent."""
        sent = Cookie("sid", "abc", http_only=True, max_age=3600)

        received = parse_cookies(sent.to_header())

        assert len(received) == 1
        cookie = received[0]
        assert (cookie.name, cookie.value, cookie.http_only, cookie.max_age) == ("sid", "abc", True, 3600)
        assert cookie.domain is None
        assert cookie.path is None
        assert cookie.comment is None
        assert cookie == sent

    def test_all_attributes_round_trip(self):
        """Every supported attribute survives the trip."""
        sent = Cookie(
            "pref", "dark", domain="example.com", path="/app",
            comment="theme", http_only=False, secure=True, max_age=0,
        )

        assert parse_cookies(sent.to_header()) == [sent]

    def test_absent_attributes_not_synthesized(self):
        """A bare cookie serializes to just name=value."""
        header = Cookie("sid", "abc").to_header()

        assert header == "sid=abc"

    def test_session_cookie_has_no_max_age(self):
        """max_age -1 means session cookie."""
        assert "Max-Age" not in Cookie("sid", "abc").to_header()
        assert "Max-Age=0" in Cookie("sid", "", max_age=0).to_header()

    def test_invalid_name_rejected(self):
        """Names with separators cannot be sent."""
        with pytest.raises(ValidationError):
            Cookie("bad name;", "x").to_morsel()

    def test_parse_request_cookie_header(self):
        """A request Cookie header yields one Cookie per pair."""
        cookies = parse_cookies("sid=abc123; theme=dark")

        assert [(c.name, c.value) for c in cookies] == [("sid", "abc123"), ("theme", "dark")]

    def test_parse_malformed_is_empty(self):
        """Garbage in, nothing out."""
        assert parse_cookies("") == []
