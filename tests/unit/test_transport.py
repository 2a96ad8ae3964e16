"""
Unit tests for transport-level request parsing.
"""

import pytest

from httpmessage.transport import (
    HTTPParseError,
    HTTPRequest,
    RequestParser,
    parse_multipart,
)


def parse(data: bytes) -> HTTPRequest:
    return RequestParser().parse(data)


class TestRequestParser:
    """Tests for RequestParser class."""

    def test_parse_simple_get(self, sample_get_request: bytes):
        """Test parsing a simple GET request."""
        parser = RequestParser()
        request = parser.parse(sample_get_request, ("127.0.0.1", 12345))

        assert request.method == "GET"
        assert request.path == "/api/users"
        assert request.version == "HTTP/1.1"
        assert request.client_address == ("127.0.0.1", 12345)

    def test_parse_headers(self, sample_get_request: bytes):
        """Headers are stored lowercase with a list of values."""
        request = parse(sample_get_request)

        assert request.host == "localhost:8080"
        assert request.headers["accept"] == ["application/json"]
        assert request.get_header("User-Agent") == "pytest"
        assert request.is_keep_alive is True

    def test_repeated_headers_keep_order(self):
        """Repeated headers keep every value."""
        raw = b"GET / HTTP/1.1\r\nX-Tag: a\r\nX-Tag: b\r\n\r\n"
        request = parse(raw)

        assert request.get_headers("x-tag") == ["a", "b"]
        assert request.get_header("x-tag") == "a, b"

    def test_header_folding(self):
        """Obsolete line folding continues the previous value."""
        raw = b"GET / HTTP/1.1\r\nX-Long: one\r\n  two\r\n\r\n"
        request = parse(raw)

        assert request.get_header("x-long") == "one two"

    def test_parse_query_params(self, sample_get_request: bytes):
        """Test query parameter parsing."""
        request = parse(sample_get_request)

        assert request.parameter_values("page") == ["1"]
        assert request.parameter_values("tag") == ["a", "b"]
        assert request.parameter_values("missing") == []

    def test_parse_path_with_special_chars(self):
        """Test URL-encoded path parsing."""
        raw = b"GET /search?q=hello%20world HTTP/1.1\r\nHost: test\r\n\r\n"
        request = parse(raw)

        assert request.path == "/search"
        assert request.parameter_values("q") == ["hello world"]

    def test_parse_invalid_method(self):
        """Test that invalid methods are rejected."""
        raw = b"INVALID /path HTTP/1.1\r\nHost: test\r\n\r\n"

        with pytest.raises(HTTPParseError) as exc_info:
            parse(raw)

        assert exc_info.value.status_code == 405

    def test_parse_invalid_request_line(self):
        """Test handling of malformed request line."""
        with pytest.raises(HTTPParseError) as exc_info:
            parse(b"GET\r\nHost: test\r\n\r\n")

        assert exc_info.value.status_code == 400

    def test_parse_unsupported_version(self):
        with pytest.raises(HTTPParseError) as exc_info:
            parse(b"GET / HTTP/2.0\r\n\r\n")

        assert exc_info.value.status_code == 505

    def test_parse_path_traversal_blocked(self):
        """Test that path traversal attempts are blocked."""
        raw = b"GET /../../../etc/passwd HTTP/1.1\r\nHost: test\r\n\r\n"

        with pytest.raises(HTTPParseError) as exc_info:
            parse(raw)

        assert "path" in str(exc_info.value).lower()

    def test_parse_request_too_large(self):
        """Test that oversized requests are rejected."""
        parser = RequestParser(max_request_size=100)
        raw = b"GET / HTTP/1.1\r\n" + b"X-Large: " + b"A" * 200 + b"\r\n\r\n"

        with pytest.raises(HTTPParseError) as exc_info:
            parser.parse(raw)

        assert exc_info.value.status_code == 413

    def test_http_version_parsing(self):
        """Test HTTP/1.0 and HTTP/1.1 version handling."""
        request_10 = parse(b"GET / HTTP/1.0\r\nHost: test\r\n\r\n")
        assert request_10.version == "HTTP/1.0"
        assert request_10.is_keep_alive is False

        request_11 = parse(b"GET / HTTP/1.1\r\nHost: test\r\n\r\n")
        assert request_11.version == "HTTP/1.1"
        assert request_11.is_keep_alive is True

    def test_content_length_handling(self):
        """Test Content-Length validation."""
        body = b"test body"
        raw = b"POST / HTTP/1.1\r\nContent-Length: 9\r\n\r\n" + body

        request = parse(raw)

        assert request.content_length == 9
        assert request.body == body

    def test_incomplete_body(self):
        raw = b"POST / HTTP/1.1\r\nContent-Length: 20\r\n\r\nshort"

        with pytest.raises(HTTPParseError):
            parse(raw)

    def test_missing_content_length(self):
        request = parse(b"GET / HTTP/1.1\r\n\r\n")

        assert request.content_length == -1
        assert len(request.headers) == 0


class TestFormBodies:
    """Tests for urlencoded and multipart bodies."""

    def test_urlencoded_form(self, make_request):
        raw = make_request(
            "POST", "/?a=1",
            {"Content-Type": "application/x-www-form-urlencoded"},
            b"a=2&b=hello+world",
        )

        request = parse(raw)

        assert request.parameter_names() == ["a", "b"]
        assert request.parameter_values("a") == ["1", "2"]
        assert request.form_params["b"] == ["hello world"]

    def test_multipart_parts(self, sample_multipart_request):
        """Fields become form params; files stay parts only."""
        request = parse(sample_multipart_request)

        assert request.form_params == {"id": ["9"], "title": ["Holiday"]}
        avatar = request.part("avatar")
        assert avatar.is_file
        assert avatar.filename == "me.png"
        assert avatar.content_type == "image/png"
        assert avatar.data == b"\x89PNG-bytes"
        assert request.part("title").is_file is False

    def test_multipart_without_boundary(self, make_request):
        raw = make_request("POST", "/", {"Content-Type": "multipart/form-data"}, b"x")

        with pytest.raises(HTTPParseError):
            parse(raw)

    def test_multipart_unknown_charset(self, make_request, make_multipart):
        """An unknown field charset is a 400, as for urlencoded bodies."""
        content_type, body = make_multipart({"k": "v"})
        raw = make_request("POST", "/", {"Content-Type": f"{content_type}; charset=bogus"}, body)

        with pytest.raises(HTTPParseError) as exc_info:
            parse(raw)

        assert exc_info.value.status_code == 400

    def test_parse_multipart_directly(self, make_multipart):
        content_type, body = make_multipart({"k": "v"}, {"f": ("a.txt", "text/plain", b"data")})
        boundary = content_type.split("boundary=")[1]

        parts = parse_multipart(body, boundary)

        assert [(p.name, p.filename, p.data) for p in parts] == [
            ("k", None, b"v"),
            ("f", "a.txt", b"data"),
        ]


class TestHTTPRequest:
    """Tests for HTTPRequest dataclass."""

    def test_get_header_default(self):
        """Test get_header with default value."""
        request = HTTPRequest(method="GET", path="/")

        assert request.get_header("X-Missing") == ""
        assert request.get_header("X-Missing", "default") == "default"

    def test_input_stream_marks_consumed(self):
        request = HTTPRequest(method="POST", path="/", body=b"abc")

        assert request.body_consumed is False
        assert request.input_stream().read() == b"abc"
        assert request.body_consumed is True

    def test_native_cookies(self):
        request = HTTPRequest(method="GET", path="/", headers={"cookie": ["a=1; b=2"]})

        assert [(m.key, m.value) for m in request.native_cookies] == [("a", "1"), ("b", "2")]
