"""
Unit tests for the message engine: binding, dispatch and error policy.
"""

from datetime import date
import json
import logging

import pytest

from httpmessage import MessageConfig, MessageEngine
from httpmessage.http import RouteBinding
from httpmessage.http.errors import UnsupportedMediaType
from httpmessage.http.media_type import JSON


def split(raw: bytes):
    head, _, body = raw.partition(b"\r\n\r\n")
    lines = head.decode().split("\r\n")
    headers = dict(line.split(": ", 1) for line in lines[1:])
    return lines[0], headers, body


class TestNegotiation:
    """Tests for header negotiation."""

    def test_negotiate_defaults(self, engine, parse, make_request):
        negotiation = engine.negotiate(parse(make_request()))

        assert negotiation.content_type.name == "*/*"
        assert negotiation.charset == "utf-8"
        assert negotiation.locale == "en-US"

    def test_negotiate_from_headers(self, engine, parse, make_request):
        transport = parse(make_request("POST", "/", {
            "Content-Type": "application/json; charset=utf-16",
            "Accept": "application/json",
            "Accept-Language": "de;q=0.9",
        }, b"{}"))

        negotiation = engine.negotiate(transport)

        assert negotiation.content_type.name == "application/json"
        assert negotiation.charset == "utf-16"
        assert negotiation.accept == [JSON]
        assert negotiation.locale == "de"


class TestDispatch:
    """Tests for running handlers."""

    def test_handler_sends_json(self, engine, sample_get_request):
        """A dict is negotiated into JSON."""

        def handler(request, response):
            response.send({"page": request.param("page").to_int()})

        status, headers, body = split(engine.handle_bytes(sample_get_request, handler))

        assert status == "HTTP/1.1 200 OK"
        assert headers["Content-Type"] == "application/json; charset=utf-8"
        assert json.loads(body) == {"page": 1}

    def test_handler_return_value_is_sent(self, engine, make_request):
        status, _, body = split(engine.handle_bytes(make_request(), lambda req, res: "hello"))

        assert status == "HTTP/1.1 200 OK"
        assert body == b"hello"

    def test_handler_that_never_writes(self, engine, make_request):
        """An empty response is finished by the engine."""
        status, headers, body = split(engine.handle_bytes(make_request(), lambda req, res: None))

        assert status == "HTTP/1.1 200 OK"
        assert headers["Content-Length"] == "0"
        assert body == b""

    def test_route_binding_passed_through(self, engine, make_request):
        def handler(request, response):
            response.send(f"user {request.param('id').to_int()}")

        raw = engine.handle_bytes(
            make_request("GET", "/users/42?id=7"), handler, RouteBinding("/users/42", {"id": "42"})
        )

        assert split(raw)[2] == b"user 42"

    def test_redispatch(self, engine, parse, make_request):
        """A forward gets a freshly bound Request over the same transport."""
        seen = []

        def target(request, response):
            seen.append(request.path)
            response.send(request.param("id").to_str())

        def forwarder(request, response):
            engine.redispatch(request, response, RouteBinding("/profile/9", {"id": "9"}), target)

        out = engine.dispatch(parse(make_request("GET", "/users/1")), forwarder, RouteBinding("/users/1", {"id": "1"}))

        assert seen == ["/profile/9"]
        assert out.body == b"9"

    def test_connection_close_follows_keep_alive(self, engine):
        """HTTP/1.0 without keep-alive is answered with Connection: close."""
        _, headers_10, _ = split(engine.handle_bytes(b"GET / HTTP/1.0\r\nHost: h\r\n\r\n", lambda req, res: "x"))
        _, headers_11, _ = split(engine.handle_bytes(b"GET / HTTP/1.1\r\nHost: h\r\n\r\n", lambda req, res: "x"))

        assert headers_10["Connection"] == "close"
        assert "Connection" not in headers_11

    def test_server_header_from_config(self, parse, make_request, tmp_path):
        engine = MessageEngine(MessageConfig(tmpdir=tmp_path, server_name="unit/1"))

        _, headers, _ = split(engine.handle_bytes(make_request(), lambda req, res: "x"))

        assert headers["Server"] == "unit/1"


class TestErrorPolicy:
    """Tests for converting failures into status responses."""

    def test_unsupported_media_type_is_415_empty(self, engine, sample_post_request):
        """No parser: 415 with no body."""
        status, _, body = split(engine.handle_bytes(sample_post_request, lambda req, res: req.body(date)))

        assert status == "HTTP/1.1 415 Unsupported Media Type"
        assert body == b""

    def test_not_acceptable_is_406_empty(self, engine, make_request):
        raw = make_request(headers={"Accept": "image/png"})

        status, _, body = split(engine.handle_bytes(raw, lambda req, res: res.send({"a": 1})))

        assert status == "HTTP/1.1 406 Not Acceptable"
        assert body == b""

    def test_validation_error_is_400_with_message(self, engine, make_request):
        raw = make_request("GET", "/?page=abc")

        status, headers, body = split(engine.handle_bytes(raw, lambda req, res: req.param("page").to_int()))

        assert status == "HTTP/1.1 400 Bad Request"
        assert headers["Content-Type"] == "text/plain; charset=utf-8"
        assert b"page" in body

    def test_decode_error_is_400(self, engine, make_request):
        raw = make_request("POST", "/", {"Content-Type": "application/json"}, b"{oops")

        status, _, _ = split(engine.handle_bytes(raw, lambda req, res: req.body(dict)))

        assert status == "HTTP/1.1 400 Bad Request"

    def test_unexpected_error_is_500(self, engine, make_request, caplog):
        def handler(request, response):
            raise KeyError("boom")

        with caplog.at_level(logging.ERROR, logger="httpmessage"):
            status, _, body = split(engine.handle_bytes(make_request(), handler))

        assert status == "HTTP/1.1 500 Internal Server Error"
        assert body == b"Internal Server Error"
        assert any(r.exc_info for r in caplog.records)

    def test_error_after_framing_keeps_response(self, engine, make_request, caplog):
        """A failure mid-body is logged; the framed status is not replaced."""

        def handler(request, response):
            def strategy(writer):
                writer.write("partial")
                raise RuntimeError("disk gone")

            response.status(201).text(strategy)

        with caplog.at_level(logging.ERROR, logger="httpmessage"):
            status, _, body = split(engine.handle_bytes(make_request(), handler))

        assert status == "HTTP/1.1 201 Created"
        assert body == b"partial"
        assert any("framed" in r.getMessage() for r in caplog.records)

    def test_double_send_inside_handler(self, engine, parse, make_request):
        """IllegalState is a programming error: logged, first response kept."""

        def handler(request, response):
            response.send("one")
            response.send("two")

        out = engine.dispatch(parse(make_request()), handler)

        assert out.body == b"one"

    def test_invalid_content_type_is_400(self, engine, make_request):
        raw = make_request("POST", "/", {"Content-Type": "not-a-type"}, b"x")

        status, _, _ = split(engine.handle_bytes(raw, lambda req, res: "unreached"))

        assert status == "HTTP/1.1 400 Bad Request"

    def test_unknown_charset_is_415_before_framing(self, engine, make_request):
        """The handler never runs against an unusable charset."""
        calls = []
        raw = make_request("POST", "/", {"Content-Type": "application/json; charset=bogus"}, b"{}")

        status, headers, body = split(engine.handle_bytes(raw, lambda req, res: calls.append(req)))

        assert status == "HTTP/1.1 415 Unsupported Media Type"
        assert "Content-Type" not in headers
        assert body == b""
        assert calls == []

    def test_negotiate_rejects_unknown_charset(self, engine, parse, make_request):
        transport = parse(make_request("POST", "/", {"Content-Type": "text/plain; charset=bogus"}, b"x"))

        with pytest.raises(UnsupportedMediaType):
            engine.negotiate(transport)

    def test_multipart_unknown_charset_is_400(self, engine, make_request, make_multipart):
        content_type, body = make_multipart({"k": "v"})
        raw = make_request("POST", "/", {"Content-Type": f"{content_type}; charset=bogus"}, body)

        status, headers, _ = split(engine.handle_bytes(raw, lambda req, res: "unreached"))

        assert status == "HTTP/1.1 400 Bad Request"
        assert headers["Connection"] == "close"

    def test_malformed_request_bytes(self, engine):
        status, headers, _ = split(engine.handle_bytes(b"BREW /pot HTTP/1.1\r\n\r\n", lambda req, res: None))

        assert status == "HTTP/1.1 405 Method Not Allowed"
        assert headers["Connection"] == "close"
