"""
Unit tests for HTTP request parsing and reading.
"""

import pytest

from pagejar.http.request import (
    HTTPRequest,
    RequestParser,
    RequestReader,
    HTTPParseError,
    parse_request,
)


class TestRequestParser:
    """Tests for RequestParser and parse_request()."""

    def test_parse_simple_get(self, sample_get_request: bytes):
        """Test parsing a simple GET request."""
        parser = RequestParser()
        lines = sample_get_request.decode().split("\r\n")[:-2]
        request = parser.parse_lines(lines, ("127.0.0.1", 12345))

        assert request.method == "GET"
        assert request.path == "/slides/intro.html"
        assert request.target == "/slides/intro.html?print-pdf"
        assert request.version == "HTTP/1.1"
        assert request.client_address == ("127.0.0.1", 12345)

    def test_parse_headers(self, sample_get_request: bytes):
        """Test that headers are parsed correctly."""
        request = parse_request(sample_get_request)

        assert request.host == "localhost:8080"
        assert request.header("User-Agent") == "pytest"
        assert request.headers["accept"] == "text/html"
        assert request.is_keep_alive is True

    def test_header_lookup_is_case_insensitive(self):
        """Test that header names are normalized on construction."""
        request = HTTPRequest("GET", "/", "/", headers={"If-None-Match": '"abc"'})

        assert request.header("if-none-match") == '"abc"'
        assert request.header("IF-NONE-MATCH") == '"abc"'
        assert request.header("missing", "-") == "-"

    def test_request_is_immutable(self, sample_get_request: bytes):
        """Test that neither the request nor its headers can change."""
        request = parse_request(sample_get_request)

        with pytest.raises(AttributeError):
            request.path = "/other"
        with pytest.raises(TypeError):
            request.headers["host"] = "evil"

    def test_path_is_decoded(self):
        """Test URL-encoded path decoding, query dropped."""
        request = parse_request(b"GET /my%20slides/a.html?x=1#top HTTP/1.1\r\n\r\n")

        assert request.path == "/my slides/a.html"

    def test_double_slash_stays_a_path(self):
        """Test that "//x" is not taken for a network location."""
        request = parse_request(b"GET //x/y.html HTTP/1.1\r\n\r\n")

        assert request.path == "//x/y.html"

    @pytest.mark.parametrize("target,path", [
        ("http://example.com/a%20b.html?q=1", "/a b.html"),
        ("http://example.com", "/"),
        ("http://example.com:8080/deck/", "/deck/"),
    ])
    def test_absolute_form_target(self, target: str, path: str):
        """Test that absolute http:// targets keep only their path."""
        request = parse_request(f"GET {target} HTTP/1.1\r\n\r\n".encode())

        assert request.path == path

    def test_unknown_method_is_not_a_parse_error(self):
        """Test that any method token parses; the handler answers 501."""
        request = parse_request(b"DELETE /index.html HTTP/1.1\r\n\r\n")

        assert request.method == "DELETE"

    @pytest.mark.parametrize("raw", [
        b"GET /\r\n\r\n",
        b"GET / HTTP/1.1 extra\r\n\r\n",
        b"GET  / HTTP/1.1\r\n\r\n",
        b"GET index.html HTTP/1.1\r\n\r\n",
        b"GET https://example.com/ HTTP/1.1\r\n\r\n",
        b"GET / HTTP/2.0\r\n\r\n",
        b"GET / FTP/1.0\r\n\r\n",
    ])
    def test_malformed_request_line(self, raw: bytes):
        """Test that malformed request lines are rejected."""
        with pytest.raises(HTTPParseError):
            parse_request(raw)

    def test_empty_request(self):
        """Test that a request with no lines is rejected."""
        with pytest.raises(HTTPParseError):
            parse_request(b"")

    @pytest.mark.parametrize("header", [b"NoColonHere", b": value", b"   : value"])
    def test_malformed_header(self, header: bytes):
        """Test that header lines without a name are rejected."""
        with pytest.raises(HTTPParseError):
            parse_request(b"GET / HTTP/1.1\r\n" + header + b"\r\n\r\n")

    def test_duplicate_headers_are_joined(self):
        """Test that repeated headers are combined with a comma."""
        request = parse_request(
            b"GET / HTTP/1.1\r\n"
            b"Accept: text/html\r\n"
            b"accept: image/png\r\n"
            b"\r\n"
        )

        assert request.header("accept") == "text/html, image/png"

    def test_folded_header(self):
        """Test obsolete line folding continues the previous header."""
        request = parse_request(
            b"GET / HTTP/1.1\r\n"
            b"X-Long: first\r\n"
            b"   second\r\n"
            b"\r\n"
        )

        assert request.header("x-long") == "first second"

    def test_value_keeps_colons(self):
        """Test that only the first colon separates name and value."""
        request = parse_request(b"GET / HTTP/1.1\r\nHost: localhost:8080\r\n\r\n")

        assert request.host == "localhost:8080"

    def test_default_host(self):
        """Test that a missing Host header falls back to the server address."""
        request = parse_request(b"GET /a.html HTTP/1.1\r\n\r\n", default_host="127.0.0.1:9000")

        assert request.host == "127.0.0.1:9000"
        assert request.url == "http://127.0.0.1:9000/a.html"

    @pytest.mark.parametrize("version,connection,expected", [
        ("HTTP/1.1", None, True),
        ("HTTP/1.1", "close", False),
        ("HTTP/1.1", "Close", False),
        ("HTTP/1.0", None, False),
        ("HTTP/1.0", "keep-alive", True),
        ("HTTP/1.0", "Keep-Alive", True),
    ])
    def test_keep_alive(self, version, connection, expected):
        """Test keep-alive defaults per protocol version."""
        headers = {"Connection": connection} if connection else {}
        request = HTTPRequest("GET", "/", "/", version=version, headers=headers)

        assert request.is_keep_alive is expected


class TestRequestReader:
    """Tests for RequestReader over a line source."""

    def test_reads_back_to_back_requests(self, fake_connection):
        """Test two requests on one connection, then end of stream."""
        conn = fake_connection(
            b"GET /a.html HTTP/1.1\r\nHost: h\r\n\r\n"
            b"HEAD /b.html HTTP/1.1\r\nHost: h\r\n\r\n"
        )
        reader = RequestReader(conn)

        first = reader.read()
        second = reader.read()

        assert (first.method, first.path) == ("GET", "/a.html")
        assert (second.method, second.path) == ("HEAD", "/b.html")
        assert reader.read() is None

    def test_client_address_from_connection(self, fake_connection):
        """Test that the peer address is carried onto the request."""
        conn = fake_connection(b"GET / HTTP/1.1\r\n\r\n", address=("192.0.2.7", 5555))

        request = RequestReader(conn).read()

        assert request.client_address == ("192.0.2.7", 5555)

    def test_default_host_applied(self, fake_connection):
        """Test that the reader passes its default host to the parser."""
        conn = fake_connection(b"GET / HTTP/1.1\r\n\r\n")

        request = RequestReader(conn, default_host="127.0.0.1:8080").read()

        assert request.host == "127.0.0.1:8080"

    def test_one_leading_blank_line_is_skipped(self, fake_connection):
        """Test that a stray CRLF before the request line is tolerated."""
        conn = fake_connection(b"\r\nGET /a.html HTTP/1.1\r\n\r\n")

        request = RequestReader(conn).read()

        assert request.path == "/a.html"

    def test_two_blank_lines_end_the_connection(self, fake_connection):
        """Test that a second blank line means no further request."""
        conn = fake_connection(b"\r\n\r\nGET /a.html HTTP/1.1\r\n\r\n")

        assert RequestReader(conn).read() is None

    def test_eof_before_request(self, fake_connection):
        """Test that a clean EOF returns None."""
        assert RequestReader(fake_connection(b"")).read() is None

    def test_eof_mid_request(self, fake_connection):
        """Test that a truncated head is a parse error."""
        conn = fake_connection(b"GET / HTTP/1.1\r\nHost: h\r\n")

        with pytest.raises(HTTPParseError):
            RequestReader(conn).read()

    def test_line_too_long(self, fake_connection):
        """Test that an over-long line becomes a parse error."""
        conn = fake_connection(b"GET /" + b"a" * 300 + b" HTTP/1.1\r\n\r\n")

        with pytest.raises(HTTPParseError):
            RequestReader(conn, max_line_size=256).read()

    def test_too_many_headers(self, fake_connection):
        """Test the header line limit."""
        headers = b"".join(f"X-{i}: v\r\n".encode() for i in range(3))
        conn = fake_connection(b"GET / HTTP/1.1\r\n" + headers + b"\r\n")

        with pytest.raises(HTTPParseError):
            RequestReader(conn, max_header_lines=2).read()

    def test_header_limit_is_inclusive(self, fake_connection):
        """Test that exactly max_header_lines headers are accepted."""
        headers = b"".join(f"X-{i}: v\r\n".encode() for i in range(2))
        conn = fake_connection(b"GET / HTTP/1.1\r\n" + headers + b"\r\n")

        request = RequestReader(conn, max_header_lines=2).read()

        assert request.header("x-1") == "v"
