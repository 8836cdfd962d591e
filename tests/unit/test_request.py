"""
Unit tests for HTTP request parsing.
"""

from decimal import Decimal

import pytest

from usersapi.http.request import HTTPRequest, RequestParser, HTTPParseError


def parse_request(data: bytes) -> HTTPRequest:
    return RequestParser().parse(data)


class TestRequestParser:
    """Tests for RequestParser class."""

    def test_parse_simple_get(self, sample_get_request: bytes):
        """Test parsing a simple GET request."""
        parser = RequestParser()
        request = parser.parse(sample_get_request, ("127.0.0.1", 12345))

        assert request.method == "GET"
        assert request.path == "/users"
        assert request.version == "HTTP/1.1"
        assert request.client_address == ("127.0.0.1", 12345)
        assert request.is_secure is False

    def test_parse_headers(self, sample_get_request: bytes):
        """Test that headers are parsed correctly."""
        request = parse_request(sample_get_request)

        assert request.host == "localhost:8080"
        assert request.headers["user-agent"] == "pytest"
        assert request.headers["accept"] == "application/json"
        assert request.get_header("X-API-KEY") == "test-key"
        assert request.is_keep_alive is True

    def test_parse_query_string(self, sample_get_request: bytes):
        """The query string is split off the path and kept raw."""
        request = parse_request(sample_get_request)

        assert request.path == "/users"
        assert request.query_string == "page=1&limit=10"

    def test_parse_post_with_body(self, sample_post_request: bytes):
        """Test parsing POST request with JSON body."""
        request = parse_request(sample_post_request)

        assert request.method == "POST"
        assert request.path == "/users"
        assert request.get_header("Content-Type") == "application/json"
        assert request.is_keep_alive is False

        assert request.json == {"name": "Carl", "email": "carl@x.com"}

    def test_parse_secure_flag(self, sample_get_request: bytes):
        """TLS connections mark the request secure."""
        request = RequestParser().parse(sample_get_request, is_secure=True)

        assert request.is_secure is True
        assert request.scheme == "https"

    def test_parse_path_with_special_chars(self):
        """Test URL-encoded path parsing."""
        raw = b"GET /users/J%C3%BCrgen?q=hello%20world HTTP/1.1\r\nHost: test\r\n\r\n"
        request = parse_request(raw)

        assert request.path == "/users/Jürgen"
        assert request.query_string == "q=hello%20world"

    def test_parse_invalid_method(self):
        """Test that invalid methods are rejected."""
        raw = b"INVALID /path HTTP/1.1\r\nHost: test\r\n\r\n"

        with pytest.raises(HTTPParseError) as exc_info:
            parse_request(raw)

        assert exc_info.value.status_code == 405

    def test_parse_unsupported_version(self):
        raw = b"GET / HTTP/2.0\r\nHost: test\r\n\r\n"

        with pytest.raises(HTTPParseError) as exc_info:
            parse_request(raw)

        assert exc_info.value.status_code == 505

    def test_parse_invalid_request_line(self):
        """Test handling of malformed request line."""
        raw = b"GET\r\nHost: test\r\n\r\n"

        with pytest.raises(HTTPParseError) as exc_info:
            parse_request(raw)

        assert exc_info.value.status_code == 400

    def test_parse_missing_terminator(self):
        with pytest.raises(HTTPParseError):
            parse_request(b"GET / HTTP/1.1\r\nHost: test\r\n")

    def test_parse_missing_headers(self):
        """Test parsing request with no headers."""
        raw = b"GET / HTTP/1.1\r\n\r\n"
        request = parse_request(raw)

        assert request.method == "GET"
        assert request.path == "/"
        assert len(request.headers) == 0
        assert request.host == ""

    def test_parse_path_traversal_blocked(self):
        """Test that path traversal attempts are blocked."""
        raw = b"GET /../../../etc/passwd HTTP/1.1\r\nHost: test\r\n\r\n"

        with pytest.raises(HTTPParseError) as exc_info:
            parse_request(raw)

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
        # HTTP/1.0 (Connection: close by default)
        request_10 = parse_request(b"GET / HTTP/1.0\r\nHost: test\r\n\r\n")
        assert request_10.version == "HTTP/1.0"
        assert request_10.is_keep_alive is False

        # HTTP/1.1 (keep-alive by default)
        request_11 = parse_request(b"GET / HTTP/1.1\r\nHost: test\r\n\r\n")
        assert request_11.version == "HTTP/1.1"
        assert request_11.is_keep_alive is True

    def test_content_length_handling(self):
        """Test Content-Length validation."""
        body = b"test body"
        raw = (
            b"POST / HTTP/1.1\r\n"
            b"Content-Length: 9\r\n"
            b"\r\n"
        ) + body

        request = parse_request(raw)
        assert request.headers["content-length"] == "9"
        assert request.body == body

    def test_body_trimmed_to_content_length(self):
        raw = b"POST / HTTP/1.1\r\nContent-Length: 2\r\n\r\n{}GET / HTTP/1.1\r\n\r\n"

        assert parse_request(raw).body == b"{}"

    def test_incomplete_body(self):
        raw = b"POST / HTTP/1.1\r\nContent-Length: 50\r\n\r\n{}"

        with pytest.raises(HTTPParseError):
            parse_request(raw)

    @pytest.mark.parametrize("value", [b"abc", b"-1"])
    def test_invalid_content_length(self, value: bytes):
        raw = b"POST / HTTP/1.1\r\nContent-Length: " + value + b"\r\n\r\n"

        with pytest.raises(HTTPParseError) as exc_info:
            parse_request(raw)

        assert exc_info.value.status_code == 400

    def test_case_insensitive_headers(self):
        """Test that header names are case-insensitive."""
        raw = b"GET / HTTP/1.1\r\nCONTENT-TYPE: text/html\r\n\r\n"
        request = parse_request(raw)

        assert request.headers["content-type"] == "text/html"
        assert request.get_header("Content-Type") == "text/html"
        assert request.get_header("content-type") == "text/html"

    def test_repeated_headers_joined(self):
        raw = b"GET / HTTP/1.1\r\nAccept: a\r\nAccept: b\r\n\r\n"

        assert parse_request(raw).headers["accept"] == "a, b"


class TestHTTPRequest:
    """Tests for HTTPRequest dataclass."""

    def test_get_header_default(self):
        """Test get_header with default value."""
        request = HTTPRequest(method="GET", path="/")

        assert request.get_header("X-Missing") == ""
        assert request.get_header("X-Missing", "default") == "default"

    def test_has_header_with_empty_value(self):
        request = HTTPRequest(method="GET", path="/", headers={"x-api-key": ""})

        assert request.has_header("X-API-KEY") is True
        assert request.has_header("X-Other") is False

    def test_scheme_from_forwarded_proto(self):
        request = HTTPRequest(method="GET", path="/", headers={"x-forwarded-proto": "HTTPS, http"})

        assert request.scheme == "https"

    def test_scheme_defaults_to_http(self):
        assert HTTPRequest(method="GET", path="/").scheme == "http"

    def test_invalid_json_body(self):
        request = HTTPRequest(method="POST", path="/", body=b"{not json")

        with pytest.raises(HTTPParseError):
            request.json

    @pytest.mark.parametrize("body", [b"[" * 100000 + b"]" * 100000, b"\xff\xfe"])
    def test_unparseable_json_is_parse_error(self, body: bytes):
        """Deep nesting and bad UTF-8 both surface as HTTPParseError."""
        request = HTTPRequest(method="POST", path="/", body=body)

        with pytest.raises(HTTPParseError):
            request.json

    def test_huge_integer_parses(self):
        """Integers past int()'s digit limit still parse."""
        request = HTTPRequest(method="POST", path="/", body=b'{"name": ' + b"1" * 5000 + b"}")

        assert request.json["name"] == Decimal("1" * 5000)

    def test_empty_body_json_is_none(self):
        assert HTTPRequest(method="POST", path="/").json is None
