"""
=============================================================================
HTTP REQUEST PARSER
=============================================================================

Parses raw HTTP/1.1 request bytes into HTTPRequest objects (RFC 7230).

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     HTTP REQUEST STRUCTURE                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │    PUT /users/1?notify=1 HTTP/1.1\r\n        ← request line         │
    │    Host: localhost:8080\r\n                  ← headers              │
    │    X-API-KEY: s3cret\r\n                                            │
    │    Content-Type: application/json\r\n                               │
    │    Content-Length: 44\r\n                                           │
    │    \r\n                                      ← blank line           │
    │    {"name": "Al", "email": "al@example.com"} ← body                 │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Header names are case-insensitive, so they are normalised to lowercase at
parse time. ``request.get_header("X-API-KEY")`` and
``request.headers["x-api-key"]`` see the same value.

=============================================================================
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional, Dict, Any
from urllib.parse import urlparse, unquote
import re
import json

from ..errors import UsersApiError


class HTTPParseError(UsersApiError):
    """
    Raised when HTTP request parsing fails.

    Carries the status code that should be returned to the client:

        400 Bad Request                - Malformed request syntax
        405 Method Not Allowed         - Unknown method
        413 Payload Too Large          - Request exceeds size limit
        505 HTTP Version Not Supported - Unknown HTTP version
    """

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class HTTPRequest:
    """
    A parsed HTTP request.

    Attributes:
        method:         GET, POST, PUT, DELETE, ...
        path:           Request path without the query string.
        version:        "HTTP/1.1" or "HTTP/1.0".
        headers:        Header name (lowercase) → value.
        query_string:   The raw query string, kept for redirects.
        body:           Raw body bytes (exactly Content-Length bytes).
        path_params:    Filled in by the router, e.g. {"id": 42}.
        client_address: (ip, port) of the peer.
        is_secure:      True when the request arrived over TLS.
    """

    method: str
    path: str
    version: str = "HTTP/1.1"
    headers: Dict[str, str] = field(default_factory=dict)
    query_string: str = ""
    body: bytes = b""
    path_params: Dict[str, Any] = field(default_factory=dict)
    client_address: tuple[str, int] = ("", 0)
    is_secure: bool = False

    # Lazily computed
    _body_json: Optional[Any] = field(default=None, repr=False)

    @property
    def host(self) -> str:
        return self.headers.get("host", "")

    @property
    def scheme(self) -> str:
        """
        "https" or "http".

        Behind a TLS-terminating proxy the socket is plain, so the
        X-Forwarded-Proto header set by the proxy wins when present.
        """
        forwarded = self.headers.get("x-forwarded-proto", "")
        if forwarded:
            return forwarded.split(",")[0].strip().lower()
        return "https" if self.is_secure else "http"

    @property
    def json(self) -> Any:
        """
        The body parsed as JSON (parsed once, then cached).

        Integers are parsed as ``Decimal``, which has no digit limit.

        Raises:
            HTTPParseError: If the body is not valid UTF-8 JSON or nests
                too deeply.
        """
        if self._body_json is None and self.body:
            try:
                self._body_json = json.loads(self.body.decode("utf-8"), parse_int=Decimal)
            except (ValueError, RecursionError) as e:
                # JSONDecodeError and UnicodeDecodeError are ValueErrors
                raise HTTPParseError(f"Invalid JSON body: {e}")
        return self._body_json

    @property
    def is_keep_alive(self) -> bool:
        """
        HTTP/1.1 defaults to keep-alive unless "Connection: close";
        HTTP/1.0 defaults to close unless "Connection: keep-alive".
        """
        connection = self.headers.get("connection", "").lower()
        if self.version == "HTTP/1.1":
            return connection != "close"
        return connection == "keep-alive"

    def get_header(self, name: str, default: str = "") -> str:
        """Case-insensitive header lookup."""
        return self.headers.get(name.lower(), default)

    def has_header(self, name: str) -> bool:
        """True if the header was sent at all, even with an empty value."""
        return name.lower() in self.headers


class RequestParser:
    """
    Parses raw HTTP request bytes into HTTPRequest objects.

        1. Size check               → 413 if too large
        2. Split at \\r\\n\\r\\n    → 400 if no terminator
        3. Request line             → 400 / 405 / 505
        4. Headers                  → lowercase names, repeats joined by ", "
        5. Body                     → exactly Content-Length bytes

    Paths containing ".." are rejected outright.
    """

    VALID_METHODS = {
        "GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS",
    }

    REQUEST_LINE_PATTERN = re.compile(r"^([A-Z]+) ([^ ]+) (HTTP/\d\.\d)$")
    HEADER_PATTERN = re.compile(r"^([^:]+):\s*(.*)$")

    def __init__(self, max_request_size: int = 1024 * 1024):
        self.max_request_size = max_request_size

    def parse(
        self,
        data: bytes,
        client_address: tuple[str, int] = ("", 0),
        is_secure: bool = False,
    ) -> HTTPRequest:
        """
        Parse raw HTTP request data.

        Args:
            data: Raw request bytes as read by Connection.read_request().
            client_address: Peer (ip, port), carried through for logging.
            is_secure: Whether the bytes came off a TLS socket.

        Raises:
            HTTPParseError: If the request is malformed.
        """
        if len(data) > self.max_request_size:
            raise HTTPParseError(
                f"Request too large: {len(data)} bytes",
                status_code=413,
            )

        header_end = data.find(b"\r\n\r\n")
        if header_end == -1:
            raise HTTPParseError("Incomplete request: no header terminator")

        header_section = data[:header_end].decode("iso-8859-1")
        body = data[header_end + 4:]

        lines = header_section.split("\r\n")
        method, path, query_string, version = self._parse_request_line(lines[0])
        headers = self._parse_headers(lines[1:])

        try:
            content_length = int(headers.get("content-length", 0))
        except ValueError:
            raise HTTPParseError(
                f"Invalid Content-Length: {headers['content-length']!r}"
            )
        if content_length < 0:
            raise HTTPParseError("Invalid Content-Length: negative")

        if len(body) < content_length:
            raise HTTPParseError(
                f"Incomplete body: expected {content_length} bytes, got {len(body)}"
            )
        body = body[:content_length]

        return HTTPRequest(
            method=method,
            path=path,
            version=version,
            headers=headers,
            query_string=query_string,
            body=body,
            client_address=client_address,
            is_secure=is_secure,
        )

    def _parse_request_line(self, line: str) -> tuple[str, str, str, str]:
        """
        METHOD SP REQUEST-URI SP HTTP-VERSION

        Returns:
            (method, decoded path, raw query string, version)
        """
        match = self.REQUEST_LINE_PATTERN.match(line)
        if not match:
            raise HTTPParseError(f"Invalid request line: {line}")

        method, uri, version = match.groups()

        if method not in self.VALID_METHODS:
            raise HTTPParseError(f"Invalid method: {method}", status_code=405)

        if version not in ("HTTP/1.0", "HTTP/1.1"):
            raise HTTPParseError(
                f"Unsupported HTTP version: {version}",
                status_code=505,
            )

        parsed = urlparse(uri)
        path = unquote(parsed.path) or "/"

        if ".." in path:
            raise HTTPParseError("Invalid path: contains ..", status_code=400)

        return method, path, parsed.query, version

    def _parse_headers(self, lines: list[str]) -> Dict[str, str]:
        headers: Dict[str, str] = {}
        current_name = None

        for line in lines:
            if not line:
                continue

            # Obsolete line folding: continuation of the previous header
            if line[0] in (" ", "\t"):
                if current_name is not None:
                    headers[current_name] += " " + line.strip()
                continue

            match = self.HEADER_PATTERN.match(line)
            if not match:
                continue

            name, value = match.groups()
            name = name.strip().lower()
            value = value.strip()
            current_name = name

            if name in headers:
                headers[name] += ", " + value
            else:
                headers[name] = value

        return headers
