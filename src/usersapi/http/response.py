"""
=============================================================================
HTTP RESPONSE BUILDER
=============================================================================

Builds HTTP/1.1 responses (RFC 7230).

    HTTP/1.1 201 Created\r\n                         ← status line
    Content-Type: application/json; charset=utf-8\r\n
    Location: /users/3\r\n
    Content-Length: 52\r\n                           ← added by to_bytes()
    Date: Sat, 17 Oct 2026 12:00:00 GMT\r\n          ← added by to_bytes()
    Server: usersapi/1.0\r\n                         ← added by to_bytes()
    \r\n
    {"id": 3, "name": "Carl", "email": "carl@x.com"}

The body is always held in memory as bytes. Middleware can read it (the
request logger does) and hand the same object on without touching it.

=============================================================================
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Dict, Any, Union
import json

from .status_codes import HTTPStatus


# Statuses that must not carry a body or Content-Length (RFC 7230 §3.3.2)
_BODYLESS = {HTTPStatus.NO_CONTENT}


@dataclass
class HTTPResponse:
    """
    An HTTP response to be sent to the client.

    Use ResponseBuilder or the helpers at the bottom of this module to
    construct one.
    """

    status: HTTPStatus = HTTPStatus.OK
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    version: str = "HTTP/1.1"

    @property
    def status_line(self) -> str:
        """``HTTP/1.1 200 OK``"""
        return f"{self.version} {int(self.status)} {HTTPStatus(self.status).phrase}"

    @property
    def text(self) -> str:
        """Body decoded as UTF-8 (undecodable bytes replaced)."""
        return self.body.decode("utf-8", errors="replace")

    def json(self) -> Any:
        """Body parsed as JSON. Mostly useful in tests."""
        return json.loads(self.body.decode("utf-8"))

    def set_header(self, name: str, value: str) -> "HTTPResponse":
        self.headers[name] = value
        return self

    def set_body(self, body: Union[str, bytes]) -> "HTTPResponse":
        self.body = body.encode("utf-8") if isinstance(body, str) else body
        return self

    def to_bytes(self, server_name: str = "usersapi/1.0") -> bytes:
        """
        Serialize for ``socket.sendall()``.

        Content-Length, Date and Server are filled in when the handler did
        not set them. A 204 is sent without Content-Length and without a
        body, whatever the handler put there.
        """
        response_headers = dict(self.headers)
        body = self.body

        if self.status in _BODYLESS:
            response_headers.pop("Content-Length", None)
            body = b""
        elif "Content-Length" not in response_headers:
            response_headers["Content-Length"] = str(len(body))

        if "Date" not in response_headers:
            response_headers["Date"] = format_http_date(datetime.now(timezone.utc))

        if "Server" not in response_headers:
            response_headers["Server"] = server_name

        lines = [self.status_line]
        for name, value in response_headers.items():
            lines.append(f"{name}: {value}")
        lines.append("")

        header_bytes = "\r\n".join(lines).encode("utf-8") + b"\r\n"
        return header_bytes + body


class ResponseBuilder:
    """
    Fluent builder for HTTP responses.

        response = (ResponseBuilder()
            .status(HTTPStatus.CREATED)
            .header("Location", "/users/3")
            .json(user.to_dict())
            .build())

    Every method except build() returns ``self``.
    """

    def __init__(self):
        self._status = HTTPStatus.OK
        self._headers: Dict[str, str] = {}
        self._body: bytes = b""

    def status(self, status: HTTPStatus) -> "ResponseBuilder":
        self._status = status
        return self

    def header(self, name: str, value: str) -> "ResponseBuilder":
        self._headers[name] = value
        return self

    def headers(self, headers: Dict[str, str]) -> "ResponseBuilder":
        self._headers.update(headers)
        return self

    def content_type(self, content_type: str) -> "ResponseBuilder":
        return self.header("Content-Type", content_type)

    def body(self, body: Union[str, bytes]) -> "ResponseBuilder":
        self._body = body.encode("utf-8") if isinstance(body, str) else body
        return self

    def text(self, text: str, content_type: str = "text/plain; charset=utf-8") -> "ResponseBuilder":
        self._body = text.encode("utf-8")
        self._headers["Content-Type"] = content_type
        return self

    def json(self, data: Any, pretty: bool = False) -> "ResponseBuilder":
        """
        Serialize ``data`` as the body and set Content-Type.

        ensure_ascii=False keeps non-ASCII names readable on the wire;
        the bytes are UTF-8 either way.
        """
        indent = 2 if pretty else None
        self._body = json.dumps(data, indent=indent, ensure_ascii=False).encode("utf-8")
        self._headers["Content-Type"] = "application/json; charset=utf-8"
        return self

    def redirect(
        self,
        location: str,
        status: HTTPStatus = HTTPStatus.FOUND,
    ) -> "ResponseBuilder":
        """
        Redirect to ``location``.

        302/301 let clients switch POST to GET on the follow-up request;
        307/308 require the same method and body to be replayed, which is
        what an HTTP → HTTPS upgrade of an API call needs.
        """
        self._status = status
        self._headers["Location"] = location
        return self

    def close_connection(self) -> "ResponseBuilder":
        self._headers["Connection"] = "close"
        return self

    def build(self) -> HTTPResponse:
        return HTTPResponse(
            status=self._status,
            headers=self._headers,
            body=self._body,
        )


def format_http_date(dt: datetime) -> str:
    """
    HTTP-date (RFC 7231), always GMT: ``Wed, 01 Jan 2026 12:00:00 GMT``.

    Formatted by hand because strftime's %a/%b follow the process locale.
    """
    days = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
    months = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
              "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

    return (
        f"{days[dt.weekday()]}, "
        f"{dt.day:02d} {months[dt.month - 1]} {dt.year} "
        f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d} GMT"
    )


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================
#
#     return ok(user.to_dict())
#     return created(user.to_dict(), location=f"/users/{user.id}")
#     return not_found()
#
# =============================================================================

def ok(body: Union[str, bytes, dict, list] = "", content_type: Optional[str] = None) -> HTTPResponse:
    """
    200 OK.

    dict/list → JSON, str → text/plain, bytes → raw.
    """
    builder = ResponseBuilder().status(HTTPStatus.OK)

    if isinstance(body, (dict, list)):
        builder.json(body)
    elif isinstance(body, str):
        builder.text(body, content_type or "text/plain; charset=utf-8")
    else:
        builder.body(body)
        if content_type:
            builder.content_type(content_type)

    return builder.build()


def created(body: Union[str, bytes, dict, list] = "", location: Optional[str] = None) -> HTTPResponse:
    """201 Created, with ``Location`` pointing at the new resource."""
    builder = ResponseBuilder().status(HTTPStatus.CREATED)

    if isinstance(body, (dict, list)):
        builder.json(body)
    elif body:
        builder.body(body)

    if location:
        builder.header("Location", location)

    return builder.build()


def no_content() -> HTTPResponse:
    """204 No Content (successful DELETE)."""
    return ResponseBuilder().status(HTTPStatus.NO_CONTENT).build()


def redirect(location: str, status: HTTPStatus = HTTPStatus.FOUND) -> HTTPResponse:
    return ResponseBuilder().redirect(location, status).build()


def text_response(status: HTTPStatus, message: str) -> HTTPResponse:
    """A plain-text response with an arbitrary status (auth failures, 500s)."""
    return ResponseBuilder().status(status).text(message).build()


def bad_request(errors: Any) -> HTTPResponse:
    """
    400 Bad Request with ``{"Errors": errors}``.

    ``errors`` is whatever shape the route renders its violations in:
    a list of messages, or a list of {"Field", "Error"} objects.
    """
    return (ResponseBuilder()
        .status(HTTPStatus.BAD_REQUEST)
        .json({"Errors": errors})
        .build())


def not_found() -> HTTPResponse:
    """404 Not Found with an empty body."""
    return ResponseBuilder().status(HTTPStatus.NOT_FOUND).build()


def method_not_allowed(allowed_methods: list[str]) -> HTTPResponse:
    """405 with the Allow header RFC 7231 requires."""
    return (ResponseBuilder()
        .status(HTTPStatus.METHOD_NOT_ALLOWED)
        .header("Allow", ", ".join(allowed_methods))
        .build())


def error_response(status: HTTPStatus, message: str) -> HTTPResponse:
    """
    JSON ``{"error": message}``.

    Used for transport-level failures (parse errors, timeouts, overload)
    that happen before a request reaches the middleware chain.
    """
    return ResponseBuilder().status(status).json({"error": message}).build()
