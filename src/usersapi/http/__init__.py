"""
=============================================================================
HTTP PROTOCOL LAYER
=============================================================================

Pure functions of bytes and objects; no sockets in here.

    RequestParser   raw bytes → HTTPRequest
    Router          HTTPRequest → handler → HTTPResponse
    HTTPResponse    → bytes via to_bytes()

=============================================================================
"""

from .request import HTTPRequest, RequestParser, HTTPParseError
from .response import (
    HTTPResponse,
    ResponseBuilder,
    ok,                  # 200
    created,             # 201 + Location
    no_content,          # 204
    redirect,            # 30x + Location
    text_response,       # any status, text/plain
    bad_request,         # 400 {"Errors": [...]}
    not_found,           # 404, empty
    method_not_allowed,  # 405 + Allow
    error_response,      # any status, {"error": "..."}
)
from .router import Router, Route, RouteMatch
from .status_codes import HTTPStatus

__all__ = [
    "HTTPRequest",
    "RequestParser",
    "HTTPParseError",

    "HTTPResponse",
    "ResponseBuilder",
    "ok",
    "created",
    "no_content",
    "redirect",
    "text_response",
    "bad_request",
    "not_found",
    "method_not_allowed",
    "error_response",

    "Router",
    "Route",
    "RouteMatch",

    "HTTPStatus",
]
