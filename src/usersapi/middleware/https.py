"""
=============================================================================
HTTPS REDIRECTION MIDDLEWARE
=============================================================================

Sends plain-HTTP clients to the same URL over HTTPS.

    GET http://api.local:8080/users?x=1
        → 307 Temporary Redirect
          Location: https://api.local:8443/users?x=1

307 rather than 301/302: a POST /users must be replayed as a POST with the
same body against the HTTPS URL, and 307 is the status that guarantees
that.

A request is already secure when:

    - it arrived on a TLS socket (``request.is_secure``), or
    - a TLS-terminating proxy in front of us says so with
      ``X-Forwarded-Proto: https``

Without a configured HTTPS port there is nowhere to redirect to. The
middleware then logs one warning and lets every request through, so a
development server on plain HTTP keeps working.

=============================================================================
"""

import logging
from typing import Optional
from urllib.parse import quote

from .base import Middleware, NextHandler
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, redirect, error_response
from ..http.status_codes import HTTPStatus


logger = logging.getLogger(__name__)

DEFAULT_HTTPS_PORT = 443


class HttpsRedirectionMiddleware(Middleware):
    """
    Redirects insecure requests to HTTPS.

    Args:
        https_port: Port the HTTPS listener is reachable on. 443 is left out
            of the Location URL. None disables redirection (with a warning).
        status: Redirect status, 307 by default; 308 makes clients cache it.
    """

    def __init__(
        self,
        https_port: Optional[int] = None,
        status: HTTPStatus = HTTPStatus.TEMPORARY_REDIRECT,
    ):
        self.https_port = https_port
        self.status = status
        self._warned = False

    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        if request.scheme == "https":
            return next(request)

        if self.https_port is None:
            if not self._warned:
                self._warned = True
                logger.warning("Failed to determine the https port for redirect.")
            return next(request)

        host = _strip_port(request.host)
        if not host:
            # HTTP/1.0 without Host: no way to build an absolute URL
            return error_response(HTTPStatus.BAD_REQUEST, "Host header is required")

        location = self.build_location(host, request.path, request.query_string)
        logger.debug(f"Redirecting {request.method} {request.path} to {location}")
        return redirect(location, self.status)

    def build_location(self, host: str, path: str, query_string: str = "") -> str:
        port = "" if self.https_port == DEFAULT_HTTPS_PORT else f":{self.https_port}"
        location = f"https://{host}{port}{quote(path, safe='/')}"
        if query_string:
            location += f"?{query_string}"
        return location


def _strip_port(host: str) -> str:
    """
    ``"api.local:8080"`` → ``"api.local"``, ``"[::1]:8080"`` → ``"[::1]"``.
    """
    host = host.strip()
    if host.startswith("["):
        end = host.find("]")
        return host[:end + 1] if end != -1 else host
    return host.split(":", 1)[0]
