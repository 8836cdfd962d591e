"""
=============================================================================
API KEY AUTHENTICATION MIDDLEWARE
=============================================================================

Every route requires the shared secret in the ``X-API-KEY`` header.

    ┌──────────────────────────┬─────────────────────────────────────────┐
    │ header absent            │ 401  API Key is missing.                 │
    │ header present, wrong    │ 403  Unauthorized access. Invalid API Key│
    │ header matches           │ request continues to the router          │
    └──────────────────────────┴─────────────────────────────────────────┘

Rejected requests stop here: the router never runs, so the store cannot
change as a side effect of an unauthenticated call.

Keys are compared as bytes with ``hmac.compare_digest``, whose running
time does not depend on how many leading characters matched. The parser
decodes header values as ISO-8859-1, so encoding them back that way
recovers the exact bytes the client sent; a non-ASCII key configured as
text matches when the client sends its UTF-8 bytes.

=============================================================================
"""

import hmac
import logging

from .base import Middleware, NextHandler
from ..errors import ConfigError
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, text_response
from ..http.status_codes import HTTPStatus


logger = logging.getLogger(__name__)

API_KEY_HEADER = "X-API-KEY"

MISSING_KEY_MESSAGE = "API Key is missing."
INVALID_KEY_MESSAGE = "Unauthorized access. Invalid API Key."


class ApiKeyMiddleware(Middleware):
    """
    Static shared-secret authentication.

    Args:
        api_key: The expected key. Read once at startup.
        header_name: Request header carrying the key.

    Raises:
        ConfigError: ``api_key`` is empty or missing.
    """

    def __init__(self, api_key: str, header_name: str = API_KEY_HEADER):
        if not api_key:
            raise ConfigError("API Key is not configured.")
        self._api_key = api_key.encode("utf-8")
        self.header_name = header_name

    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        if not request.has_header(self.header_name):
            logger.warning(f"Missing API key: {request.method} {request.path} from {request.client_address[0]}")
            return text_response(HTTPStatus.UNAUTHORIZED, MISSING_KEY_MESSAGE)

        try:
            provided = request.get_header(self.header_name).encode("iso-8859-1")
        except UnicodeEncodeError:
            # cannot have come off the wire
            provided = b""
        if not hmac.compare_digest(provided, self._api_key):
            logger.warning(f"Invalid API key: {request.method} {request.path} from {request.client_address[0]}")
            return text_response(HTTPStatus.FORBIDDEN, INVALID_KEY_MESSAGE)

        return next(request)
