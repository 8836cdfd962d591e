"""
=============================================================================
REQUEST LOGGING MIDDLEWARE
=============================================================================

Writes two lines per request to the ``usersapi.access`` logger:

    2026-10-17 12:00:00 [INFO] usersapi.access: Request: POST /users
    2026-10-17 12:00:00 [INFO] usersapi.access: Response: 201 - {"id": 3, ...}

The first line is written before anything inside the chain runs, so a
request that hangs or crashes still leaves a trace. The second is written
once the inner stages have produced a complete response.

Responses in this server are fully buffered objects (``HTTPResponse.body``
is bytes), so capturing the body costs nothing: the bytes are decoded for
the log line and the very same response object is handed back outward.
Status, headers and body reach the client exactly as the inner stages left
them.

Route the access log somewhere else without touching the code:

    logging.getLogger("usersapi.access").addHandler(file_handler)

=============================================================================
"""

import time
import logging
from typing import Optional

from .base import Middleware, NextHandler
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse


logger = logging.getLogger("usersapi.access")


class RequestLoggingMiddleware(Middleware):
    """
    Logs every request line and every response status and body.

    Args:
        log_level: Level for the request/response lines.
        max_body_length: Truncate logged bodies to this many characters
            (None logs the whole body). Only the log line is truncated.
    """

    def __init__(self, log_level: int = logging.INFO, max_body_length: Optional[int] = None):
        self.log_level = log_level
        self.max_body_length = max_body_length

    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        logger.log(self.log_level, f"Request: {request.method} {request.path}")

        start_time = time.time()

        try:
            response = next(request)
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.error(
                f"Request failed: {request.method} {request.path} "
                f"- {type(e).__name__}: {e} ({duration_ms:.2f}ms)"
            )
            raise

        duration_ms = (time.time() - start_time) * 1000

        logger.log(self.log_level, f"Response: {int(response.status)} - {self._body_text(response)}")
        logger.debug(f"{request.method} {request.path} took {duration_ms:.2f}ms")

        return response

    def _body_text(self, response: HTTPResponse) -> str:
        text = response.text
        if self.max_body_length is not None and len(text) > self.max_body_length:
            return text[:self.max_body_length] + "..."
        return text
