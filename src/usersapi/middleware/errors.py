"""
Exception handling middleware.

The outermost layer. Whatever escapes the inner stages (a bug in a
handler, a store invariant that blew up, a failure in another middleware)
is logged with its traceback and turned into a plain-text 500, so one bad
request never takes a worker thread, or the process, down with it.

What the client sees depends on the execution mode:

    Development   An unexpected error occurred: <message>
                  Traceback (most recent call last): ...
    otherwise     An unexpected error occurred.
"""

import logging
import traceback

from .base import Middleware, NextHandler
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, text_response
from ..http.status_codes import HTTPStatus


logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "An unexpected error occurred."


class ExceptionHandlingMiddleware(Middleware):
    """
    Converts unhandled exceptions into 500 responses.

    Args:
        expose_details: Put the exception message and traceback in the
            response body. Only for development: tracebacks leak file
            paths and internals.
    """

    def __init__(self, expose_details: bool = False):
        self.expose_details = expose_details

    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        try:
            return next(request)
        except Exception as e:
            logger.exception(f"Unhandled error for {request.method} {request.path}: {e}")
            return text_response(HTTPStatus.INTERNAL_SERVER_ERROR, self._message(e))

    def _message(self, error: Exception) -> str:
        if not self.expose_details:
            return GENERIC_ERROR_MESSAGE
        details = "".join(traceback.format_exception(type(error), error, error.__traceback__))
        return f"An unexpected error occurred: {error}\n{details}"
