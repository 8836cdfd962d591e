"""
=============================================================================
MIDDLEWARE
=============================================================================

Cross-cutting request processing, composed around the router in this
order (outermost first):

    ExceptionHandlingMiddleware   unhandled fault → 500
    HttpsRedirectionMiddleware    plain HTTP → 307 to https://
    RequestLoggingMiddleware      "Request: ..." / "Response: ..."
    ApiKeyMiddleware              X-API-KEY → 401 / 403

=============================================================================
"""

from .base import Middleware, MiddlewarePipeline, NextHandler
from .errors import ExceptionHandlingMiddleware
from .https import HttpsRedirectionMiddleware
from .logging import RequestLoggingMiddleware
from .auth import ApiKeyMiddleware

__all__ = [
    "Middleware",
    "MiddlewarePipeline",
    "NextHandler",

    "ExceptionHandlingMiddleware",
    "HttpsRedirectionMiddleware",
    "RequestLoggingMiddleware",
    "ApiKeyMiddleware",
]
