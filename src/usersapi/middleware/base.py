"""
=============================================================================
MIDDLEWARE INTERFACE
=============================================================================

Chain of responsibility. Each middleware gets the request and a ``next``
callable; it may answer on its own (short-circuit) or call ``next`` and
work on the response that comes back.

    pipeline.add(ExceptionHandlingMiddleware(...))    # outermost
    pipeline.add(HttpsRedirectionMiddleware(...))
    pipeline.add(RequestLoggingMiddleware())
    pipeline.add(ApiKeyMiddleware(...))               # innermost
    handler = pipeline.wrap(router.handle)

    ┌─────────────────────────────────────────────────────────────────────┐
    │ ExceptionHandling                                                    │
    │  ┌───────────────────────────────────────────────────────────────┐  │
    │  │ HttpsRedirection ── plain HTTP? ──► 307, stop                  │  │
    │  │  ┌─────────────────────────────────────────────────────────┐  │  │
    │  │  │ RequestLogging    "Request: ..."  /  "Response: ..."     │  │  │
    │  │  │  ┌───────────────────────────────────────────────────┐  │  │  │
    │  │  │  │ ApiKey ── no key? 401 ── wrong key? 403 ── stop    │  │  │  │
    │  │  │  │  ┌─────────────────────────────────────────────┐  │  │  │  │
    │  │  │  │  │ router.handle → handler → UserStore          │  │  │  │  │
    │  │  │  │  └─────────────────────────────────────────────┘  │  │  │  │
    │  │  │  └───────────────────────────────────────────────────┘  │  │  │
    │  │  └─────────────────────────────────────────────────────────┘  │  │
    │  └───────────────────────────────────────────────────────────────┘  │
    └─────────────────────────────────────────────────────────────────────┘

A 401/403 still shows up in the access log, because logging sits outside
auth. A fault anywhere inside is turned into a 500 by the outermost layer.

=============================================================================
"""

from abc import ABC, abstractmethod
from typing import Callable, Iterator, List
import logging

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse


logger = logging.getLogger(__name__)


# The next middleware, or the router at the end of the chain
NextHandler = Callable[[HTTPRequest], HTTPResponse]


class Middleware(ABC):
    """
    Base class for middleware.

        class TimingMiddleware(Middleware):
            def __call__(self, request, next):
                start = time.perf_counter()
                response = next(request)
                response.set_header("X-Elapsed", f"{time.perf_counter() - start:.4f}")
                return response

    Instances are shared by every worker thread, so per-request state
    belongs in locals, not on ``self``.
    """

    @abstractmethod
    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        """Handle ``request``, calling ``next(request)`` unless short-circuiting."""

    @property
    def name(self) -> str:
        return self.__class__.__name__


class MiddlewarePipeline:
    """
    An ordered list of middleware, composed once into a single callable.

    First added is outermost: it sees the request first and the response
    last.
    """

    def __init__(self):
        self._middleware: List[Middleware] = []

    def add(self, middleware: Middleware) -> "MiddlewarePipeline":
        self._middleware.append(middleware)
        logger.debug(f"Added middleware: {middleware.name}")
        return self

    def use(self, *middleware: Middleware) -> "MiddlewarePipeline":
        for mw in middleware:
            self.add(mw)
        return self

    def wrap(self, handler: NextHandler) -> NextHandler:
        """
        Compose the chain around ``handler``.

        [A, B, C] wraps from the inside out: C(handler), then B, then A,
        giving A → B → C → handler.
        """
        current = handler
        for middleware in reversed(self._middleware):
            current = self._bind(middleware, current)
        return current

    @staticmethod
    def _bind(middleware: Middleware, next_handler: NextHandler) -> NextHandler:
        def wrapped(request: HTTPRequest) -> HTTPResponse:
            return middleware(request, next_handler)
        return wrapped

    def __len__(self) -> int:
        return len(self._middleware)

    def __iter__(self) -> Iterator[Middleware]:
        return iter(self._middleware)
