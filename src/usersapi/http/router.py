"""
=============================================================================
URL ROUTER
=============================================================================

Maps (method, path) to a handler function.

    ┌─────────────────────────────────────────────────────────────────────┐
    │   Registered routes                                                  │
    │   GET     /                    → hello                               │
    │   GET     /users               → list_users                          │
    │   GET     /users/:id:int       → get_user                            │
    │   POST    /users               → create_user                         │
    │   PUT     /users/:id           → update_user                         │
    │   DELETE  /users/:id           → delete_user                         │
    │                                                                      │
    │   GET /users/7     → get_user, path_params={"id": 7}                 │
    │   GET /users/abc   → no GET match; PUT/DELETE match the path → 405   │
    │   GET /posts       → nothing matches the path → 404                  │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
PATTERN SYNTAX
=============================================================================

    /users          static segment, exact match
    /:id            one path segment, captured as a string
    /:id:int        one path segment of digits (optional leading "-"),
                    captured and converted to int; anything else does not
                    match the route at all

First registered, first matched.

=============================================================================
"""

from dataclasses import dataclass, field
from typing import Callable, Optional, Dict, Any, List
import re

from .request import HTTPRequest
from .response import HTTPResponse, not_found, method_not_allowed


Handler = Callable[[HTTPRequest], HTTPResponse]

# constraint name → (regex for the segment, converter)
_CONVERTERS: Dict[str, tuple[str, Callable[[str], Any]]] = {
    "int": (r"-?[0-9]+", int),
    "str": (r"[^/]+", str),
}


@dataclass
class Route:
    """A URL pattern bound to a handler."""

    path: str
    method: str
    handler: Handler
    name: Optional[str] = None

    _pattern: Optional[re.Pattern] = field(default=None, repr=False)
    _converters: Dict[str, Callable[[str], Any]] = field(default_factory=dict, repr=False)


@dataclass
class RouteMatch:
    """A matched route plus its converted path parameters."""

    route: Route
    params: Dict[str, Any]


class Router:
    """
    HTTP request router with typed path parameters.

        router = Router()

        @router.get("/users/:id:int", name="get_user")
        def get_user(request):
            user_id = request.path_params["id"]     # already an int
            ...

        router.url_for("get_user", id=3)            # "/users/3"
    """

    def __init__(self):
        self._routes: List[Route] = []
        self._named_routes: Dict[str, Route] = {}

    def add_route(
        self,
        path: str,
        handler: Handler,
        method: str,
        name: Optional[str] = None,
    ) -> Route:
        pattern, converters = self._compile_pattern(path)

        route = Route(
            path=path,
            method=method.upper(),
            handler=handler,
            name=name,
            _pattern=pattern,
            _converters=converters,
        )
        self._routes.append(route)

        if name:
            self._named_routes[name] = route

        return route

    def _compile_pattern(self, path: str) -> tuple[re.Pattern, Dict[str, Callable[[str], Any]]]:
        """
        Compile a route pattern.

            "/users/:id:int"  →  ^/users/(?P<id>-?[0-9]+)$ , {"id": int}
        """
        converters: Dict[str, Callable[[str], Any]] = {}
        regex_parts = ["^"]

        for segment in path.split("/"):
            if not segment:
                continue

            regex_parts.append("/")

            if segment.startswith(":"):
                param_name, _, constraint = segment[1:].partition(":")
                try:
                    segment_regex, converter = _CONVERTERS[constraint or "str"]
                except KeyError:
                    raise ValueError(f"Unknown route constraint {constraint!r} in {path}")
                converters[param_name] = converter
                regex_parts.append(f"(?P<{param_name}>{segment_regex})")

            else:
                regex_parts.append(re.escape(segment))

        if len(regex_parts) == 1:
            regex_parts.append("/")
        regex_parts.append("$")
        return re.compile("".join(regex_parts)), converters

    @staticmethod
    def _normalize(path: str) -> str:
        return "/" + path.strip("/") if path != "/" else "/"

    def match(self, method: str, path: str) -> Optional[RouteMatch]:
        """First route whose method and pattern both match, or None."""
        path = self._normalize(path)

        for route in self._routes:
            if route.method != method.upper():
                continue

            match = route._pattern.match(path)
            if not match:
                continue

            try:
                params = {
                    name: route._converters[name](value)
                    for name, value in match.groupdict().items()
                }
            except ValueError:
                # e.g. an int segment past the interpreter's digit limit
                continue
            return RouteMatch(route=route, params=params)

        return None

    def get_allowed_methods(self, path: str) -> List[str]:
        """Methods registered for ``path``, for the 405 Allow header."""
        path = self._normalize(path)
        methods = set()

        for route in self._routes:
            if route._pattern.match(path):
                methods.add(route.method)

        return sorted(methods)

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        """
        Dispatch ``request``.

        This is the innermost stage of the middleware pipeline; exceptions
        raised by handlers propagate out of here untouched.
        """
        match = self.match(request.method, request.path)

        if match:
            request.path_params = match.params
            return match.route.handler(request)

        allowed = self.get_allowed_methods(request.path)
        if allowed:
            return method_not_allowed(allowed)

        return not_found()

    # =========================================================================
    # DECORATORS
    # =========================================================================

    def route(
        self,
        path: str,
        method: str,
        name: Optional[str] = None,
    ) -> Callable[[Handler], Handler]:
        def decorator(handler: Handler) -> Handler:
            self.add_route(path, handler, method, name)
            return handler
        return decorator

    def get(self, path: str, name: Optional[str] = None) -> Callable[[Handler], Handler]:
        return self.route(path, "GET", name)

    def post(self, path: str, name: Optional[str] = None) -> Callable[[Handler], Handler]:
        return self.route(path, "POST", name)

    def put(self, path: str, name: Optional[str] = None) -> Callable[[Handler], Handler]:
        return self.route(path, "PUT", name)

    def delete(self, path: str, name: Optional[str] = None) -> Callable[[Handler], Handler]:
        return self.route(path, "DELETE", name)

    # =========================================================================
    # UTILITY
    # =========================================================================

    def url_for(self, name: str, **params: Any) -> Optional[str]:
        """
        Reverse routing: ``url_for("get_user", id=3)`` → ``"/users/3"``.

        Returns None for an unknown route name.
        """
        route = self._named_routes.get(name)
        if not route:
            return None

        segments = []
        for segment in route.path.split("/"):
            if segment.startswith(":"):
                param_name = segment[1:].partition(":")[0]
                segment = str(params[param_name])
            segments.append(segment)

        return "/".join(segments) or "/"

    def routes(self) -> List[Route]:
        return list(self._routes)

    def print_routes(self) -> None:
        print("\nRegistered Routes:")
        print("-" * 60)
        for route in self._routes:
            print(f"  {route.method:8} {route.path}")
        print("-" * 60)
