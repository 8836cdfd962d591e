"""
Unit tests for URL router.
"""

import pytest

from usersapi.http.router import Router
from usersapi.http.request import HTTPRequest
from usersapi.http.response import HTTPResponse, ResponseBuilder, HTTPStatus


def make_request(method: str, path: str) -> HTTPRequest:
    """Helper to create a request for testing."""
    return HTTPRequest(method=method, path=path)


def dummy_handler(request: HTTPRequest) -> HTTPResponse:
    """Dummy handler for testing."""
    return ResponseBuilder().json({"path": request.path}).build()


class TestRouter:
    """Tests for Router class."""

    def test_add_route(self):
        """Test adding routes."""
        router = Router()
        router.add_route("/users", dummy_handler, method="get")

        routes = router.routes()
        assert len(routes) == 1
        assert routes[0].path == "/users"
        assert routes[0].method == "GET"

    def test_match_static_path(self):
        """Test matching static paths."""
        router = Router()
        router.add_route("/", dummy_handler, method="GET")
        router.add_route("/users", dummy_handler, method="GET")

        assert router.match("GET", "/").route.path == "/"
        assert router.match("GET", "/users").route.path == "/users"
        assert router.match("GET", "/users/").route.path == "/users"

    def test_match_with_method(self):
        """Test method-based routing."""
        router = Router()
        router.add_route("/users", dummy_handler, method="GET")
        router.add_route("/users", dummy_handler, method="POST")

        assert router.match("GET", "/users").route.method == "GET"
        assert router.match("POST", "/users").route.method == "POST"

    def test_match_string_params(self):
        """Untyped parameters are captured as strings."""
        router = Router()
        router.add_route("/users/:id", dummy_handler, method="PUT")

        match = router.match("PUT", "/users/abc")
        assert match is not None
        assert match.params == {"id": "abc"}

    def test_match_int_params(self):
        """Integer-constrained parameters are converted."""
        router = Router()
        router.add_route("/users/:id:int", dummy_handler, method="GET")

        assert router.match("GET", "/users/42").params == {"id": 42}
        assert router.match("GET", "/users/-3").params == {"id": -3}

    def test_int_constraint_rejects_non_digits(self):
        router = Router()
        router.add_route("/users/:id:int", dummy_handler, method="GET")

        assert router.match("GET", "/users/abc") is None
        assert router.match("GET", "/users/1.5") is None

    def test_int_constraint_rejects_non_ascii_digits(self):
        """Only ASCII digits count; other Unicode digits do not match."""
        router = Router()
        router.add_route("/users/:id:int", dummy_handler, method="GET")

        assert router.match("GET", "/users/\u0661") is None
        assert router.match("GET", "/users/\uff11") is None

    def test_unknown_constraint(self):
        with pytest.raises(ValueError):
            Router().add_route("/users/:id:uuid", dummy_handler, method="GET")

    def test_first_registered_wins(self):
        router = Router()
        router.add_route("/users/:id:int", dummy_handler, method="GET", name="typed")
        router.add_route("/users/:id", dummy_handler, method="GET", name="untyped")

        assert router.match("GET", "/users/5").route.name == "typed"
        assert router.match("GET", "/users/x").route.name == "untyped"

    def test_no_match(self):
        """Test when no route matches."""
        router = Router()
        router.add_route("/users", dummy_handler, method="GET")

        assert router.match("GET", "/posts") is None
        assert router.match("POST", "/users") is None  # Wrong method

    def test_get_allowed_methods(self):
        """Test getting allowed methods for a path."""
        router = Router()
        router.add_route("/users", dummy_handler, method="POST")
        router.add_route("/users", dummy_handler, method="GET")
        router.add_route("/users/:id", dummy_handler, method="DELETE")

        assert router.get_allowed_methods("/users") == ["GET", "POST"]
        assert router.get_allowed_methods("/users/1") == ["DELETE"]
        assert router.get_allowed_methods("/posts") == []

    def test_handle_success(self):
        """Test handling a request successfully."""
        router = Router()

        @router.get("/hello")
        def hello(request):
            return ResponseBuilder().text("Hello!").build()

        response = router.handle(make_request("GET", "/hello"))

        assert response.status == HTTPStatus.OK
        assert response.body == b"Hello!"

    def test_handle_not_found(self):
        """Test 404 handling."""
        router = Router()
        router.add_route("/users", dummy_handler, method="GET")

        response = router.handle(make_request("GET", "/posts"))

        assert response.status == HTTPStatus.NOT_FOUND
        assert response.body == b""

    def test_handle_method_not_allowed(self):
        """Test 405 handling."""
        router = Router()
        router.add_route("/users", dummy_handler, method="GET")

        response = router.handle(make_request("POST", "/users"))

        assert response.status == HTTPStatus.METHOD_NOT_ALLOWED
        assert response.headers["Allow"] == "GET"

    def test_non_int_get_with_put_route_is_405(self):
        """A GET that fails the int constraint still matches PUT/DELETE paths."""
        router = Router()
        router.add_route("/users/:id:int", dummy_handler, method="GET")
        router.add_route("/users/:id", dummy_handler, method="PUT")
        router.add_route("/users/:id", dummy_handler, method="DELETE")

        response = router.handle(make_request("GET", "/users/abc"))

        assert response.status == HTTPStatus.METHOD_NOT_ALLOWED
        assert response.headers["Allow"] == "DELETE, PUT"

    def test_path_params_in_request(self):
        """Test that path params are injected into request."""
        router = Router()
        captured_params = {}

        @router.get("/users/:id:int")
        def get_user(request):
            captured_params.update(request.path_params)
            return ResponseBuilder().json(request.path_params).build()

        router.handle(make_request("GET", "/users/42"))

        assert captured_params == {"id": 42}

    def test_handler_exceptions_propagate(self):
        router = Router()

        @router.get("/boom")
        def boom(request):
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            router.handle(make_request("GET", "/boom"))


class TestRouterDecorators:
    """Tests for decorator-style route registration."""

    @pytest.mark.parametrize("method", ["get", "post", "put", "delete"])
    def test_method_decorators(self, method: str):
        """Each decorator registers its own method."""
        router = Router()

        @getattr(router, method)("/test")
        def test_handler(request):
            return ResponseBuilder().text("test").build()

        assert router.routes()[0].method == method.upper()

    def test_decorator_returns_handler(self):
        router = Router()

        def handler(request):
            return ResponseBuilder().text("test").build()

        assert router.get("/x")(handler) is handler


class TestRouterURLGeneration:
    """Tests for URL generation."""

    def test_url_for_static(self):
        """Test URL generation for static routes."""
        router = Router()
        router.add_route("/users", dummy_handler, method="GET", name="list_users")

        assert router.url_for("list_users") == "/users"

    def test_url_for_typed_param(self):
        """Constraints are dropped when building the URL."""
        router = Router()
        router.add_route("/users/:id:int", dummy_handler, method="GET", name="get_user")

        assert router.url_for("get_user", id=3) == "/users/3"

    def test_url_for_unknown(self):
        """Test URL generation for unknown route."""
        assert Router().url_for("nonexistent") is None
