"""
=============================================================================
USER ROUTES
=============================================================================

    GET     /               200 text "Hello, world!"
    GET     /users          200 [user, ...]
    GET     /users/:id:int  200 user | 404
    POST    /users          201 user + Location | 400 {"Errors": ["...", ...]}
    PUT     /users/:id      200 user | 404 | 400 {"Errors": [{"Field", "Error"}, ...]}
    DELETE  /users/:id      204 | 404

Not-found and validation failures are answered here, from the store's
UserNotFound and ValidationFailed. Anything else a handler raises is left
to ExceptionHandlingMiddleware.

The two error body shapes differ on purpose: existing clients of POST read
a flat list of messages, existing clients of PUT read field/error pairs.
Both are rendered from the same list of Violation objects.

=============================================================================
"""

import logging
from typing import Any, Dict, List, Optional
import re

from ..errors import UsersApiError, UserNotFound, ValidationFailed
from ..http.request import HTTPRequest, HTTPParseError
from ..http.response import HTTPResponse, ok, created, no_content, not_found, bad_request
from ..http.router import Router
from .models import User
from .store import UserStore
from .validation import Violation


logger = logging.getLogger(__name__)

GREETING = "Hello, world!"

EMPTY_BODY_MESSAGE = "A non-empty request body is required."
INVALID_JSON_MESSAGE = "The request body is not valid JSON."

_INT_PATTERN = re.compile(r"-?[0-9]+")


class InvalidRequest(UsersApiError):
    """A request that cannot reach the store at all (bad id, bad body)."""

    def __init__(self, violation: Violation):
        super().__init__(violation.message)
        self.violations = [violation]


def messages(violations: List[Violation]) -> List[str]:
    """``["Name is required.", ...]``"""
    return [v.message for v in violations]


def field_errors(violations: List[Violation]) -> List[Dict[str, Optional[str]]]:
    """``[{"Field": "Name", "Error": "Name is required."}, ...]``"""
    return [
        {"Field": v.field.capitalize() if v.field else None, "Error": v.message}
        for v in violations
    ]


def parse_id(request: HTTPRequest) -> int:
    raw = request.path_params["id"]
    invalid = InvalidRequest(Violation("id", f"The value '{raw}' is not valid for id."))
    if not _INT_PATTERN.fullmatch(raw):
        raise invalid
    try:
        return int(raw)
    except ValueError:
        # too many digits to convert
        raise invalid


def parse_user(request: HTTPRequest) -> User:
    """Turn a JSON object body into an unsaved User."""
    if not request.body:
        raise InvalidRequest(Violation(None, EMPTY_BODY_MESSAGE))

    try:
        payload: Any = request.json
    except HTTPParseError:
        raise InvalidRequest(Violation(None, INVALID_JSON_MESSAGE))

    if not isinstance(payload, dict):
        raise InvalidRequest(Violation(None, INVALID_JSON_MESSAGE))

    return User.from_payload(payload)


class UserHandlers:
    """
    The user endpoints, bound to one store.

        handlers = UserHandlers(UserStore.seeded(), router)
        handlers.register()
    """

    def __init__(self, store: UserStore, router: Router):
        self.store = store
        self.router = router

    def register(self) -> "UserHandlers":
        self.router.get("/")(self.hello)
        self.router.get("/users", name="list_users")(self.list_users)
        self.router.get("/users/:id:int", name="get_user")(self.get_user)
        self.router.post("/users", name="create_user")(self.create_user)
        self.router.put("/users/:id", name="update_user")(self.update_user)
        self.router.delete("/users/:id", name="delete_user")(self.delete_user)
        return self

    def hello(self, request: HTTPRequest) -> HTTPResponse:
        return ok(GREETING)

    def list_users(self, request: HTTPRequest) -> HTTPResponse:
        return ok([user.to_dict() for user in self.store.list()])

    def get_user(self, request: HTTPRequest) -> HTTPResponse:
        try:
            user = self.store.get(request.path_params["id"])
        except UserNotFound:
            return not_found()
        return ok(user.to_dict())

    def create_user(self, request: HTTPRequest) -> HTTPResponse:
        try:
            user = self.store.create(parse_user(request))
        except (InvalidRequest, ValidationFailed) as e:
            return bad_request(messages(e.violations))

        logger.info(f"User {user.id} created")
        return created(user.to_dict(), location=self.router.url_for("get_user", id=user.id))

    def update_user(self, request: HTTPRequest) -> HTTPResponse:
        try:
            user = self.store.update(parse_id(request), parse_user(request))
        except UserNotFound:
            return not_found()
        except (InvalidRequest, ValidationFailed) as e:
            return bad_request(field_errors(e.violations))

        logger.info(f"User {user.id} updated")
        return ok(user.to_dict())

    def delete_user(self, request: HTTPRequest) -> HTTPResponse:
        try:
            user_id = parse_id(request)
            self.store.delete(user_id)
        except UserNotFound:
            return not_found()
        except InvalidRequest as e:
            return bad_request(messages(e.violations))

        logger.info(f"User {user_id} deleted")
        return no_content()


def register_routes(router: Router, store: UserStore) -> UserHandlers:
    """Wire the user endpoints for ``store`` into ``router``."""
    return UserHandlers(store, router).register()

