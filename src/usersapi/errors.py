"""
Exception hierarchy for usersapi.

    UsersApiError
    ├── ConfigError        bad or missing configuration (fatal at startup)
    ├── HTTPParseError     malformed request bytes (see http.request)
    ├── UserNotFound       no record with the requested id
    └── ValidationFailed   candidate record broke one or more field rules

Handlers turn UserNotFound and ValidationFailed into 404/400 responses
themselves. Anything else that escapes a handler is caught by
ExceptionHandlingMiddleware and becomes a 500.
"""

from typing import List, TYPE_CHECKING

if TYPE_CHECKING:
    from .users.validation import Violation


class UsersApiError(Exception):
    """Base class for every exception raised by this package."""


class ConfigError(UsersApiError, ValueError):
    """Raised when configuration is missing or invalid."""


class UserNotFound(UsersApiError, LookupError):
    """Raised by the store when no record has the requested id."""

    def __init__(self, user_id: int):
        super().__init__(f"User {user_id} not found")
        self.user_id = user_id


class ValidationFailed(UsersApiError):
    """
    Raised when a candidate record fails validation.

    Carries every violation, not just the first one, so the client can fix
    all problems in one round trip.
    """

    def __init__(self, violations: "List[Violation]"):
        super().__init__("; ".join(v.message for v in violations))
        self.violations = list(violations)
