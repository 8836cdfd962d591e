"""
The users resource: record, validation rules, locked store, HTTP handlers.
"""

from .models import User
from .validation import Violation, validate_user, is_email_address
from .store import UserStore, SEED_USERS
from .handlers import UserHandlers, register_routes

__all__ = [
    "User",
    "Violation",
    "validate_user",
    "is_email_address",
    "UserStore",
    "SEED_USERS",
    "UserHandlers",
    "register_routes",
]
