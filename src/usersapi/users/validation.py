"""
=============================================================================
USER VALIDATION
=============================================================================

Each field has an ordered list of rules. A rule looks at one value and
returns an error message, or None when the value passes.

    ┌────────┬──────────────┬─────────────────────────────────────────┐
    │ field  │ rule         │ message                                  │
    ├────────┼──────────────┼─────────────────────────────────────────┤
    │ name   │ required     │ Name is required.                        │
    │        │ max 50 chars │ Name cannot exceed 50 characters.        │
    │ email  │ required     │ Email is required.                       │
    │        │ syntax       │ Invalid email address format.            │
    └────────┴──────────────┴─────────────────────────────────────────┘

Every field is checked, so a body that is wrong in two places gets both
errors back at once. Within one field a failed ``required`` rule ends that
field's checks: an absent email is reported as missing, not also as
malformed.

=============================================================================
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from .models import User


MAX_NAME_LENGTH = 50

Rule = Callable[[Any], Optional[str]]


@dataclass(frozen=True)
class Violation:
    """
    One failed rule.

    ``field`` is None for problems with the request as a whole (an empty
    or unparseable body).
    """

    field: Optional[str]
    message: str


class _Required:
    """
    Value must be a non-blank string.

    Marked as a required rule so the validator can stop checking a field
    once it has failed.
    """

    stops_field = True

    def __init__(self, message: str):
        self.message = message

    def __call__(self, value: Any) -> Optional[str]:
        if not isinstance(value, str) or not value.strip():
            return self.message
        return None


def _max_length(limit: int, message: str) -> Rule:
    def rule(value: Any) -> Optional[str]:
        return message if len(value) > limit else None
    return rule


def _email_address(message: str) -> Rule:
    def rule(value: Any) -> Optional[str]:
        return None if is_email_address(value) else message
    return rule


def is_email_address(value: str) -> bool:
    """
    Loose e-mail syntax check.

    Exactly one ``@``, with something on both sides of it, and no line
    breaks. Deliverability is not this function's business.
    """
    if "\r" in value or "\n" in value:
        return False
    at = value.find("@")
    return at > 0 and at == value.rfind("@") and at != len(value) - 1


USER_RULES: Dict[str, List[Rule]] = {
    "name": [
        _Required("Name is required."),
        _max_length(MAX_NAME_LENGTH, f"Name cannot exceed {MAX_NAME_LENGTH} characters."),
    ],
    "email": [
        _Required("Email is required."),
        _email_address("Invalid email address format."),
    ],
}


def validate(values: Dict[str, Any], rules: Dict[str, List[Rule]]) -> List[Violation]:
    """Run ``rules`` over ``values``; returns every violation in rule order."""
    violations = []

    for field_name, field_rules in rules.items():
        value = values.get(field_name)
        for rule in field_rules:
            message = rule(value)
            if message is None:
                continue
            violations.append(Violation(field_name, message))
            if getattr(rule, "stops_field", False):
                break

    return violations


def validate_user(user: User) -> List[Violation]:
    """Validate a candidate record. An empty list means it is valid."""
    return validate({"name": user.name, "email": user.email}, USER_RULES)
