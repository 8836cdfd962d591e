"""
Unit tests for user validation rules.
"""

import pytest

from usersapi.users.models import User
from usersapi.users.validation import (
    MAX_NAME_LENGTH,
    Violation,
    is_email_address,
    validate_user,
)


def candidate(name=None, email=None) -> User:
    return User(id=0, name=name, email=email)


class TestValidateUser:
    """Tests for validate_user()."""

    def test_valid_user(self):
        """A name and a well-formed email pass."""
        assert validate_user(candidate("Carl", "carl@x.com")) == []

    @pytest.mark.parametrize("name", [None, "", "   ", 42])
    def test_name_required(self, name):
        """Missing, blank and non-string names are reported as missing."""
        violations = validate_user(candidate(name, "carl@x.com"))

        assert violations == [Violation("name", "Name is required.")]

    def test_name_at_limit(self):
        assert validate_user(candidate("a" * MAX_NAME_LENGTH, "carl@x.com")) == []

    def test_name_too_long(self):
        violations = validate_user(candidate("a" * (MAX_NAME_LENGTH + 1), "carl@x.com"))

        assert violations == [Violation("name", "Name cannot exceed 50 characters.")]

    def test_email_required(self):
        """A missing email is not also reported as malformed."""
        violations = validate_user(candidate("Carl", None))

        assert violations == [Violation("email", "Email is required.")]

    def test_email_malformed(self):
        violations = validate_user(candidate("Carl", "carl"))

        assert violations == [Violation("email", "Invalid email address format.")]

    def test_all_fields_reported(self):
        """Every field is checked, in declaration order."""
        violations = validate_user(candidate("", "bad"))

        assert [v.message for v in violations] == [
            "Name is required.",
            "Invalid email address format.",
        ]
        assert [v.field for v in violations] == ["name", "email"]


class TestIsEmailAddress:
    """Tests for the e-mail syntax check."""

    @pytest.mark.parametrize("value", [
        "alice@example.com",
        "a@b",
        "first.last+tag@sub.example.org",
    ])
    def test_accepts(self, value: str):
        assert is_email_address(value) is True

    @pytest.mark.parametrize("value", [
        "alice",
        "@example.com",
        "alice@",
        "a@b@c",
        "a@b\nc",
    ])
    def test_rejects(self, value: str):
        assert is_email_address(value) is False


class TestUserModel:
    """Tests for the User record."""

    def test_to_dict(self):
        user = User(id=1, name="Alice", email="alice@example.com")

        assert user.to_dict() == {"id": 1, "name": "Alice", "email": "alice@example.com"}

    def test_from_payload_ignores_case_and_id(self):
        """Keys match case-insensitively; a client id is dropped."""
        user = User.from_payload({"Id": 99, "Name": "Carl", "EMAIL": "carl@x.com"})

        assert user == User(id=0, name="Carl", email="carl@x.com")

    def test_from_payload_missing_fields(self):
        user = User.from_payload({})

        assert user.name is None
        assert user.email is None
