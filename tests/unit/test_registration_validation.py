"""Unit tests for registration field validation and sanitizing."""

import pytest
from pydantic import ValidationError

from identity_core.kernel.errors import InvalidInputError
from identity_core.kernel.identity.registration import (
    MAX_NAME_LENGTH,
    sanitize_string,
    validate_email,
    validate_name,
    validate_password,
    validate_phone,
    validate_profile,
)
from identity_core.schemas.auth import LoginRequest


class TestSanitize:

    def test_strips_angle_brackets_and_controls(self):
        assert sanitize_string("  <b>Alice</b>\x00\x1f ") == "bAlice/b"

    def test_plain_text_untouched(self):
        assert sanitize_string("O'Brien-Smith") == "O'Brien-Smith"


class TestEmail:

    def test_normalizes(self):
        assert validate_email("  Alice@Example.COM ") == "alice@example.com"

    @pytest.mark.parametrize(
        "email",
        [
            "", "   ", "alice", "alice@example", "a b@example.com", "@example.com",
            "a..b@example.com", "alice@shop.test", "bob@store.local",
        ],
    )
    def test_rejects_bad_format(self, email):
        with pytest.raises(InvalidInputError) as exc_info:
            validate_email(email)
        assert exc_info.value.field == "email"

    def test_rejects_overlong(self):
        with pytest.raises(InvalidInputError):
            validate_email("a" * 250 + "@example.com")


class TestPassword:

    def test_accepts_eight_characters(self):
        assert validate_password("12345678") == "12345678"

    @pytest.mark.parametrize("password", ["", "short", "x" * 129])
    def test_rejects_out_of_range(self, password):
        with pytest.raises(InvalidInputError):
            validate_password(password)

    def test_reports_given_field(self):
        with pytest.raises(InvalidInputError) as exc_info:
            validate_password("short", field="newPassword")
        assert exc_info.value.field == "newPassword"


class TestNamesAndPhone:

    def test_name_required(self):
        with pytest.raises(InvalidInputError) as exc_info:
            validate_name("  <> ", "firstName", "First name")
        assert exc_info.value.field == "firstName"
        assert "required" in exc_info.value.message

    def test_name_too_long_is_rejected(self):
        with pytest.raises(InvalidInputError):
            validate_name("x" * (MAX_NAME_LENGTH + 1), "lastName", "Last name")

    def test_name_sanitized(self):
        assert validate_name(" <Alice> ", "firstName", "First name") == "Alice"

    @pytest.mark.parametrize("phone", ["+1 (555) 123-4567", "5551234567", "+447911123456"])
    def test_valid_phones(self, phone):
        assert validate_phone(phone) == phone

    @pytest.mark.parametrize("phone", ["0123456", "phone", "+0 555", "12345678901234567"])
    def test_invalid_phones(self, phone):
        with pytest.raises(InvalidInputError) as exc_info:
            validate_phone(phone)
        assert exc_info.value.field == "phone"

    def test_blank_phone_is_none(self):
        assert validate_phone(None) is None
        assert validate_phone("   ") is None

    def test_validate_profile(self):
        profile = validate_profile(" Alice ", "Smith", "")
        assert profile.first_name == "Alice"
        assert profile.last_name == "Smith"
        assert profile.phone is None


@pytest.mark.parametrize(
    "email",
    ["carol.smith+shop@example.com", "a..b@example.com", "alice@shop.test", "x@example"],
)
def test_email_rules_match_login_schema(email):
    """Registration accepts exactly the addresses the login body accepts."""
    try:
        LoginRequest(email=email, password="password123")
        login_accepts = True
    except ValidationError:
        login_accepts = False

    try:
        validate_email(email)
        register_accepts = True
    except InvalidInputError:
        register_accepts = False

    assert register_accepts == login_accepts
