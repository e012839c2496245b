"""
Customer registration: validate, normalize, create, and issue a first token.
"""

import re
from typing import Optional

from email_validator import EmailNotValidError
from email_validator import validate_email as check_email_syntax

from identity_core.kernel.errors import InvalidInputError
from identity_core.kernel.identity.credential_store import CredentialStore, CustomerProfile
from identity_core.kernel.identity.jwt import BearerToken, TokenService
from identity_core.kernel.identity.types import Identity, Role, normalize_email
from identity_core.logging_config import get_logger, mask_email

logger = get_logger(__name__)

PHONE_PATTERN = re.compile(r"^\+?[1-9]\d{0,15}$")
PHONE_SEPARATORS = re.compile(r"[\s\-()]")
# C0 controls, DEL, and angle brackets
STRIP_PATTERN = re.compile(r"[\x00-\x1f\x7f<>]")

MAX_EMAIL_LENGTH = 254
MIN_PASSWORD_LENGTH = 8
MAX_PASSWORD_LENGTH = 128
MAX_NAME_LENGTH = 50
MAX_PHONE_LENGTH = 20


def sanitize_string(value: str) -> str:
    """Strip control characters and angle brackets, then surrounding whitespace."""
    return STRIP_PATTERN.sub("", value).strip()


def validate_email(email: str) -> str:
    """
    Return the normalized address or raise InvalidInputError.

    Syntax rules are email-validator's with deliverability checks off, the
    same rules pydantic's ``EmailStr`` applies on the login and reset routes.
    """
    cleaned = sanitize_string(email or "")
    if not cleaned:
        raise InvalidInputError("Email is required", field="email")
    if len(cleaned) > MAX_EMAIL_LENGTH:
        raise InvalidInputError("Invalid email format", field="email")
    try:
        checked = check_email_syntax(cleaned, check_deliverability=False)
    except EmailNotValidError as e:
        raise InvalidInputError("Invalid email format", field="email") from e
    return normalize_email(checked.normalized)


def validate_password(password: str, field: str = "password") -> str:
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise InvalidInputError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters", field=field
        )
    if len(password) > MAX_PASSWORD_LENGTH:
        raise InvalidInputError(
            f"Password must be at most {MAX_PASSWORD_LENGTH} characters", field=field
        )
    return password


def validate_name(value: Optional[str], field: str, label: str) -> str:
    cleaned = sanitize_string(value or "")
    if not cleaned:
        raise InvalidInputError(f"{label} is required", field=field)
    if len(cleaned) > MAX_NAME_LENGTH:
        raise InvalidInputError(
            f"{label} must be at most {MAX_NAME_LENGTH} characters", field=field
        )
    return cleaned


def validate_phone(phone: Optional[str]) -> Optional[str]:
    """Optional phone; blank becomes None."""
    if phone is None:
        return None
    cleaned = sanitize_string(phone)
    if not cleaned:
        return None
    if len(cleaned) > MAX_PHONE_LENGTH:
        raise InvalidInputError(
            f"Phone must be at most {MAX_PHONE_LENGTH} characters", field="phone"
        )
    if not PHONE_PATTERN.match(PHONE_SEPARATORS.sub("", cleaned)):
        raise InvalidInputError("Invalid phone number format", field="phone")
    return cleaned


def validate_profile(
    first_name: Optional[str],
    last_name: Optional[str],
    phone: Optional[str] = None,
) -> CustomerProfile:
    return CustomerProfile(
        first_name=validate_name(first_name, "firstName", "First name"),
        last_name=validate_name(last_name, "lastName", "Last name"),
        phone=validate_phone(phone),
    )


class RegistrationService:
    """
    Creates customer accounts.

    Registration and first login are one step: a successful registration
    returns a customer token alongside the new identity.
    """

    def __init__(self, credentials: CredentialStore, tokens: TokenService):
        self.credentials = credentials
        self.tokens = tokens

    async def register(
        self,
        email: str,
        secret: str,
        first_name: str,
        last_name: str,
        phone: Optional[str] = None,
    ) -> tuple[Identity, BearerToken]:
        """
        Register a customer.

        Raises:
            InvalidInputError: A field failed validation
            DuplicateEmailError: The address is already in use
        """
        normalized_email = validate_email(email)
        validate_password(secret)
        profile = validate_profile(first_name, last_name, phone)

        identity = await self.credentials.create(normalized_email, secret, profile)
        token = self.tokens.issue(identity.id, Role.CUSTOMER)

        logger.info(
            "Customer registered",
            extra={"customer_id": identity.id, "email": mask_email(identity.email)},
        )
        return identity, token
