"""
Error taxonomy for the identity core.

Each error carries the HTTP status it maps to and a public message that is
safe to return to the caller. The specific cause (which field was wrong,
whether an account exists) goes into ``reason`` and is only ever logged.
"""

from typing import Optional


class IdentityError(Exception):
    """Base class for all identity-core errors."""

    status_code: int = 500
    public_message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None, *, reason: Optional[str] = None):
        self.message = message or self.public_message
        self.reason = reason
        super().__init__(self.message)


class InvalidInputError(IdentityError):
    """Malformed or missing request fields (user-correctable)."""

    status_code = 400
    public_message = "Invalid input"

    def __init__(self, message: Optional[str] = None, *, field: Optional[str] = None):
        super().__init__(message, reason=field)
        self.field = field


class UnauthorizedError(IdentityError):
    """Bad credentials, or an absent/invalid/expired bearer token."""

    status_code = 401
    public_message = "Invalid or expired token"


class ForbiddenError(IdentityError):
    """Valid token, but wrong role or wrong resource owner."""

    status_code = 403
    public_message = "Forbidden"


class RateLimitedError(IdentityError):
    status_code = 429
    public_message = "Too many requests"

    def __init__(self, message: Optional[str] = None, *, retry_after: int):
        super().__init__(message, reason="rate_limited")
        self.retry_after = retry_after


class DuplicateEmailError(IdentityError):
    # Surfaced as 400 rather than 409 so clients treat it as a form error.
    status_code = 400
    public_message = "This email is already registered. Please try logging in instead."


class InvalidResetTokenError(IdentityError):
    """Reset token is unknown, already consumed, or expired."""

    status_code = 400
    public_message = "Invalid or expired token"


class NotFoundError(IdentityError):
    status_code = 404
    public_message = "Not found"


class ConfigurationError(IdentityError):
    """Fatal startup-time misconfiguration (signing secret, admin hash)."""

    public_message = "Service misconfigured"


# Token verification failures. All surface as 401 to the caller; the
# subclass is what gets logged.

class TokenError(UnauthorizedError):
    kind: str = "invalid"


class TokenExpiredError(TokenError):
    kind = "expired"


class MalformedTokenError(TokenError):
    kind = "malformed"


class BadSignatureError(TokenError):
    kind = "bad_signature"
